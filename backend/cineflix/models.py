"""
models.py

Pydantic models for TMDB entities (movies, shows) and discovered collections.
"""
import logging
from abc import ABC, abstractmethod
from typing import Annotated, Any, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

logger = logging.getLogger(__name__)


class CollectionRef(BaseModel):
    """Weak reference from a movie to the collection it belongs to."""
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str = ""


class TMDBEntity(BaseModel, ABC):
    """Fields and accessors shared by movies and shows.

    Discovery code reads titles and dates through ``display_title`` and
    ``release_date_value`` so it never cares which variant it holds.
    """
    model_config = ConfigDict(extra="ignore")

    id: int
    overview: Optional[str] = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    vote_average: float = 0.0
    vote_count: int = 0
    genre_ids: List[int] = Field(default_factory=list)
    popularity: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _normalize_genres(cls, data: Any) -> Any:
        # Detail endpoints send genres as [{id, name}] instead of genre_ids
        if isinstance(data, dict) and not data.get("genre_ids") and isinstance(data.get("genres"), list):
            data = dict(data)
            data["genre_ids"] = [
                g["id"] for g in data["genres"]
                if isinstance(g, dict) and isinstance(g.get("id"), int)
            ]
        return data

    @property
    @abstractmethod
    def display_title(self) -> str:
        ...

    @property
    @abstractmethod
    def release_date_value(self) -> str:
        ...


class Movie(TMDBEntity):
    media_type: Literal["movie"] = "movie"
    title: Optional[str] = ""
    release_date: Optional[str] = ""
    runtime: Optional[int] = None
    belongs_to_collection: Optional[CollectionRef] = None

    @property
    def display_title(self) -> str:
        return self.title or ""

    @property
    def release_date_value(self) -> str:
        return self.release_date or ""


class Show(TMDBEntity):
    media_type: Literal["tv"] = "tv"
    name: Optional[str] = ""
    first_air_date: Optional[str] = ""
    episode_run_time: List[int] = Field(default_factory=list)

    @property
    def display_title(self) -> str:
        return self.name or ""

    @property
    def release_date_value(self) -> str:
        return self.first_air_date or ""

    @property
    def runtime(self) -> Optional[int]:
        return self.episode_run_time[0] if self.episode_run_time else None


Entity = Annotated[Union[Movie, Show], Field(discriminator="media_type")]

_entity_adapter = TypeAdapter(Entity)


def parse_entity(data: Any) -> TMDBEntity:
    """Validate one TMDB record as a Movie or Show.

    Movie endpoints omit ``media_type``, so records without one are movies.
    Raises ValidationError for anything else (people, malformed records).
    """
    if isinstance(data, dict) and not data.get("media_type"):
        data = {**data, "media_type": "movie"}
    return _entity_adapter.validate_python(data)


def parse_movies(items: Optional[Iterable[Any]], limit: Optional[int] = None) -> List[Movie]:
    """Movies from a TMDB listing; shows and malformed records are skipped."""
    movies: List[Movie] = []
    for item in items or []:
        if limit is not None and len(movies) >= limit:
            break
        try:
            entity = parse_entity(item)
        except ValidationError:
            logger.debug(f"Skipping malformed listing entry: {item!r}")
            continue
        if isinstance(entity, Movie):
            movies.append(entity)
    return movies


CollectionType = Literal[
    "trilogy",
    "quadrilogy",
    "pentology",
    "hexalogy",
    "septology",
    "octology",
    "nonology",
    "extended_series",
    "incomplete_series",
]

CollectionStatus = Literal["complete", "ongoing", "incomplete"]


class Collection(BaseModel):
    """A franchise with its members ordered by release date.

    film_count, type and status are derived from ``parts`` every time a
    collection is resolved; they are never edited independently.
    """
    id: int
    name: str = ""
    overview: Optional[str] = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    parts: List[Movie] = Field(default_factory=list)
    film_count: int = 0
    total_runtime: int = 0
    first_release_date: str = ""
    latest_release_date: str = ""
    type: CollectionType = "incomplete_series"
    status: CollectionStatus = "incomplete"
    genre_categories: List[str] = Field(default_factory=list)
    studio: str = "Unknown"


class DiscoveryProgress(BaseModel):
    scanned: int = 0
    found: int = 0
    step: str = "Not started"


class CollectionBatch(BaseModel):
    collections: List[Collection] = Field(default_factory=list)
    has_more: bool = True
