"""
collection_resolver.py

Resolves TMDB movies and collections into fully described Collection models.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from cineflix.models import Collection, CollectionRef, CollectionStatus, CollectionType, Movie, TMDBEntity, parse_movies
from cineflix.services.discovery_catalog import TMDB_GENRE_NAMES
from cineflix.services.tmdb_client import TMDBClient, UpstreamClientError
from cineflix.utils.timezone import current_year, parse_release_date, release_sort_key

logger = logging.getLogger(__name__)

_TYPES_BY_COUNT: Dict[int, CollectionType] = {
    3: "trilogy",
    4: "quadrilogy",
    5: "pentology",
    6: "hexalogy",
    7: "septology",
    8: "octology",
    9: "nonology",
}

ONGOING_WINDOW_YEARS = 3


def classify_collection_type(film_count: int) -> CollectionType:
    if film_count in _TYPES_BY_COUNT:
        return _TYPES_BY_COUNT[film_count]
    if film_count > 9:
        return "extended_series"
    return "incomplete_series"


def determine_collection_status(films: Sequence[TMDBEntity], year: Optional[int] = None) -> CollectionStatus:
    """Ongoing if the latest release is at most three years old.

    Fewer than three films is always "incomplete"; undated films are ignored
    and a collection with no dated film counts as complete.
    """
    if len(films) < 3:
        return "incomplete"
    years = [d.year for d in (parse_release_date(f.release_date_value) for f in films) if d]
    if not years:
        return "complete"
    year = year if year is not None else current_year()
    if year - max(years) <= ONGOING_WINDOW_YEARS:
        return "ongoing"
    return "complete"


def extract_genre_categories(films: Sequence[TMDBEntity]) -> List[str]:
    categories: List[str] = []
    for film in films:
        for genre_id in film.genre_ids:
            name = TMDB_GENRE_NAMES.get(genre_id)
            if name and name not in categories:
                categories.append(name)
    return categories


def extract_studio(films: Sequence[TMDBEntity]) -> str:
    # TODO: derive from production_companies once movie details carry them through
    if not films:
        return "Unknown"
    return "Various Studios"


def build_collection(raw: Dict[str, Any], films: List[Movie]) -> Collection:
    """Assemble a Collection from the raw TMDB record and its resolved members."""
    ordered = sorted(films, key=lambda f: release_sort_key(f.release_date_value))
    return Collection(
        id=raw.get("id"),
        name=raw.get("name") or "",
        overview=raw.get("overview") or "",
        poster_path=raw.get("poster_path"),
        backdrop_path=raw.get("backdrop_path"),
        parts=ordered,
        film_count=len(ordered),
        total_runtime=sum(f.runtime or 0 for f in ordered),
        first_release_date=ordered[0].release_date_value if ordered else "",
        latest_release_date=ordered[-1].release_date_value if ordered else "",
        type=classify_collection_type(len(ordered)),
        status=determine_collection_status(ordered),
        genre_categories=extract_genre_categories(ordered),
        studio=extract_studio(ordered),
    )


class CollectionResolver:
    """Fetches movie and collection details through the cached TMDB client."""

    def __init__(self, client: TMDBClient):
        self.client = client

    async def get_movie(self, movie_id: int) -> Optional[Movie]:
        """Full movie details, or None when TMDB has no such movie.

        Transport failures are raised so callers can decide how far to back off.
        """
        try:
            data = await self.client.request(f"/movie/{int(movie_id)}")
        except UpstreamClientError as e:
            if e.not_found:
                return None
            raise
        try:
            return Movie.model_validate(data)
        except ValidationError as e:
            logger.debug(f"Discarding malformed movie {movie_id}: {e}")
            return None

    async def _resolve_part(self, part: Movie) -> Movie:
        try:
            detailed = await self.get_movie(part.id)
        except Exception as e:
            logger.debug(f"Falling back to listing data for movie {part.id}: {e}")
            return part
        return detailed or part

    async def get_collection(self, collection_id: int) -> Optional[Collection]:
        """Resolve a collection with member runtimes, ordering and derived tags.

        Returns None (and logs) when the collection itself cannot be fetched.
        Individual member failures fall back to the collection's own listing.
        """
        try:
            raw = await self.client.request(f"/collection/{int(collection_id)}")
        except Exception as e:
            logger.error(f"Error fetching collection {collection_id}: {e}")
            return None
        if not isinstance(raw, dict):
            logger.error(f"Unexpected payload for collection {collection_id}: {type(raw).__name__}")
            return None

        # malformed members are dropped one by one, the group survives
        parts = parse_movies(raw.get("parts"))
        films = await asyncio.gather(*(self._resolve_part(p) for p in parts))
        return build_collection({**raw, "id": raw.get("id", collection_id)}, list(films))

    async def search_collections(self, query: str, page: int = 1) -> List[CollectionRef]:
        try:
            data = await self.client.request("/search/collection", {"query": query, "page": page})
        except Exception as e:
            logger.error(f"Error searching collections for '{query}': {e}")
            return []
        refs = []
        for item in data.get("results") or []:
            try:
                refs.append(CollectionRef.model_validate(item))
            except ValidationError:
                continue
        return refs
