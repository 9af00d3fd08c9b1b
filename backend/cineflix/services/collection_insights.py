"""
collection_insights.py

Summaries over a discovered collection set: headline stats, curated
category shelves and the recently-released "trending" row.
"""
import math
from collections import Counter
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from cineflix.models import Collection
from cineflix.utils.timezone import current_year, parse_release_date

SHELF_LIMIT = 10
TRENDING_LIMIT = 20
TRENDING_WINDOW_YEARS = 2

POPULAR_KEYWORDS = ("marvel", "star wars", "harry potter", "fast", "bond", "batman", "spider")
SUPERHERO_KEYWORDS = ("marvel", "batman", "superman", "spider", "x-men", "wonder woman", "avengers")

CATEGORIES = ("popular", "complete", "trilogies", "extended", "superhero", "action")


class CollectionStats(BaseModel):
    total_collections: int = 0
    total_films: int = 0
    average_films_per_collection: int = 0
    top_genres: List[str] = Field(default_factory=list)
    completion_stats: Dict[str, int] = Field(default_factory=dict)


def _name_has_any(collection: Collection, keywords: Iterable[str]) -> bool:
    name = collection.name.lower()
    return any(keyword in name for keyword in keywords)


def collection_stats(collections: List[Collection]) -> CollectionStats:
    """Totals, rounded average size, ten most common genres and status counts."""
    if not collections:
        return CollectionStats()
    total_films = sum(c.film_count for c in collections)
    genres = Counter(g for c in collections for g in c.genre_categories)
    statuses = Counter(c.status for c in collections)
    return CollectionStats(
        total_collections=len(collections),
        total_films=total_films,
        # half rounds up
        average_films_per_collection=math.floor(total_films / len(collections) + 0.5),
        top_genres=[genre for genre, _ in genres.most_common(10)],
        completion_stats=dict(statuses),
    )


def collections_by_category(collections: Iterable[Collection], category: str, limit: int = SHELF_LIMIT) -> List[Collection]:
    """Curated shelf for ``category``; unknown categories get the first ``limit``."""
    if category == "popular":
        shelf = [c for c in collections if _name_has_any(c, POPULAR_KEYWORDS)]
    elif category == "complete":
        shelf = [c for c in collections if c.status == "complete"]
    elif category == "trilogies":
        shelf = [c for c in collections if c.type == "trilogy"]
    elif category == "extended":
        shelf = [c for c in collections if c.type == "extended_series" and c.film_count >= 5]
    elif category == "superhero":
        shelf = [c for c in collections if _name_has_any(c, SUPERHERO_KEYWORDS)]
    elif category == "action":
        shelf = [c for c in collections if "Action" in c.genre_categories]
    else:
        shelf = list(collections)
    return shelf[:limit]


def trending_collections(
    collections: Iterable[Collection],
    year: Optional[int] = None,
    limit: int = TRENDING_LIMIT,
) -> List[Collection]:
    """Collections whose latest dated release is at most two years old."""
    year = year if year is not None else current_year()
    trending = []
    for collection in collections:
        years = [d.year for d in (parse_release_date(p.release_date_value) for p in collection.parts) if d]
        if years and max(years) >= year - TRENDING_WINDOW_YEARS:
            trending.append(collection)
    return trending[:limit]
