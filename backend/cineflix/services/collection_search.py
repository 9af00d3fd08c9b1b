"""
collection_search.py

Local search and filtering over already discovered collections, so the
collections page never needs a TMDB round trip to narrow its grid.
"""
import logging
from typing import Iterable, List, Literal, Optional

from pydantic import BaseModel, Field

from cineflix.models import Collection

logger = logging.getLogger(__name__)

LengthFilter = Literal["all", "trilogy", "extended"]


class CollectionFilter(BaseModel):
    genres: List[str] = Field(default_factory=list)
    types: List[str] = Field(default_factory=list)
    statuses: List[str] = Field(default_factory=list)
    length: LengthFilter = "all"


def matches_filter(collection: Collection, flt: Optional[CollectionFilter]) -> bool:
    if flt is None:
        return True
    if flt.length == "trilogy" and collection.film_count != 3:
        return False
    if flt.length == "extended" and collection.film_count < 5:
        return False
    if flt.genres and not any(g in collection.genre_categories for g in flt.genres):
        return False
    if flt.statuses and collection.status not in flt.statuses:
        return False
    if flt.types and collection.type not in flt.types:
        return False
    return True


def filter_collections(collections: Iterable[Collection], flt: Optional[CollectionFilter] = None) -> List[Collection]:
    return [c for c in collections if matches_filter(c, flt)]


def _searchable_text(collection: Collection) -> str:
    fields = [collection.name, collection.overview or "", collection.type, collection.status]
    fields.extend(collection.genre_categories)
    fields.extend(part.display_title for part in collection.parts)
    return " ".join(fields).lower()


def relevance_score(collection: Collection, query: str) -> int:
    """Exact name 100, prefix 50, substring 25, plus up to 20 for size."""
    lower_query = query.lower().strip()
    lower_name = collection.name.lower()
    score = 0
    if lower_name == lower_query:
        score += 100
    elif lower_name.startswith(lower_query):
        score += 50
    elif lower_query in lower_name:
        score += 25
    return score + min(collection.film_count * 2, 20)


def search_collections(
    collections: Iterable[Collection],
    query: str,
    flt: Optional[CollectionFilter] = None,
) -> List[Collection]:
    terms = [t for t in query.lower().split() if len(t) > 1]
    if not terms:
        return filter_collections(collections, flt)

    matched = []
    for collection in collections:
        text = _searchable_text(collection)
        if any(term in text for term in terms) and matches_filter(collection, flt):
            matched.append(collection)

    matched.sort(key=lambda c: relevance_score(c, query), reverse=True)
    logger.debug(f"Found {len(matched)} collections matching '{query}'")
    return matched


def merge_results(local: Iterable[Collection], remote: Iterable[Collection]) -> List[Collection]:
    """Local hits first, then remote hits whose id is not already present."""
    merged = {c.id: c for c in local}
    for collection in remote:
        merged.setdefault(collection.id, collection)
    return list(merged.values())
