"""
discovery_sources.py

Upstream listing queries shared by full discovery runs and infinite-scroll batches.
Every query turns a TMDB listing into movies, then follows each movie's
collection reference into a dedup map keyed by collection id.
"""
import asyncio
import logging
from typing import Any, Callable, Collection as Container, Dict, Iterable, List, MutableMapping, Optional

from cineflix.models import Collection, CollectionRef, Movie, parse_movies
from cineflix.services.collection_resolver import CollectionResolver
from cineflix.services.tmdb_client import TMDBClient

logger = logging.getLogger(__name__)

MIN_COLLECTION_SIZE = 2

FoundMap = MutableMapping[int, Collection]


class DiscoverySources:
    """Listing queries plus the harvest loop that resolves their collections."""

    def __init__(self, client: TMDBClient, resolver: CollectionResolver, item_delay: float = 0.05):
        self.client = client
        self.resolver = resolver
        self.item_delay = item_delay

    async def pause(self, seconds: Optional[float] = None) -> None:
        seconds = self.item_delay if seconds is None else seconds
        if seconds > 0:
            await asyncio.sleep(seconds)

    async def list_movies(self, path: str, params: Optional[Dict[str, Any]] = None, limit: int = 10) -> List[Movie]:
        data = await self.client.request(path, params or {})
        return parse_movies(data.get("results"), limit)

    async def popular_people(self, limit: int) -> List[int]:
        data = await self.client.request("/person/popular")
        return [p["id"] for p in (data.get("results") or [])[:limit] if isinstance(p, dict) and isinstance(p.get("id"), int)]

    async def actor_movies(self, person_id: int, limit: int = 5) -> List[Movie]:
        data = await self.client.request(f"/person/{int(person_id)}/movie_credits")
        return parse_movies(data.get("cast"), limit)

    async def director_movies(self, person_id: int, limit: int = 4) -> List[Movie]:
        data = await self.client.request(f"/person/{int(person_id)}/movie_credits")
        directed = [c for c in data.get("crew") or [] if isinstance(c, dict) and c.get("job") == "Director"]
        return parse_movies(directed, limit)

    async def _keep(self, collection_id: int, found: FoundMap) -> bool:
        collection = await self.resolver.get_collection(collection_id)
        if collection is None or collection.film_count < MIN_COLLECTION_SIZE:
            return False
        if collection.id in found:
            return False
        found[collection.id] = collection
        logger.debug(f"Found collection: {collection.name} ({collection.film_count} films)")
        return True

    async def harvest_movies(
        self,
        movies: Iterable[Movie],
        found: FoundMap,
        exclude: Container[int] = (),
        on_scanned: Optional[Callable[[], None]] = None,
        delay: Optional[float] = None,
    ) -> int:
        """Follow each movie to its collection; return how many were added.

        A collection already in ``found`` or ``exclude`` is never fetched
        again and never overwritten. Failures are skipped per movie.
        """
        added = 0
        for movie in movies:
            try:
                details = await self.resolver.get_movie(movie.id)
                if on_scanned:
                    on_scanned()
                ref = details.belongs_to_collection if details else None
                if ref and ref.id not in found and ref.id not in exclude:
                    if await self._keep(ref.id, found):
                        added += 1
                await self.pause(delay)
            except Exception as e:
                logger.debug(f"Skipping movie {movie.id}: {e}")
        return added

    async def harvest_collection_refs(
        self,
        refs: Iterable[CollectionRef],
        found: FoundMap,
        exclude: Container[int] = (),
        delay: Optional[float] = None,
    ) -> int:
        added = 0
        for ref in refs:
            try:
                if ref.id not in found and ref.id not in exclude:
                    if await self._keep(ref.id, found):
                        added += 1
                await self.pause(delay)
            except Exception as e:
                logger.debug(f"Skipping collection {ref.id}: {e}")
        return added
