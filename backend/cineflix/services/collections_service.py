"""
collections_service.py

Composition root for collection discovery. One instance owns the TMDB
client, both caches, the resolver, the discovery run and the scroll cursor,
so every consumer (and every test) works against its own isolated graph.
"""
import logging
import random
from typing import List, Optional

import httpx

from cineflix.core.config import Settings
from cineflix.models import Collection, CollectionBatch, DiscoveryProgress
from cineflix.services.collection_batches import CollectionBatchCursor
from cineflix.services.collection_resolver import CollectionResolver
from cineflix.services.collection_insights import (
    CollectionStats,
    collection_stats,
    collections_by_category,
    trending_collections,
)
from cineflix.services.collection_search import CollectionFilter, matches_filter, merge_results, search_collections
from cineflix.services.discovery import CollectionDiscovery, DiscoveryCache, ProgressCallback
from cineflix.services.discovery_catalog import DEFAULT_CATALOG, DiscoveryCatalog
from cineflix.services.discovery_sources import DiscoverySources
from cineflix.services.response_cache import ResponseCache
from cineflix.services.tmdb_client import TMDBClient

logger = logging.getLogger(__name__)

DIRECT_SEARCH_LIMIT = 10
HYBRID_LOCAL_THRESHOLD = 5


class CollectionsService:
    def __init__(
        self,
        client: TMDBClient,
        catalog: DiscoveryCatalog = DEFAULT_CATALOG,
        discovery_cache: Optional[DiscoveryCache] = None,
        item_delay: float = 0.05,
        step_delay: float = 0.03,
        discovery_timeout: float = 45.0,
        pagination_max_attempts: int = 12,
        pagination_page_budget: int = 100,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.resolver = CollectionResolver(client)
        self.sources = DiscoverySources(client, self.resolver, item_delay=item_delay)
        self.discovery_cache = discovery_cache or DiscoveryCache()
        self.discovery = CollectionDiscovery(
            self.sources,
            self.discovery_cache,
            catalog=catalog,
            timeout=discovery_timeout,
            step_delay=step_delay,
        )
        self.cursor = CollectionBatchCursor(
            self.sources,
            catalog=catalog,
            max_attempts=pagination_max_attempts,
            page_budget=pagination_page_budget,
            rng=rng,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "CollectionsService":
        cache = ResponseCache(ttl=settings.response_cache_ttl_seconds, max_entries=settings.response_cache_max_entries)
        client = TMDBClient(
            api_key=settings.tmdb_api_key,
            base_url=settings.tmdb_base_url,
            cache=cache,
            timeout=settings.tmdb_timeout_seconds,
            max_attempts=settings.tmdb_max_attempts,
            backoff_seconds=settings.tmdb_retry_backoff_seconds,
            min_request_interval=settings.tmdb_min_request_interval_seconds,
            transport=transport,
        )
        if not settings.tmdb_api_key:
            logger.warning("TMDB API key not configured")
        return cls(
            client,
            discovery_cache=DiscoveryCache(ttl=settings.discovery_cache_ttl_seconds),
            item_delay=settings.discovery_item_delay_seconds,
            step_delay=settings.discovery_step_delay_seconds,
            discovery_timeout=settings.discovery_timeout_seconds,
            pagination_max_attempts=settings.pagination_max_attempts,
            pagination_page_budget=settings.pagination_page_budget,
        )

    async def discover_all(
        self,
        max_results: int = 200,
        force_refresh: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Collection]:
        return await self.discovery.discover_all(max_results, force_refresh, on_progress)

    async def next_batch(self, batch_size: int = 20) -> CollectionBatch:
        return await self.cursor.next_batch(batch_size)

    async def get_collection(self, collection_id: int) -> Optional[Collection]:
        return await self.resolver.get_collection(collection_id)

    def clear_cache(self) -> None:
        """Forget the discovery snapshot and restart infinite scroll."""
        self.discovery_cache.clear()
        self.cursor.reset()

    def clear_response_cache(self) -> None:
        self.client.cache.clear()

    def get_cached_snapshot(self) -> List[Collection]:
        return self.discovery_cache.snapshot()

    def get_progress(self) -> DiscoveryProgress:
        return self.discovery.get_progress()

    def search(self, query: str, flt: Optional[CollectionFilter] = None) -> List[Collection]:
        """Search everything known locally: the snapshot plus scrolled batches."""
        known = {c.id: c for c in self.discovery_cache.collections.values()}
        for collection in self.cursor.state.collections:
            known.setdefault(collection.id, collection)
        return [c.model_copy(deep=True) for c in search_collections(known.values(), query, flt)]

    async def search_direct(self, query: str, limit: int = DIRECT_SEARCH_LIMIT) -> List[Collection]:
        """Ask TMDB directly and resolve the top hits that have at least two films."""
        if not query.strip():
            return []
        refs = await self.resolver.search_collections(query)
        found = {}
        await self.sources.harvest_collection_refs(refs[:limit], found)
        logger.info(f"Direct search for '{query}' found {len(found)} collections")
        return list(found.values())

    async def search_hybrid(self, query: str, flt: Optional[CollectionFilter] = None) -> List[Collection]:
        """Local search, topped up from TMDB when it finds fewer than five."""
        if not query.strip():
            return []
        local = self.search(query, flt)
        if len(local) >= HYBRID_LOCAL_THRESHOLD:
            return local
        remote = [c for c in await self.search_direct(query) if matches_filter(c, flt)]
        return merge_results(local, remote)

    async def get_stats(self) -> CollectionStats:
        return collection_stats(await self.discover_all())

    async def get_by_category(self, category: str) -> List[Collection]:
        return collections_by_category(await self.discover_all(), category)

    async def get_trending(self) -> List[Collection]:
        return trending_collections(await self.discover_all())

    async def aclose(self) -> None:
        await self.client.aclose()
