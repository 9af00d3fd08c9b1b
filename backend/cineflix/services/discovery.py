"""
discovery.py

Full collection discovery: a sequence of TMDB listing queries run against a shared
dedup map under a wall-clock deadline, with a minimal fallback scan and a
two-hour snapshot cache.
"""
import asyncio
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from cineflix.models import Collection, DiscoveryProgress
from cineflix.services.discovery_catalog import DEFAULT_CATALOG, DiscoveryCatalog
from cineflix.services.discovery_sources import MIN_COLLECTION_SIZE, DiscoverySources

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[DiscoveryProgress], None]


def rank_collections(collections) -> List[Collection]:
    """Drop undersized collections and order by film count, largest first."""
    kept = [c for c in collections if c is not None and c.film_count >= MIN_COLLECTION_SIZE]
    return sorted(kept, key=lambda c: c.film_count, reverse=True)


class DiscoveryCache:
    """Single snapshot of the last successful discovery run."""

    def __init__(self, ttl: float = 2 * 60 * 60, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self._clock = clock
        self.collections: Dict[int, Collection] = {}
        self.last_fetched: Optional[float] = None
        self.progress = DiscoveryProgress()

    def is_valid(self, timestamp: Optional[float] = None) -> bool:
        timestamp = self.last_fetched if timestamp is None else timestamp
        if timestamp is None:
            return False
        return self._clock() - timestamp < self.ttl

    def replace(self, collections: List[Collection]) -> None:
        self.collections = {c.id: c for c in collections}
        self.last_fetched = self._clock()

    def clear(self) -> None:
        self.collections = {}
        self.last_fetched = None
        self.progress = DiscoveryProgress(step="Cache cleared")
        logger.info("Collections cache cleared")

    def snapshot(self) -> List[Collection]:
        return [c.model_copy(deep=True) for c in self.collections.values()]


@dataclass
class _RunState:
    found: Dict[int, Collection] = field(default_factory=dict)
    scanned: int = 0

    def mark_scanned(self) -> None:
        self.scanned += 1


class CollectionDiscovery:
    """Runs SCAN_POPULAR -> SEARCH_FRANCHISES -> SAMPLE_GENRES sequentially.

    Steps run one after another so the per-fetch delays keep TMDB traffic
    smooth. The whole run is bounded by ``timeout``; on timeout or error the
    in-flight step is cancelled and a single popular-movies pass is used
    instead, which itself degrades to an empty list rather than raising.
    """

    def __init__(
        self,
        sources: DiscoverySources,
        cache: DiscoveryCache,
        catalog: DiscoveryCatalog = DEFAULT_CATALOG,
        timeout: float = 45.0,
        step_delay: float = 0.03,
        scan_limit: int = 10,
        genre_sample_limit: int = 5,
        fallback_limit: int = 15,
    ):
        self.sources = sources
        self.cache = cache
        self.catalog = catalog
        self.timeout = timeout
        self.step_delay = step_delay
        self.scan_limit = scan_limit
        self.genre_sample_limit = genre_sample_limit
        self.fallback_limit = fallback_limit

    def _report(self, step: str, scanned: int, found: int, on_progress: Optional[ProgressCallback]) -> None:
        progress = DiscoveryProgress(scanned=scanned, found=found, step=step)
        self.cache.progress = progress
        if on_progress is None:
            return
        try:
            on_progress(progress.model_copy())
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    def get_progress(self) -> DiscoveryProgress:
        return self.cache.progress.model_copy()

    async def discover_all(
        self,
        max_results: int = 200,
        force_refresh: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Collection]:
        if not force_refresh and self.cache.is_valid() and self.cache.collections:
            cached = self.cache.snapshot()
            logger.info(f"Returning {len(cached)} cached collections")
            self._report(f"Loaded {len(cached)} cached collections", len(cached), len(cached), on_progress)
            return cached[:max_results]

        if force_refresh:
            self.cache.clear()

        state = _RunState()

        def report(step: str) -> None:
            self._report(step, state.scanned, len(state.found), on_progress)

        logger.info("Starting collection discovery from TMDB")
        try:
            await asyncio.wait_for(self._run_steps(state, report), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Discovery exceeded {self.timeout}s, using backup method")
            self._report("Switching to backup discovery method...", 0, 0, on_progress)
            return await self._fallback(max_results, on_progress)
        except Exception as e:
            logger.error(f"Error in collection discovery: {e}")
            self._report("Discovery failed, trying backup method...", 0, 0, on_progress)
            return await self._fallback(max_results, on_progress)

        collections = rank_collections(state.found.values())
        self.cache.replace(collections)
        report(f"Discovery complete! Found {len(collections)} collections")
        logger.info(f"Discovered {len(collections)} collections ({state.scanned} movies scanned)")
        return [c.model_copy(deep=True) for c in collections[:max_results]]

    async def _run_steps(self, state: _RunState, report: Callable[[str], None]) -> None:
        report("Quick scan of popular movies...")
        await self._scan_popular(state, report)

        report("Finding major franchises...")
        await self._search_franchises(state, report)

        report("Sampling top genres...")
        await self._sample_genres(state, report)

    async def _scan_popular(self, state: _RunState, report: Callable[[str], None]) -> None:
        endpoints = (("Popular Movies", "/movie/popular"), ("Trending Movies", "/trending/movie/week"))
        for name, path in endpoints:
            report(f"Scanning {name}...")
            try:
                movies = await self.sources.list_movies(path, {"page": 1}, limit=self.scan_limit)
                await self.sources.harvest_movies(movies, state.found, on_scanned=state.mark_scanned)
                await self.sources.pause(self.step_delay)
            except Exception as e:
                logger.warning(f"Error scanning {name}: {e}")
            report(f"Scanned {name}")

    async def _search_franchises(self, state: _RunState, report: Callable[[str], None]) -> None:
        for franchise in self.catalog.franchises:
            report(f"Searching for {franchise}...")
            try:
                refs = await self.sources.resolver.search_collections(franchise)
                await self.sources.harvest_collection_refs(refs[:1], state.found)
                await self.sources.pause(self.step_delay)
            except Exception as e:
                logger.warning(f"Search failed for {franchise}: {e}")

    async def _sample_genres(self, state: _RunState, report: Callable[[str], None]) -> None:
        for genre_id, genre_name in self.catalog.sample_genres:
            report(f"Sampling {genre_name} collections...")
            try:
                movies = await self.sources.list_movies(
                    "/discover/movie",
                    {"with_genres": genre_id, "sort_by": "popularity.desc", "page": 1},
                    limit=self.genre_sample_limit,
                )
                await self.sources.harvest_movies(movies, state.found, on_scanned=state.mark_scanned)
                await self.sources.pause(self.step_delay)
            except Exception as e:
                logger.warning(f"Error sampling {genre_name} collections: {e}")

    async def _fallback(self, max_results: int, on_progress: Optional[ProgressCallback]) -> List[Collection]:
        state = _RunState()
        try:
            self._report("Using backup discovery method...", 0, 0, on_progress)
            movies = await self.sources.list_movies("/movie/popular", limit=self.fallback_limit)
            for movie in movies:
                await self.sources.harvest_movies([movie], state.found, on_scanned=state.mark_scanned)
                self._report(f"Found {len(state.found)} collections...", state.scanned, len(state.found), on_progress)
                if len(state.found) >= max_results:
                    break
            collections = rank_collections(state.found.values())
            self._report(
                f"Backup method found {len(collections)} collections", state.scanned, len(collections), on_progress
            )
            return collections[:max_results]
        except Exception as e:
            logger.error(f"Even basic discovery failed: {e}")
            self._report("Backup discovery failed", state.scanned, 0, on_progress)
            return []
