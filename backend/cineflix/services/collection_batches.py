"""
collection_batches.py

Infinite-scroll batches of collections. Each call walks a fixed list of
discovery heuristics; the heuristics that take a parameter (page, genre,
search term, director, studio) rotate through it with an index that only
moves forward, so consecutive calls ask TMDB different questions.
"""
import random
import time
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

from cineflix.models import Collection, CollectionBatch
from cineflix.services.discovery_catalog import DEFAULT_CATALOG, DiscoveryCatalog
from cineflix.services.discovery_sources import DiscoverySources
from cineflix.utils.timezone import current_year

logger = logging.getLogger(__name__)


@dataclass
class CursorState:
    collections: List[Collection] = field(default_factory=list)
    returned_ids: Set[int] = field(default_factory=set)
    current_page: int = 0
    movie_page_index: int = 1
    genre_index: int = 0
    search_term_index: int = 0
    director_index: int = 0
    studio_index: int = 0
    last_fetched: Optional[float] = None


class CollectionBatchCursor:
    """Hands out batches of not-yet-returned collections.

    Heuristics run in priority order until ``batch_size`` new collections
    are found or ``max_attempts`` heuristics have been tried. An error in one
    heuristic is logged and the cursor moves on; its rotation index has
    already advanced, so the failing request is not repeated next time.
    """

    def __init__(
        self,
        sources: DiscoverySources,
        catalog: DiscoveryCatalog = DEFAULT_CATALOG,
        max_attempts: int = 12,
        page_budget: int = 100,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        year_provider: Callable[[], int] = current_year,
    ):
        self.sources = sources
        self.catalog = catalog
        self.max_attempts = max_attempts
        self.page_budget = page_budget
        self.rng = rng or random.Random()
        self._clock = clock
        self._year_provider = year_provider
        self.state = CursorState()
        self.heuristics: List[Tuple[str, Callable[[Dict[int, Collection]], Awaitable[None]]]] = [
            ("popular_movies", self._from_popular_movies),
            ("genre_rotation", self._from_genres),
            ("random_year", self._from_random_year),
            ("search_terms", self._from_search_terms),
            ("now_playing_upcoming", self._from_current_movies),
            ("top_rated", self._from_top_rated),
            ("trending_weekly", self._from_trending_week),
            ("trending_daily", self._from_trending_day),
            ("popular_actors", self._from_popular_actors),
            ("popular_directors", self._from_directors),
            ("production_companies", self._from_companies),
            ("random_deep_search", self._from_random_deep_search),
        ]

    def reset(self) -> None:
        self.state = CursorState()
        logger.info("Pagination cache cleared")

    async def next_batch(self, batch_size: int = 20) -> CollectionBatch:
        try:
            logger.info(f"Loading next batch of {batch_size} collections")
            found: Dict[int, Collection] = {}
            attempts = 0
            limit = min(self.max_attempts, len(self.heuristics))

            while len(found) < batch_size and attempts < limit:
                name, heuristic = self.heuristics[attempts]
                attempts += 1
                before = len(found)
                try:
                    await heuristic(found)
                except Exception as e:
                    logger.warning(f"Heuristic {name} failed: {e}")
                if len(found) == before:
                    logger.debug(f"Heuristic {name} returned no new collections, trying next method")

            batch = sorted(
                (c for c in found.values() if c.id not in self.state.returned_ids),
                key=lambda c: c.film_count,
                reverse=True,
            )[:batch_size]

            self.state.collections.extend(batch)
            self.state.returned_ids.update(c.id for c in batch)
            self.state.current_page += 1
            self.state.last_fetched = self._clock()

            logger.info(f"Loaded {len(batch)} new collections (total returned: {len(self.state.collections)})")
            # Stay optimistic so infinite scroll keeps asking
            has_more = len(batch) > 0 or self.state.current_page < self.page_budget
            return CollectionBatch(collections=[c.model_copy(deep=True) for c in batch], has_more=has_more)
        except Exception as e:
            logger.error(f"Error loading next batch: {e}")
            return CollectionBatch(collections=[], has_more=True)

    async def _harvest_listing(self, found: Dict[int, Collection], path: str, params: dict, limit: int) -> None:
        movies = await self.sources.list_movies(path, params, limit=limit)
        await self.sources.harvest_movies(movies, found, exclude=self.state.returned_ids)

    async def _from_popular_movies(self, found: Dict[int, Collection]) -> None:
        page = self.state.movie_page_index
        self.state.movie_page_index += 1
        await self._harvest_listing(found, "/movie/popular", {"page": page}, 8)

    async def _from_genres(self, found: Dict[int, Collection]) -> None:
        index = self.state.genre_index
        self.state.genre_index += 1
        genres = self.catalog.rotation_genres
        genre_id, _ = genres[index % len(genres)]
        params = {"with_genres": genre_id, "sort_by": "popularity.desc", "page": index // len(genres) + 1}
        await self._harvest_listing(found, "/discover/movie", params, 5)

    async def _from_random_year(self, found: Dict[int, Collection]) -> None:
        year = self._year_provider() - self.rng.randrange(self.catalog.year_span)
        params = {"primary_release_year": year, "sort_by": "popularity.desc", "page": 1}
        await self._harvest_listing(found, "/discover/movie", params, 5)

    async def _from_search_terms(self, found: Dict[int, Collection]) -> None:
        index = self.state.search_term_index
        self.state.search_term_index += 1
        terms = self.catalog.search_terms
        refs = await self.sources.resolver.search_collections(terms[index % len(terms)])
        await self.sources.harvest_collection_refs(refs[:5], found, exclude=self.state.returned_ids)

    async def _from_current_movies(self, found: Dict[int, Collection]) -> None:
        path = self.rng.choice(("/movie/now_playing", "/movie/upcoming"))
        await self._harvest_listing(found, path, {}, 8)

    async def _from_top_rated(self, found: Dict[int, Collection]) -> None:
        page = self.state.movie_page_index // 2 + 1
        await self._harvest_listing(found, "/movie/top_rated", {"page": page}, 6)

    async def _from_trending_week(self, found: Dict[int, Collection]) -> None:
        await self._harvest_listing(found, "/trending/movie/week", {}, 6)

    async def _from_trending_day(self, found: Dict[int, Collection]) -> None:
        await self._harvest_listing(found, "/trending/movie/day", {}, 6)

    async def _from_popular_actors(self, found: Dict[int, Collection]) -> None:
        for person_id in await self.sources.popular_people(4):
            try:
                movies = await self.sources.actor_movies(person_id, limit=5)
                await self.sources.harvest_movies(movies, found, exclude=self.state.returned_ids)
                await self.sources.pause()
            except Exception as e:
                logger.debug(f"Skipping actor {person_id}: {e}")

    def _rotate(self, options: Tuple[int, ...], attr: str, count: int) -> List[int]:
        start = getattr(self.state, attr)
        setattr(self.state, attr, start + count)
        return [options[(start + i) % len(options)] for i in range(min(count, len(options)))]

    async def _from_directors(self, found: Dict[int, Collection]) -> None:
        for person_id in self._rotate(self.catalog.director_ids, "director_index", 4):
            try:
                movies = await self.sources.director_movies(person_id, limit=4)
                await self.sources.harvest_movies(movies, found, exclude=self.state.returned_ids)
                await self.sources.pause()
            except Exception as e:
                logger.debug(f"Skipping director {person_id}: {e}")

    async def _from_companies(self, found: Dict[int, Collection]) -> None:
        for company_id in self._rotate(self.catalog.studio_ids, "studio_index", 4):
            try:
                params = {"with_companies": company_id, "sort_by": "popularity.desc", "page": 1}
                await self._harvest_listing(found, "/discover/movie", params, 3)
                await self.sources.pause()
            except Exception as e:
                logger.debug(f"Skipping company {company_id}: {e}")

    async def _from_random_deep_search(self, found: Dict[int, Collection]) -> None:
        strategy = self.rng.randrange(3)
        if strategy == 0:
            # high grossing titles are the most likely to have sequels
            params = {
                "sort_by": "revenue.desc",
                "primary_release_date.gte": "1980-01-01",
                "page": self.rng.randint(1, 10),
            }
        elif strategy == 1:
            params = {
                "sort_by": "vote_count.desc",
                "primary_release_date.gte": "1970-01-01",
                "page": self.rng.randint(1, 20),
            }
        else:
            params = {
                "with_keywords": self.rng.choice(self.catalog.collection_keyword_ids),
                "sort_by": "popularity.desc",
                "page": self.rng.randint(1, 5),
            }
        await self._harvest_listing(found, "/discover/movie", params, 8)
