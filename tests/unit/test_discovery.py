import unittest

import httpx

from cineflix.models import Collection, Movie
from cineflix.services.collection_resolver import CollectionResolver
from cineflix.services.collections_service import CollectionsService
from cineflix.services.discovery import CollectionDiscovery, DiscoveryCache, rank_collections
from cineflix.services.discovery_catalog import DiscoveryCatalog
from cineflix.services.discovery_sources import DiscoverySources
from cineflix.services.response_cache import ResponseCache
from cineflix.services.tmdb_client import TMDBClient, UpstreamError
from fake_tmdb import FakeTMDB

SMALL_CATALOG = DiscoveryCatalog(franchises=("Alien",), sample_genres=((28, "Action"),))


class FakeClock:
    def __init__(self, now: float = 10_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_discovery(tmdb, timeout=5.0, catalog=SMALL_CATALOG, cache=None):
    sources = DiscoverySources(tmdb, CollectionResolver(tmdb), item_delay=0)
    return CollectionDiscovery(sources, cache or DiscoveryCache(), catalog=catalog, timeout=timeout, step_delay=0)


class TestDiscoveryCache(unittest.TestCase):
    def test_validity_window(self):
        clock = FakeClock()
        cache = DiscoveryCache(ttl=7200, clock=clock)
        self.assertFalse(cache.is_valid())

        self.assertTrue(cache.is_valid(clock.now - 7200 + 0.001))
        self.assertFalse(cache.is_valid(clock.now - 7200))
        self.assertFalse(cache.is_valid(clock.now - 7200 - 0.001))

    def test_replace_and_clear(self):
        clock = FakeClock()
        cache = DiscoveryCache(clock=clock)
        cache.replace([Collection(id=1, name="A", film_count=3)])
        self.assertTrue(cache.is_valid())
        self.assertEqual(cache.last_fetched, clock.now)

        snapshot = cache.snapshot()
        snapshot[0].name = "mutated"
        self.assertEqual(cache.collections[1].name, "A")

        cache.clear()
        self.assertFalse(cache.is_valid())
        self.assertEqual(cache.snapshot(), [])
        self.assertEqual(cache.progress.step, "Cache cleared")

    def test_rank_collections(self):
        ranked = rank_collections([
            Collection(id=1, film_count=2),
            Collection(id=2, film_count=1),
            Collection(id=3, film_count=5),
            None,
        ])
        self.assertEqual([c.id for c in ranked], [3, 1])


class TestDiscoverySources(unittest.IsolatedAsyncioTestCase):
    async def test_existing_entry_is_never_overwritten_or_refetched(self):
        tmdb = FakeTMDB()
        tmdb.add_collection(77, [1, 2, 3])
        sources = DiscoverySources(tmdb, CollectionResolver(tmdb), item_delay=0)
        existing = Collection(id=77, name="first writer", film_count=3)
        found = {77: existing}

        added = await sources.harvest_movies([Movie(id=1), Movie(id=2)], found)

        self.assertEqual(added, 0)
        self.assertIs(found[77], existing)
        self.assertEqual(tmdb.calls_to("/collection/77"), [])

    async def test_undersized_and_excluded_collections_are_skipped(self):
        tmdb = FakeTMDB()
        tmdb.add_collection(5, [50])
        tmdb.add_collection(6, [60, 61])
        tmdb.add_collection(7, [70, 71])
        sources = DiscoverySources(tmdb, CollectionResolver(tmdb), item_delay=0)
        found = {}

        added = await sources.harvest_movies([Movie(id=50), Movie(id=60), Movie(id=70)], found, exclude={7})

        self.assertEqual(added, 1)
        self.assertEqual(list(found), [6])

    async def test_failing_movie_does_not_stop_harvest(self):
        tmdb = FakeTMDB()
        tmdb.add_collection(6, [60, 61])
        tmdb.failures["/movie/1"] = UpstreamError("down")
        sources = DiscoverySources(tmdb, CollectionResolver(tmdb), item_delay=0)
        scanned = []
        found = {}

        await sources.harvest_movies([Movie(id=1), Movie(id=60)], found, on_scanned=lambda: scanned.append(1))

        self.assertEqual(list(found), [6])
        self.assertEqual(len(scanned), 1)

    async def test_mixed_listings_keep_only_movies(self):
        tmdb = FakeTMDB()
        tmdb.listings["/trending/all/week"] = [
            {"id": 1, "media_type": "movie", "title": "Dune"},
            {"id": 2, "media_type": "tv", "name": "Severance"},
            {"id": 3, "media_type": "person", "name": "Someone"},
            {"id": 4, "title": "Listing without media type"},
        ]
        sources = DiscoverySources(tmdb, CollectionResolver(tmdb), item_delay=0)

        movies = await sources.list_movies("/trending/all/week")

        self.assertEqual([m.display_title for m in movies], ["Dune", "Listing without media type"])

    async def test_director_movies_only_keeps_directing_credits(self):
        tmdb = FakeTMDB()
        tmdb.payloads["/person/525/movie_credits"] = {
            "cast": [{"id": 1}],
            "crew": [{"id": 2, "job": "Director"}, {"id": 3, "job": "Writer"}, {"id": 4, "job": "Director"}],
        }
        sources = DiscoverySources(tmdb, CollectionResolver(tmdb), item_delay=0)
        self.assertEqual([m.id for m in await sources.director_movies(525)], [2, 4])
        self.assertEqual([m.id for m in await sources.actor_movies(525)], [1])


class TestCollectionDiscovery(unittest.IsolatedAsyncioTestCase):
    async def test_first_writer_wins_across_steps(self):
        tmdb = FakeTMDB()
        tmdb.add_collection(77, [1, 2, 3])
        versions = iter(["first", "second", "third"])
        raw = dict(tmdb.collections[77])
        tmdb.collections[77] = lambda: dict(raw, name=next(versions))
        tmdb.listings["/movie/popular"] = [{"id": 1}]
        tmdb.searches["Alien"] = [{"id": 77, "name": "Alien Collection"}]

        collections = await make_discovery(tmdb).discover_all()

        self.assertEqual([c.name for c in collections], ["first"])
        self.assertEqual(len(tmdb.calls_to("/collection/77")), 1)

    async def test_progress_is_reported_and_stored(self):
        tmdb = FakeTMDB()
        tmdb.add_collection(77, [1, 2])
        tmdb.listings["/movie/popular"] = [{"id": 1}]
        discovery = make_discovery(tmdb)
        steps = []

        def on_progress(progress):
            steps.append(progress.step)
            raise RuntimeError("listener broke")

        await discovery.discover_all(on_progress=on_progress)

        self.assertEqual(steps[0], "Quick scan of popular movies...")
        self.assertIn("Searching for Alien...", steps)
        self.assertIn("Sampling Action collections...", steps)
        self.assertEqual(steps[-1], "Discovery complete! Found 1 collections")
        progress = discovery.get_progress()
        self.assertEqual((progress.scanned, progress.found), (1, 1))

    async def test_cached_result_is_reused_until_forced(self):
        tmdb = FakeTMDB()
        tmdb.add_collection(77, [1, 2])
        tmdb.listings["/movie/popular"] = [{"id": 1}]
        discovery = make_discovery(tmdb)

        first = await discovery.discover_all()
        calls_after_first = len(tmdb.calls)
        second = await discovery.discover_all()

        self.assertEqual([c.id for c in second], [c.id for c in first])
        self.assertEqual(len(tmdb.calls), calls_after_first)
        self.assertEqual(discovery.get_progress().step, "Loaded 1 cached collections")

        await discovery.discover_all(force_refresh=True)
        self.assertGreater(len(tmdb.calls), calls_after_first)

    async def test_max_results_truncates(self):
        tmdb = FakeTMDB()
        tmdb.add_collection(1, [10, 11, 12])
        tmdb.add_collection(2, [20, 21])
        tmdb.listings["/movie/popular"] = [{"id": 20}, {"id": 10}]

        collections = await make_discovery(tmdb).discover_all(max_results=1)
        self.assertEqual([c.id for c in collections], [1])

    async def test_timeout_switches_to_backup_scan(self):
        tmdb = FakeTMDB()
        tmdb.add_collection(77, [1, 2])
        tmdb.listings["/movie/popular"] = [{"id": 1}]
        tmdb.delays["/trending/movie/week"] = 5
        cache = DiscoveryCache()
        discovery = make_discovery(tmdb, timeout=0.05, cache=cache)
        steps = []

        collections = await discovery.discover_all(on_progress=lambda p: steps.append(p.step))

        self.assertEqual([c.id for c in collections], [77])
        self.assertIn("Switching to backup discovery method...", steps)
        self.assertEqual(steps[-1], "Backup method found 1 collections")
        self.assertFalse(cache.is_valid())

    async def test_backup_failure_degrades_to_empty(self):
        tmdb = FakeTMDB()
        tmdb.delays["/trending/movie/week"] = 5
        tmdb.failures["/movie/popular"] = UpstreamError("down")
        discovery = make_discovery(tmdb, timeout=0.05)
        steps = []

        collections = await discovery.discover_all(on_progress=lambda p: steps.append(p.step))

        self.assertEqual(collections, [])
        self.assertEqual(steps[-1], "Backup discovery failed")

    async def test_upstream_outage_yields_empty_result(self):
        tmdb = FakeTMDB()
        for path in ("/movie/popular", "/trending/movie/week", "/discover/movie", "/search/collection"):
            tmdb.failures[path] = UpstreamError("down")

        self.assertEqual(await make_discovery(tmdb).discover_all(), [])


class TestDiscoveryEndToEnd(unittest.IsolatedAsyncioTestCase):
    async def test_three_popular_movies_one_trilogy(self):
        movies = {
            1: {"id": 1, "title": "G1 Part One", "release_date": "2001-05-01", "runtime": 100,
                "belongs_to_collection": {"id": 77, "name": "G1 Collection"}},
            2: {"id": 2, "title": "G1 Part Two", "release_date": "2003-05-01", "runtime": 110,
                "belongs_to_collection": {"id": 77, "name": "G1 Collection"}},
            3: {"id": 3, "title": "Standalone", "release_date": "2005-01-01", "runtime": 95,
                "belongs_to_collection": None},
            4: {"id": 4, "title": "G1 Part Three", "release_date": "2006-05-01", "runtime": 120,
                "belongs_to_collection": {"id": 77, "name": "G1 Collection"}},
        }
        collection = {
            "id": 77,
            "name": "G1 Collection",
            "parts": [{"id": 4, "title": "G1 Part Three"}, {"id": 1, "title": "G1 Part One"},
                      {"id": 2, "title": "G1 Part Two"}],
        }

        def handler(request):
            path = request.url.path.removeprefix("/3")
            if path == "/movie/popular":
                return httpx.Response(200, json={"page": 1, "results": [{"id": 1}, {"id": 2}, {"id": 3}]})
            if path.startswith("/movie/") and int(path.rsplit("/", 1)[1]) in movies:
                return httpx.Response(200, json=movies[int(path.rsplit("/", 1)[1])])
            if path == "/collection/77":
                return httpx.Response(200, json=collection)
            return httpx.Response(200, json={"page": 1, "results": []})

        client = TMDBClient(api_key="k", cache=ResponseCache(), backoff_seconds=0,
                            transport=httpx.MockTransport(handler))
        service = CollectionsService(client, item_delay=0, step_delay=0)
        self.addAsyncCleanup(service.aclose)

        result = await service.discover_all(max_results=10)

        self.assertEqual(len(result), 1)
        trilogy = result[0]
        self.assertEqual(trilogy.id, 77)
        self.assertEqual(trilogy.film_count, 3)
        self.assertEqual(trilogy.type, "trilogy")
        self.assertEqual(trilogy.status, "complete")
        self.assertEqual(trilogy.total_runtime, 330)
        self.assertEqual([p.title for p in trilogy.parts], ["G1 Part One", "G1 Part Two", "G1 Part Three"])
        self.assertEqual([c.id for c in service.get_cached_snapshot()], [77])
        self.assertEqual(service.get_progress().step, "Discovery complete! Found 1 collections")


if __name__ == "__main__":
    unittest.main()
