import os
import unittest
from unittest.mock import patch

from cineflix.core.config import Settings
from cineflix.services.collections_service import CollectionsService


class TestSettings(unittest.IsolatedAsyncioTestCase):
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()
        self.assertEqual(settings.tmdb_max_attempts, 2)
        self.assertEqual(settings.response_cache_max_entries, 100)
        self.assertEqual(settings.response_cache_ttl_seconds, 300)
        self.assertEqual(settings.discovery_cache_ttl_seconds, 7200)
        self.assertEqual(settings.discovery_timeout_seconds, 45.0)

    def test_environment_overrides(self):
        env = {"TMDB_API_KEY": "abc123", "DISCOVERY_TIMEOUT_SECONDS": "10", "PAGINATION_PAGE_BUDGET": "5"}
        with patch.dict(os.environ, env, clear=True):
            settings = Settings()
        self.assertEqual(settings.tmdb_api_key, "abc123")
        self.assertEqual(settings.discovery_timeout_seconds, 10.0)
        self.assertEqual(settings.pagination_page_budget, 5)

    async def test_service_is_wired_from_settings(self):
        with patch.dict(os.environ, {"RESPONSE_CACHE_MAX_ENTRIES": "7", "DISCOVERY_CACHE_TTL_SECONDS": "60"}, clear=True):
            settings = Settings()
        service = CollectionsService.from_settings(settings)
        self.addAsyncCleanup(service.aclose)

        self.assertEqual(service.client.cache.max_entries, 7)
        self.assertEqual(service.discovery_cache.ttl, 60)
        self.assertEqual(service.cursor.page_budget, 100)
        self.assertIs(service.discovery.sources, service.cursor.sources)


if __name__ == "__main__":
    unittest.main()
