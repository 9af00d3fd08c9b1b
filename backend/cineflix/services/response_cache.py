"""
response_cache.py

Bounded TTL cache for raw TMDB responses, keyed by normalized request.
"""
import json
import time
import logging
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class ResponseCache:
    """Insertion-ordered TTL cache.

    Entries are stored serialized so every ``get`` hands out a fresh copy.
    Expiry is lazy (checked on read); at capacity the oldest inserted entry
    is evicted, which approximates LRU well enough for API responses.
    """

    def __init__(self, ttl: float = 5 * 60, max_entries: int = 100, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, stored_at = entry
        if self._clock() - stored_at > self.ttl:
            del self._entries[key]
            return None
        return json.loads(payload)

    def set(self, key: str, value: Any) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug(f"Response cache full, evicted {oldest}")
        self._entries[key] = (json.dumps(value), self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
