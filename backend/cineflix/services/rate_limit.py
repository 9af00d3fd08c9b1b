"""
rate_limit.py

In-process request throttle and bounded linear backoff for TMDB calls.
"""
import time
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class RequestThrottle:
    """Enforces a minimum interval between outbound requests."""

    def __init__(self, min_interval: float = 0.0, clock: Callable[[], float] = time.monotonic):
        self.min_interval = min_interval
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_request: Optional[float] = None

    async def acquire(self) -> None:
        if self.min_interval <= 0:
            return
        async with self._lock:
            now = self._clock()
            if self._last_request is not None:
                wait = self._last_request + self.min_interval - now
                if wait > 0:
                    await asyncio.sleep(wait)
                    now = self._clock()
            self._last_request = now


async def with_backoff(
    func: Callable[[], Awaitable[Any]],
    max_attempts: int = 2,
    should_retry: Callable[[Exception], bool] = lambda exc: False,
    backoff_seconds: float = 0.2,
    service: str = "tmdb_api",
):
    """Execute ``func`` with linear backoff (backoff_seconds * attempt).

    Only failures accepted by ``should_retry`` are retried; anything else,
    or the last failure once attempts are exhausted, is re-raised.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            return await func()
        except Exception as e:
            if attempt >= max_attempts or not should_retry(e):
                raise
            delay = backoff_seconds * attempt
            logger.warning(f"{service} attempt {attempt}/{max_attempts} failed ({e}), retrying in {delay:.2f}s")
            await asyncio.sleep(delay)
    raise RuntimeError(f"{service}: max_attempts must be at least 1")
