"""
TMDB client for Cineflix.
- Async httpx client shared for the lifetime of the service.
- Sanitizes outbound paths and query params before anything reaches TMDB.
- Consults the response cache first; cache hits never touch the network.
- Retries once on network errors, timeouts and 5xx with linear backoff.
"""
import math
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit

import httpx

from cineflix.services.rate_limit import RequestThrottle, with_backoff
from cineflix.services.response_cache import ResponseCache

TMDB_BASE = "https://api.themoviedb.org/3"
logger = logging.getLogger(__name__)

_MAX_SCALAR_LENGTH = 500
_MAX_ITEM_LENGTH = 200


class UpstreamError(Exception):
    """TMDB could not be reached or answered with a server error."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.code = code


class UpstreamClientError(UpstreamError):
    """TMDB rejected the request (4xx). Never retried."""

    @property
    def not_found(self) -> bool:
        return self.status == 404


def sanitize_path(path: Any) -> Tuple[str, Dict[str, str]]:
    """Reduce ``path`` to a clean absolute path plus any query it carried.

    Scheme and host are discarded and ``..`` segments removed so a caller can
    never point the client at another host or climb out of the API root.
    """
    if not path or not isinstance(path, str):
        return "/", {}
    parts = urlsplit(path.strip())
    segments = [seg for seg in parts.path.split("/") if seg and seg not in ("..", ".")]
    return "/" + "/".join(segments), dict(parse_qsl(parts.query))


def _is_valid_key(key: Any) -> bool:
    return isinstance(key, str) and bool(key) and all(ch.isascii() and (ch.isalnum() or ch in "_.-") for ch in key)


def sanitize_params(params: Any) -> Dict[str, Any]:
    """Whitelist keys and coerce values to primitives TMDB understands.

    Bad entries are dropped rather than raised so a single malformed value
    cannot break a discovery run.
    """
    if not isinstance(params, dict):
        return {}
    clean: Dict[str, Any] = {}
    for key, val in params.items():
        if not _is_valid_key(key) or val is None:
            continue
        if isinstance(val, bool):
            clean[key] = val
        elif isinstance(val, str):
            clean[key] = val.strip()[:_MAX_SCALAR_LENGTH]
        elif isinstance(val, (int, float)):
            if math.isfinite(val):
                clean[key] = val
        elif isinstance(val, (list, tuple)):
            items = []
            for item in val:
                if isinstance(item, str):
                    item = item.strip()[:_MAX_ITEM_LENGTH]
                elif isinstance(item, (int, float)) and not isinstance(item, bool) and math.isfinite(item):
                    item = str(item)
                else:
                    item = ""
                if item:
                    items.append(item)
            if items:
                clean[key] = ",".join(items)
        # dicts and other objects are ignored to avoid injection
    return clean


def build_cache_key(path: str, params: Dict[str, Any]) -> str:
    return f"{path}?{urlencode(sorted(params.items()))}"


def is_retryable(exc: Exception) -> bool:
    """Network-level failures, timeouts and 5xx are worth a second attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        return 500 <= exc.response.status_code < 600
    return isinstance(exc, httpx.TransportError)


class TMDBClient:
    """Rate-limited, cached TMDB client.

    Args:
        api_key: TMDB v3 api key, sent as the ``api_key`` query param.
        cache: response cache consulted before every request.
        transport: optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = TMDB_BASE,
        cache: Optional[ResponseCache] = None,
        timeout: float = 8.0,
        max_attempts: int = 2,
        backoff_seconds: float = 0.2,
        min_request_interval: float = 0.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.cache = cache if cache is not None else ResponseCache()
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.throttle = RequestThrottle(min_request_interval)
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self.requests_sent = 0

    async def request(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET ``path`` from TMDB and return the parsed JSON body.

        Raises:
            UpstreamClientError: TMDB answered 4xx.
            UpstreamError: network failure, timeout or 5xx after all attempts.
        """
        safe_path, path_params = sanitize_path(path)
        safe_params = sanitize_params({**path_params, **(params or {})})
        cache_key = build_cache_key(safe_path, safe_params)

        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        query = dict(safe_params)
        if self.api_key:
            query["api_key"] = self.api_key

        async def make_request() -> httpx.Response:
            await self.throttle.acquire()
            self.requests_sent += 1
            resp = await self._http.get(safe_path, params=query)
            resp.raise_for_status()
            return resp

        try:
            resp = await with_backoff(
                make_request,
                max_attempts=self.max_attempts,
                should_retry=is_retryable,
                backoff_seconds=self.backoff_seconds,
            )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            error_cls = UpstreamClientError if 400 <= status < 500 else UpstreamError
            raise error_cls(f"TMDB API error (status {status})", status=status, code="http_status") from e
        except httpx.TimeoutException as e:
            raise UpstreamError("TMDB request timed out", code="timeout") from e
        except httpx.TransportError as e:
            raise UpstreamError("TMDB network error", code=type(e).__name__) from e
        except httpx.RequestError as e:
            # decoding failures, redirect loops
            raise UpstreamError("TMDB request failed", code=type(e).__name__) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("TMDB returned an invalid JSON payload", status=resp.status_code, code="invalid_json") from e

        if resp.status_code == 200:
            self.cache.set(cache_key, data)
        return data

    async def aclose(self) -> None:
        await self._http.aclose()
