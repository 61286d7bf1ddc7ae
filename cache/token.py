"""
cache/token.py -- Process-wide bearer token cache for the credentialing platform.

One shared token (not per user). It is acquired lazily on first need and
replaced when it expires; it is never revoked. A failed acquisition yields
None and leaves the cache empty, so the next caller simply tries again.

Concurrency: get_token() holds a lock across check -> acquire -> store. Under
a cold cache, concurrent callers queue on the lock; the first one acquires,
the rest find the fresh token when they get the lock. Callers run in worker
threads (see core/pipeline.py), hence threading.Lock rather than asyncio.Lock.

Usage:
    cache = TokenCache(credential_token_fetcher(settings), safety_margin=7200)
    token = cache.get_token()     # str or None
    cache.invalidate()            # after the platform rejects the token
"""

import logging
import threading
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Optional

from core.config import Settings, get_settings
from core.errors import AuthFailure
from core.fetcher import request_token

logger = logging.getLogger("vetdir.token")

_DEFAULT_MARGIN = 2 * 60 * 60  # 2 hours in seconds


@dataclass(frozen=True)
class CachedToken:
    value: str
    expires_at: float  # clock() reading after which the token is not handed out


class TokenCache:
    def __init__(
        self,
        fetch_token: Callable[[], dict[str, Any]],
        safety_margin: int = _DEFAULT_MARGIN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch_token = fetch_token
        self.safety_margin = safety_margin
        self._clock = clock
        self._lock = threading.Lock()
        self._token: Optional[CachedToken] = None
        self.requests_issued = 0

    def get_token(self) -> Optional[str]:
        """Return a valid bearer token, acquiring one if needed. None on failure."""
        with self._lock:
            now = self._clock()
            if self._token is not None and now < self._token.expires_at:
                return self._token.value

            self._token = None
            self.requests_issued += 1
            try:
                payload = self._fetch_token()
                value, ttl = _parse_token_response(payload)
            except AuthFailure as e:
                logger.warning("Credentialing platform token unavailable: %s", e.reason)
                return None

            self._token = CachedToken(value=value, expires_at=now + ttl - self._margin_for(ttl))
            logger.info("Credentialing platform token acquired (ttl=%ds)", ttl)
            return value

    def invalidate(self) -> None:
        """Drop the cached token so the next get_token() re-authenticates."""
        with self._lock:
            self._token = None

    def _margin_for(self, ttl: int) -> int:
        # Never let the margin consume more than half the server lifetime.
        return min(self.safety_margin, ttl // 2)


def _parse_token_response(payload: dict[str, Any]) -> tuple[str, int]:
    try:
        value = str(payload["access_token"])
        ttl = int(payload["expires_in"])
    except (KeyError, TypeError, ValueError) as e:
        raise AuthFailure("credential", "malformed token response") from e
    if not value or ttl <= 0:
        raise AuthFailure("credential", "token response has no usable lifetime")
    return value, ttl


def credential_token_fetcher(settings: Settings) -> Callable[[], dict[str, Any]]:
    """Bind request_token() to the configured endpoint and credentials."""

    def _fetch() -> dict[str, Any]:
        return request_token(
            settings.credential_token_url,
            settings.credential_username,
            settings.credential_password,
            settings.credential_scope,
            timeout=settings.http_timeout_seconds,
        )

    return _fetch


@lru_cache
def get_token_cache() -> TokenCache:
    """Return the process-wide TokenCache, created on first use."""
    settings = get_settings()
    return TokenCache(
        credential_token_fetcher(settings),
        safety_margin=settings.token_safety_margin_seconds,
    )
