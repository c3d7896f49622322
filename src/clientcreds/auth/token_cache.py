"""Process-wide, thread-safe access token cache.

Tokens are keyed by the host of the *protected resource* a request targets,
so every request to ``api.example.com`` shares one token no matter which
token endpoint issued it. Entries never expire on their own: a token is
replaced when a fresh one is fetched (typically after a 401) and removed
only by :meth:`TokenCache.erase` or :meth:`TokenCache.clear`.

Every operation takes a single lock, so readers always observe a complete
``(access_token, token_type)`` pair. The lock is never held across network
calls; two threads that miss the cache for the same host may both fetch a
token, and the last :meth:`~TokenCache.put` wins.
"""

from __future__ import annotations

import logging
import threading
from typing import NamedTuple, Optional, Union

import httpx

logger = logging.getLogger(__name__)


def cache_key(url: Union[httpx.URL, str]) -> str:
    """Return the cache key for a protected-resource URL: its host."""
    return httpx.URL(url).host


class CachedToken(NamedTuple):
    """An access token together with its type (usually ``"Bearer"``)."""

    access_token: str
    token_type: str

    @property
    def authorization(self) -> str:
        """The ``Authorization`` header value, e.g. ``"Bearer abc"``."""
        return f"{self.token_type} {self.access_token}"


class TokenCache:
    """In-memory mapping of cache key to :class:`CachedToken`.

    Example::

        cache = TokenCache()
        cache.put("api.example.com", CachedToken("abc", "Bearer"))
        assert cache.get("api.example.com").authorization == "Bearer abc"
    """

    def __init__(self) -> None:
        self._entries: dict[str, CachedToken] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CachedToken]:
        """Return the token cached under *key*, or ``None`` on a miss."""
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, token: CachedToken) -> None:
        """Store *token* under *key*, replacing any previous entry."""
        token = CachedToken(*token)
        with self._lock:
            self._entries[key] = token
        logger.debug("Cached %s token for %s", token.token_type, key)

    def erase(self, key: str) -> None:
        """Remove the entry for *key*. Missing keys are ignored."""
        with self._lock:
            removed = self._entries.pop(key, None)
        if removed is not None:
            logger.debug("Erased cached token for %s", key)

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


default_cache = TokenCache()
"""The process-wide cache used when no cache is injected."""
