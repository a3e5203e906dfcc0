"""In-process read-through cache with a fixed time-to-live.

One ``TTLCache`` instance is created per application and handed to the code
that needs it; there is no module-level cache. Entries simply expire, nothing
else invalidates them except the explicit ``invalidate*``/``clear`` calls.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

logger = structlog.get_logger()


@dataclass
class _Entry:
    value: Any
    expires_at: float


class TTLCache:
    """Key/value cache whose entries expire ``ttl_seconds`` after being set."""

    def __init__(
        self,
        ttl_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key`` or ``default``."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return default
        if entry.expires_at <= self._clock():
            del self._entries[key]
            self._misses += 1
            return default
        self._hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.expires_at > self._clock()

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached value, or await ``loader`` and cache its result.

        Concurrent misses on the same key may each call the loader; the last
        result written wins.
        """
        sentinel = object()
        value = self.get(key, sentinel)
        if value is not sentinel:
            return value

        value = await loader()
        self.set(key, value)
        logger.debug("cache_loaded", key=key)
        return value

    def invalidate(self, key: str) -> bool:
        """Drop ``key``; returns whether it was present."""
        removed = self._entries.pop(key, None) is not None
        if removed:
            logger.info("cache_invalidated", key=key)
        return removed

    def invalidate_prefix(self, prefix: str) -> int:
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.info("cache_prefix_invalidated", prefix=prefix, count=len(keys))
        return len(keys)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        logger.info("cache_cleared", count=count)
        return count

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def stats(self) -> dict[str, Any]:
        """Size (after purging expired entries) and hit/miss counters."""
        self.purge_expired()
        return {
            "size": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "ttl_seconds": self.ttl_seconds,
            "keys": sorted(self._entries),
        }
