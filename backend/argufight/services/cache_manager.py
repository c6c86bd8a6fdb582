"""In-process TTL cache for values read on the serving path.

Entries live only in this process. A second worker keeps its own copy and
sees admin changes once its entry ages past the TTL.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from argufight.utils.timezone import get_now

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value stamped with the time it was loaded."""

    value: Any
    ttl_seconds: int
    loaded_at: datetime = field(default_factory=get_now)

    def age_seconds(self) -> float:
        return (get_now() - self.loaded_at).total_seconds()

    @property
    def stale(self) -> bool:
        # ttl 0 pins the entry until it is deleted
        return self.ttl_seconds > 0 and self.age_seconds() > self.ttl_seconds


class CacheManager:
    """Keyed TTL cache with one loader in flight per key."""

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}
        self._loaders: dict[str, asyncio.Lock] = {}
        self._guard = asyncio.Lock()
        self.hits = 0
        self.misses = 0

    def _lookup(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is not None and entry.stale:
            del self._entries[key]
            logger.debug(f"Cache entry '{key}' expired after {entry.ttl_seconds}s")
            return None
        return entry

    async def get(self, key: str) -> Any | None:
        """Cached value, or None when the key is missing or stale."""
        entry = self._lookup(key)
        return None if entry is None else entry.value

    async def set(self, key: str, value: Any, ttl_seconds: int = 60):
        self._entries[key] = CacheEntry(value, ttl_seconds)

    async def delete(self, key: str):
        if self._entries.pop(key, None) is not None:
            logger.debug(f"Cache entry '{key}' invalidated")

    async def clear(self):
        self._entries.clear()
        self._loaders.clear()

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl_seconds: int = 60,
    ) -> Any:
        """
        Return the cached value for ``key``, loading it with ``compute_fn`` on a miss.

        Callers that miss at the same time wait on one load instead of each
        querying the store.
        """
        entry = self._lookup(key)
        if entry is not None:
            self.hits += 1
            return entry.value

        async with self._guard:
            loader = self._loaders.setdefault(key, asyncio.Lock())

        async with loader:
            entry = self._lookup(key)
            if entry is not None:
                self.hits += 1
                return entry.value

            self.misses += 1
            value = await compute_fn()
            self._entries[key] = CacheEntry(value, ttl_seconds)
            return value

    def get_stats(self) -> dict[str, Any]:
        stale = sum(1 for entry in self._entries.values() if entry.stale)
        return {
            "total_entries": len(self._entries),
            "active_entries": len(self._entries) - stale,
            "expired_entries": stale,
            "hits": self.hits,
            "misses": self.misses,
        }


_cache_manager: CacheManager | None = None


def get_cache() -> CacheManager:
    """Process-wide cache shared by the feature flag reader."""
    global _cache_manager
    if _cache_manager is None:
        _cache_manager = CacheManager()
    return _cache_manager
