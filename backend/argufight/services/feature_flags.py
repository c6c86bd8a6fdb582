"""Cached feature-flag reader for live-serving code paths.

Request handlers outside the admin panel must not hit the settings table on
every call. They read a snapshot of the whole store that is refreshed at most
once per ``settings_cache_ttl`` seconds, so an admin change reaches every
process within that window. Writes made through this process's admin API
drop the snapshot immediately.
"""

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from argufight import database
from argufight.config import settings
from argufight.services.cache_manager import CacheManager, get_cache
from argufight.services.settings_manager import SettingsManager
from argufight.services.settings_registry import BOOL, SettingsRegistry, registry

logger = logging.getLogger(__name__)

SNAPSHOT_CACHE_KEY = "admin_settings:snapshot"


class FeatureFlags:
    """Read-through view of the settings store with TTL caching."""

    def __init__(
        self,
        cache: CacheManager | None = None,
        ttl_seconds: int | None = None,
        session_factory: Callable[[], AsyncSession] | None = None,
        settings_registry: SettingsRegistry | None = None,
    ):
        self.cache = cache or get_cache()
        self.ttl_seconds = settings.settings_cache_ttl if ttl_seconds is None else ttl_seconds
        self._session_factory = session_factory
        self.registry = settings_registry or registry

    async def _load_snapshot(self) -> dict[str, str]:
        factory = self._session_factory or database.async_session_maker
        async with factory() as session:
            snapshot = await SettingsManager(session, self.registry).get_all()
        logger.debug(f"Refreshed settings snapshot ({len(snapshot)} keys)")
        return snapshot

    async def snapshot(self) -> dict[str, str]:
        """Stored key/value map, at most ``ttl_seconds`` old."""
        return await self.cache.get_or_compute(
            SNAPSHOT_CACHE_KEY, self._load_snapshot, ttl_seconds=self.ttl_seconds
        )

    async def get(self, key: str) -> Any:
        """Typed value for a key with the registry default applied."""
        return self.registry.decode(key, (await self.snapshot()).get(key))

    async def is_enabled(self, key: str) -> bool:
        """Whether a boolean flag is on. Unregistered keys default to off."""
        definition = self.registry.get_definition(key)
        raw = (await self.snapshot()).get(key)
        if definition is None or definition.type != BOOL:
            return raw is not None and raw.strip().lower() in ("true", "1", "yes", "on")
        return bool(self.registry.decode(key, raw))

    async def all_features(self) -> dict[str, bool]:
        """Effective state of every registered feature flag."""
        snapshot = await self.snapshot()
        return {
            definition.key: bool(self.registry.decode(definition.key, snapshot.get(definition.key)))
            for definition in self.registry.feature_flags()
        }

    async def invalidate(self) -> None:
        """Drop the cached snapshot so the next read goes to the store."""
        await self.cache.delete(SNAPSHOT_CACHE_KEY)


_feature_flags: FeatureFlags | None = None


def get_feature_flags() -> FeatureFlags:
    """Get or create the process-wide feature flag reader."""
    global _feature_flags
    if _feature_flags is None:
        _feature_flags = FeatureFlags()
    return _feature_flags
