"""Settings manager service for the admin settings store."""

import hashlib
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from argufight.config import settings as app_settings
from argufight.errors import (
    ArguFightError,
    SettingConflictError,
    SettingValidationError,
    UnknownSettingError,
)
from argufight.models import AdminSetting
from argufight.services.settings_registry import SettingsRegistry, registry
from argufight.utils.log_redaction import is_sensitive_key, mask_value, redact_settings

logger = logging.getLogger(__name__)

AI_DELAY_KEYS = ("AI_BOT_RESPONSE_MIN_DELAY", "AI_BOT_RESPONSE_MAX_DELAY")


@dataclass
class BatchResult:
    """Outcome of a batched write: which keys landed and which did not."""

    updated: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class SettingsManager:
    """Manage admin settings with typed access."""

    def __init__(self, db: AsyncSession, settings_registry: SettingsRegistry | None = None):
        """Initialize settings manager."""
        self.db = db
        self.registry = settings_registry or registry

    async def _row(self, key: str) -> AdminSetting | None:
        result = await self.db.execute(select(AdminSetting).where(AdminSetting.key == key))
        return result.scalar_one_or_none()

    async def get(self, key: str) -> str | None:
        """Get the stored string for a key, or None when not configured."""
        setting = await self._row(key)
        return setting.value if setting else None

    async def get_setting(self, key: str) -> AdminSetting | None:
        """Get the full row (value plus audit metadata)."""
        return await self._row(key)

    async def get_value(self, key: str) -> Any:
        """Get a typed value, falling back to the registry default."""
        return self.registry.decode(key, await self.get(key))

    async def get_int(self, key: str, default: int | None = None) -> int | None:
        """Get a setting as integer."""
        value = await self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (ValueError, TypeError):
            return default

    async def get_bool(self, key: str, default: bool | None = None) -> bool | None:
        """Get a setting as boolean."""
        value = await self.get(key)
        if value is None:
            return default
        return value.strip().lower() in ("true", "1", "yes", "on")

    async def get_json(self, key: str, default: Any = None) -> Any:
        """Get a setting as JSON."""
        value = await self.get(key)
        if value is None or value == "":
            return default
        try:
            return json.loads(value)
        except (ValueError, TypeError):
            return default

    async def get_credential(self, key: str) -> str | None:
        """
        Get an integration credential.

        Stored values win; the process environment is the fallback so a
        deployment can ship keys before an admin saves them.
        """
        value = await self.get(key)
        if value:
            return value
        return os.getenv(key) or None

    async def get_many(self, keys: list[str]) -> dict[str, str | None]:
        """
        Get multiple setting values in a single query.

        Args:
            keys: List of setting keys to retrieve

        Returns:
            Dictionary mapping keys to stored strings (None when not configured)
        """
        if not keys:
            return {}

        result = await self.db.execute(select(AdminSetting).where(AdminSetting.key.in_(keys)))
        rows = {setting.key: setting.value for setting in result.scalars()}
        return {key: rows.get(key) for key in keys}

    async def get_all(self) -> dict[str, str]:
        """Get every stored setting as a dictionary (no defaults applied)."""
        result = await self.db.execute(select(AdminSetting).order_by(AdminSetting.key))
        return {setting.key: setting.value for setting in result.scalars()}

    async def snapshot_etag(self) -> str:
        """Opaque token that changes whenever any stored setting changes."""
        result = await self.db.execute(
            select(AdminSetting.key, AdminSetting.version).order_by(AdminSetting.key)
        )
        digest = hashlib.sha256()
        for key, version in result.all():
            digest.update(f"{key}:{version};".encode())
        return f'"{digest.hexdigest()[:32]}"'

    def normalize(self, key: str, value: Any) -> str:
        """
        Validate a value for a key and return the string that will be stored.

        Raises:
            UnknownSettingError: key is unregistered and strict key checking is on
            SettingValidationError: value does not fit the key's definition
        """
        if key not in self.registry:
            if app_settings.strict_setting_keys:
                raise UnknownSettingError(key)
            logger.warning(f"Writing unregistered setting key: {key}")
        if not isinstance(value, str):
            value = self.registry.encode(key, value)
        return self.registry.validate(key, value)

    async def set(
        self,
        key: str,
        value: Any,
        updated_by: str | None = None,
        expected_version: int | None = None,
    ) -> AdminSetting:
        """
        Upsert a setting value with validation.

        Args:
            key: Setting key
            value: New value (strings stored as-is after validation)
            updated_by: User id recorded in the audit fields
            expected_version: Reject the write unless the row is at this version
                (0 means "must not exist yet")

        Raises:
            SettingValidationError, UnknownSettingError, SettingConflictError
        """
        validated_value = self.normalize(key, value)

        setting = await self._row(key)
        current_version = setting.version if setting else 0
        if expected_version is not None and expected_version != current_version:
            raise SettingConflictError(
                f"{key} was modified by someone else (version {current_version}, "
                f"expected {expected_version})"
            )

        if setting:
            setting.value = validated_value
            setting.version = current_version + 1
            setting.updated_by = updated_by
        else:
            setting = AdminSetting(
                key=key,
                value=validated_value,
                value_type=self.registry.value_type(key),
                description=self._get_description(key),
                category=self._get_category(key),
                encrypted=self._is_encrypted(key),
                version=1,
                updated_by=updated_by,
            )
            self.db.add(setting)

        await self.db.commit()
        await self.db.refresh(setting)

        shown = mask_value(validated_value) if setting.encrypted else validated_value
        logger.info(f"Setting {key} = {shown!r} (v{setting.version}, by {updated_by or 'system'})")
        return setting

    async def set_many(self, values: dict[str, Any], updated_by: str | None = None) -> BatchResult:
        """
        Apply a batch of upserts independently.

        Each key is validated and committed on its own; a failing key is
        rolled back and reported without affecting the others.
        """
        logger.debug(f"Batch save requested: {redact_settings(values)}")
        outcome = BatchResult()
        pending: dict[str, str] = {}

        for key, value in values.items():
            try:
                pending[key] = self.normalize(key, value)
            except ArguFightError as e:
                outcome.failed[key] = e.message

        if any(key in pending for key in AI_DELAY_KEYS):
            merged = await self.get_all()
            merged.update(pending)
            try:
                self.registry.check_cross_field(merged)
            except SettingValidationError as e:
                for key in AI_DELAY_KEYS:
                    if key in pending:
                        del pending[key]
                        outcome.failed[key] = e.message

        for key, value in pending.items():
            try:
                await self.set(key, value, updated_by=updated_by)
                outcome.updated.append(key)
            except ArguFightError as e:
                await self.db.rollback()
                outcome.failed[key] = e.message
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Failed to write setting {key}: {e}")
                outcome.failed[key] = "Failed to save setting"

        if outcome.failed:
            logger.warning(f"Batch save: {len(outcome.updated)} updated, failed: {sorted(outcome.failed)}")
        return outcome

    async def delete(self, key: str) -> bool:
        """Remove a stored setting so consumers fall back to the default."""
        setting = await self._row(key)
        if not setting:
            return False
        await self.db.delete(setting)
        await self.db.commit()
        logger.info(f"Setting {key} deleted")
        return True

    def _get_description(self, key: str) -> str | None:
        definition = self.registry.get_definition(key)
        return definition.description if definition else None

    def _get_category(self, key: str) -> str:
        """Resolve category for a given setting key."""
        definition = self.registry.get_definition(key)
        if definition:
            return definition.category
        return "advertising" if key.startswith("ADS_") else "general"

    def _is_encrypted(self, key: str) -> bool:
        definition = self.registry.get_definition(key)
        if definition:
            return definition.sensitive
        return is_sensitive_key(key)
