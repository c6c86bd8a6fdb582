"""Python client for the admin settings API, plus the form model behind each settings tab.

The forms mirror how the admin UI behaves: hydrate once from the full
snapshot (registry defaults fill absent keys), keep edits locally until
save, submit every tracked field as one batch, and keep the edits on
failure so the operator can retry.
"""

import logging
import time
from typing import Any

import httpx

from argufight.services.settings_registry import FEATURE_GROUPS, SettingsRegistry, registry

logger = logging.getLogger(__name__)

FEATURE_PROPAGATION_NOTICE = "Changes take effect within 5 minutes"


class SettingsClientError(Exception):
    """The settings API answered with an error."""

    def __init__(self, message: str, status_code: int | None = None, failed: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.failed = failed or {}


class AdminSettingsClient:
    """Async client for /api/admin/settings."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout, headers=headers)
        if client is not None and token:
            self.client.headers.update(headers)
        self.last_etag: str | None = None

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("error") if isinstance(body, dict) else None
        raise SettingsClientError(
            message or f"Request failed with status {response.status_code}",
            status_code=response.status_code,
            failed=body.get("failed") if isinstance(body, dict) else None,
        )

    async def fetch_all(self, cache_bust: bool = True) -> dict[str, str]:
        """Full stored snapshot. Remembers the ETag for optimistic saves."""
        params = {"t": str(int(time.time() * 1000))} if cache_bust else None
        response = await self.client.get("/api/admin/settings", params=params)
        self._raise_for_error(response)
        self.last_etag = response.headers.get("ETag")
        return response.json()

    async def fetch_registry(self) -> list[dict[str, Any]]:
        response = await self.client.get("/api/admin/settings/registry")
        self._raise_for_error(response)
        return response.json()

    async def save(self, values: dict[str, str], etag: str | None = None) -> dict[str, Any]:
        """
        Submit one batch of settings.

        Raises:
            SettingsClientError: on any non-2xx answer (409 when ``etag`` is stale)
        """
        headers = {"If-Match": etag} if etag else None
        response = await self.client.post("/api/admin/settings", json=values, headers=headers)
        self._raise_for_error(response)
        return response.json()

    async def test(self, provider: str) -> dict[str, Any]:
        """Run a provider connection test ("deepseek", "resend", "google-analytics", "stripe")."""
        response = await self.client.post(f"/api/admin/settings/test-{provider}")
        self._raise_for_error(response)
        return response.json()


class SettingsForm:
    """Editable local copy of a group of settings."""

    success_message = "Settings saved successfully"

    def __init__(self, keys: list[str], settings_registry: SettingsRegistry | None = None):
        self.registry = settings_registry or registry
        unknown = [key for key in keys if key not in self.registry]
        if unknown:
            raise ValueError(f"Unregistered setting keys: {', '.join(unknown)}")
        self.keys = list(keys)
        self.values: dict[str, Any] = self.defaults()
        self.saved: dict[str, Any] = dict(self.values)
        self.etag: str | None = None
        self.last_error: str | None = None
        self.saving = False

    def defaults(self) -> dict[str, Any]:
        return {key: self.registry.get_definition(key).default for key in self.keys}

    def hydrate(self, snapshot: dict[str, str]) -> None:
        """Populate every field from a snapshot, using defaults for absent keys."""
        self.values = {key: self.registry.decode(key, snapshot.get(key)) for key in self.keys}
        self.saved = dict(self.values)

    async def load(self, client: AdminSettingsClient) -> None:
        self.hydrate(await client.fetch_all())
        self.etag = client.last_etag

    def get(self, key: str) -> Any:
        return self.values[key]

    def set_field(self, key: str, value: Any) -> None:
        """Record a local edit. Nothing is sent until save()."""
        if key not in self.values:
            raise KeyError(f"{key} is not part of this form")
        self.values[key] = value

    def dirty_fields(self) -> dict[str, Any]:
        """Fields whose local value differs from the last loaded or saved state."""
        return {key: value for key, value in self.values.items() if self.saved.get(key) != value}

    def serialize(self) -> dict[str, str]:
        """Every tracked field as the string the store expects."""
        return {key: self.registry.encode(key, value) for key, value in self.values.items()}

    async def save(self, client: AdminSettingsClient, refetch: bool = True, use_etag: bool = False) -> bool:
        """
        Submit all fields as one batch.

        On failure the local edits are kept and ``last_error`` holds the
        server's message. Returns True once the batch is accepted, even if
        the confirming re-fetch fails; that error lands in ``last_error``.
        """
        self.saving = True
        try:
            await client.save(self.serialize(), etag=self.etag if use_etag else None)
        except SettingsClientError as e:
            self.last_error = e.message
            logger.warning(f"Saving settings failed: {e.message}")
            return False
        except httpx.HTTPError as e:
            self.last_error = str(e) or "Failed to save settings"
            logger.warning(f"Saving settings failed: {self.last_error}")
            return False
        finally:
            self.saving = False

        self.last_error = None
        self.saved = dict(self.values)
        if refetch:
            try:
                await self.load(client)
            except SettingsClientError as e:
                self.last_error = f"Saved, but reloading failed: {e.message}"
                logger.warning(self.last_error)
            except httpx.HTTPError as e:
                self.last_error = f"Saved, but reloading failed: {e}"
                logger.warning(self.last_error)
        return True

    def reset_to_defaults(self) -> None:
        """Put every field back to its registry default (local only)."""
        self.values = self.defaults()


class FeaturesForm(SettingsForm):
    """Feature-flag toggles, grouped as in the admin Features tab."""

    success_message = f"Feature flags saved. {FEATURE_PROPAGATION_NOTICE}"

    def __init__(self, settings_registry: SettingsRegistry | None = None):
        super().__init__([d.key for group in FEATURE_GROUPS.values() for d in group], settings_registry)

    def groups(self) -> dict[str, dict[str, bool]]:
        return {
            name: {d.key: bool(self.values[d.key]) for d in flags}
            for name, flags in FEATURE_GROUPS.items()
        }

    def toggle(self, key: str) -> bool:
        self.set_field(key, not self.values[key])
        return self.values[key]


SYSTEM_SETTINGS_KEYS = [
    "VERDICT_TIE_THRESHOLD",
    "VERDICT_DEADLINE_PENALTY_ENABLED",
    "VERDICT_AUTO_GENERATE",
    "ADS_PLATFORM_FEE_BRONZE",
    "ADS_PLATFORM_FEE_SILVER",
    "ADS_PLATFORM_FEE_GOLD",
    "ADS_PLATFORM_FEE_PLATINUM",
    "ADS_ESCROW_HOLD_DAYS",
    "ADS_APPROVAL_REQUIRED",
    "ADS_CREATOR_MARKETPLACE_ENABLED",
    "BELT_FREE_CHALLENGES_PER_WEEK",
    "BELT_CHALLENGE_GRACE_PERIOD_DAYS",
    "BELT_AUTO_EXPIRE_ENABLED",
    "TOURNAMENT_AUTO_START_ENABLED",
    "TOURNAMENT_AUTO_PROGRESSION_ENABLED",
    "TOURNAMENT_MIN_PARTICIPANTS",
    "TOURNAMENT_DEFAULT_PRIZE_SPLIT",
    "NOTIFICATION_EMAIL_ENABLED",
    "NOTIFICATION_PUSH_ENABLED",
    "NOTIFICATION_TURN_REMINDERS_ENABLED",
    "NOTIFICATION_VERDICT_ALERTS_ENABLED",
    "AI_BOT_AUTO_ACCEPT_ENABLED",
    "AI_BOT_RESPONSE_MIN_DELAY",
    "AI_BOT_RESPONSE_MAX_DELAY",
    "AI_BOT_DEFAULT_PERSONALITY",
]


class SystemSettingsForm(SettingsForm):
    """Verdict, advertising, belt, tournament, notification and AI bot tunables."""

    def __init__(self, settings_registry: SettingsRegistry | None = None):
        super().__init__(SYSTEM_SETTINGS_KEYS, settings_registry)
