"""Tests for admin settings API endpoints.

This module tests:
- Snapshot reads with ETag
- Batched upserts with per-key failures
- Optimistic concurrency via If-Match
- Registry and user-limit endpoints
- Authorization (401 anonymous, 403 non-admin)
"""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from argufight.services.settings_manager import SettingsManager


class TestGetSettings:
    """Test GET /api/admin/settings endpoint."""

    @pytest.mark.asyncio
    async def test_fresh_store_returns_empty_map(self, authenticated_client: AsyncClient):
        """Nothing is seeded; the UI applies defaults."""
        response = await authenticated_client.get("/api/admin/settings")

        assert response.status_code == 200
        assert response.json() == {}
        assert response.headers["ETag"]
        assert response.headers["Cache-Control"] == "no-store"

    @pytest.mark.asyncio
    async def test_cache_buster_ignored(self, authenticated_client: AsyncClient, db_session: AsyncSession):
        """The t query parameter does not change the answer."""
        await SettingsManager(db_session).set("FEATURE_BLOG_ENABLED", "false")

        response = await authenticated_client.get("/api/admin/settings?t=1712345678901")

        assert response.status_code == 200
        assert response.json() == {"FEATURE_BLOG_ENABLED": "false"}

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client: AsyncClient):
        """Anonymous callers get 401 with the error envelope."""
        response = await client.get("/api/admin/settings")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_requires_admin(self, user_client: AsyncClient):
        """Signed-in non-admins get 403."""
        response = await user_client.get("/api/admin/settings")

        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden"}

    @pytest.mark.asyncio
    async def test_revoked_admin_loses_access(
        self, authenticated_client: AsyncClient, admin_user, db_session: AsyncSession
    ):
        """Admin rights are read from the database on every request."""
        admin_user.is_admin = False
        await db_session.commit()

        response = await authenticated_client.get("/api/admin/settings")

        assert response.status_code == 403


class TestSaveSettings:
    """Test POST /api/admin/settings endpoint."""

    @pytest.mark.asyncio
    async def test_save_and_read_back(self, authenticated_client: AsyncClient):
        """Saved values appear in the next snapshot."""
        response = await authenticated_client.post(
            "/api/admin/settings",
            json={"VERDICT_TIE_THRESHOLD": "7", "FEATURE_TOURNAMENTS_ENABLED": "false"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert sorted(response.json()["updated"]) == ["FEATURE_TOURNAMENTS_ENABLED", "VERDICT_TIE_THRESHOLD"]

        snapshot = (await authenticated_client.get("/api/admin/settings")).json()
        assert snapshot == {"FEATURE_TOURNAMENTS_ENABLED": "false", "VERDICT_TIE_THRESHOLD": "7"}

    @pytest.mark.asyncio
    async def test_json_booleans_stored_as_strings(self, authenticated_client: AsyncClient):
        """Native booleans and numbers round-trip as canonical strings."""
        response = await authenticated_client.post(
            "/api/admin/settings",
            json={"FEATURE_BELTS_ENABLED": False, "TOURNAMENT_MIN_PARTICIPANTS": 4},
        )
        assert response.status_code == 200

        snapshot = (await authenticated_client.get("/api/admin/settings")).json()
        assert snapshot["FEATURE_BELTS_ENABLED"] == "false"
        assert snapshot["TOURNAMENT_MIN_PARTICIPANTS"] == "4"

    @pytest.mark.asyncio
    async def test_invalid_value_rejected(self, authenticated_client: AsyncClient):
        """A non-integer for an integer key returns 400 and stores nothing."""
        response = await authenticated_client.post(
            "/api/admin/settings", json={"VERDICT_TIE_THRESHOLD": "abc"}
        )

        assert response.status_code == 400
        body = response.json()
        assert "VERDICT_TIE_THRESHOLD" in body["error"]
        assert "VERDICT_TIE_THRESHOLD" in body["failed"]
        assert body["updated"] == []

        snapshot = (await authenticated_client.get("/api/admin/settings")).json()
        assert "VERDICT_TIE_THRESHOLD" not in snapshot

    @pytest.mark.asyncio
    async def test_partial_batch_reports_failures(self, authenticated_client: AsyncClient):
        """Good keys are written; the response lists the bad ones."""
        response = await authenticated_client.post(
            "/api/admin/settings",
            json={
                "TOURNAMENT_DEFAULT_PRIZE_SPLIT": "60,30,20",
                "BELT_FREE_CHALLENGES_PER_WEEK": "5",
            },
        )

        assert response.status_code == 400
        body = response.json()
        assert "Failed to save 1 setting(s)" in body["error"]
        assert "sum to 100" in body["failed"]["TOURNAMENT_DEFAULT_PRIZE_SPLIT"]
        assert body["updated"] == ["BELT_FREE_CHALLENGES_PER_WEEK"]

    @pytest.mark.asyncio
    async def test_repeat_save_is_idempotent(self, authenticated_client: AsyncClient):
        payload = {"FEATURE_LIKES_ENABLED": "true", "ADS_ESCROW_HOLD_DAYS": "7"}

        await authenticated_client.post("/api/admin/settings", json=payload)
        first = (await authenticated_client.get("/api/admin/settings")).json()
        await authenticated_client.post("/api/admin/settings", json=payload)
        second = (await authenticated_client.get("/api/admin/settings")).json()

        assert first == second

    @pytest.mark.asyncio
    async def test_non_object_body_rejected(self, authenticated_client: AsyncClient):
        response = await authenticated_client.post("/api/admin/settings", json=["not", "a", "map"])

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_audit_fields_recorded(
        self, authenticated_client: AsyncClient, admin_user, db_session: AsyncSession
    ):
        """updated_by holds the admin's user id."""
        await authenticated_client.post("/api/admin/settings", json={"FEATURE_BLOG_ENABLED": "false"})

        setting = await SettingsManager(db_session).get_setting("FEATURE_BLOG_ENABLED")
        await db_session.refresh(setting)
        assert setting.updated_by == admin_user.id


class TestOptimisticConcurrency:
    """If-Match on save detects edits made since the snapshot was read."""

    @pytest.mark.asyncio
    async def test_matching_etag_accepted(self, authenticated_client: AsyncClient):
        etag = (await authenticated_client.get("/api/admin/settings")).headers["ETag"]

        response = await authenticated_client.post(
            "/api/admin/settings",
            json={"FEATURE_BLOG_ENABLED": "false"},
            headers={"If-Match": etag},
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_stale_etag_rejected(self, authenticated_client: AsyncClient):
        """Second admin saving from an old snapshot gets 409."""
        etag = (await authenticated_client.get("/api/admin/settings")).headers["ETag"]

        # Another admin saves first
        await authenticated_client.post("/api/admin/settings", json={"VERDICT_TIE_THRESHOLD": "9"})

        response = await authenticated_client.post(
            "/api/admin/settings",
            json={"VERDICT_TIE_THRESHOLD": "3"},
            headers={"If-Match": etag},
        )

        assert response.status_code == 409
        assert "error" in response.json()
        snapshot = (await authenticated_client.get("/api/admin/settings")).json()
        assert snapshot["VERDICT_TIE_THRESHOLD"] == "9"

    @pytest.mark.asyncio
    async def test_without_if_match_last_write_wins(self, authenticated_client: AsyncClient):
        await authenticated_client.post("/api/admin/settings", json={"VERDICT_TIE_THRESHOLD": "9"})
        await authenticated_client.post("/api/admin/settings", json={"VERDICT_TIE_THRESHOLD": "3"})

        snapshot = (await authenticated_client.get("/api/admin/settings")).json()
        assert snapshot["VERDICT_TIE_THRESHOLD"] == "3"


class TestGetSetting:
    """Test GET /api/admin/settings/{key} endpoint."""

    @pytest.mark.asyncio
    async def test_get_single_setting(self, authenticated_client: AsyncClient, db_session: AsyncSession):
        await SettingsManager(db_session).set("VERDICT_TIE_THRESHOLD", "6")

        response = await authenticated_client.get("/api/admin/settings/VERDICT_TIE_THRESHOLD")

        assert response.status_code == 200
        data = response.json()
        assert data["value"] == "6"
        assert data["category"] == "verdicts"
        assert data["version"] == 1

    @pytest.mark.asyncio
    async def test_secret_values_masked(self, authenticated_client: AsyncClient, db_session: AsyncSession):
        await SettingsManager(db_session).set("STRIPE_SECRET_KEY", "sk_live_abcdefgh")

        response = await authenticated_client.get("/api/admin/settings/STRIPE_SECRET_KEY")

        assert response.status_code == 200
        assert response.json()["value"] == "sk_l..."
        assert response.json()["encrypted"] is True

    @pytest.mark.asyncio
    async def test_missing_setting_404(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get("/api/admin/settings/NOT_THERE")

        assert response.status_code == 404
        assert response.json() == {"error": "Setting NOT_THERE not found"}


class TestRegistryEndpoint:
    """Test GET /api/admin/settings/registry endpoint."""

    @pytest.mark.asyncio
    async def test_registry_lists_defaults(self, authenticated_client: AsyncClient):
        response = await authenticated_client.get("/api/admin/settings/registry")

        assert response.status_code == 200
        entries = {entry["key"]: entry for entry in response.json()}
        assert entries["VERDICT_TIE_THRESHOLD"]["default"] == "5"
        assert entries["TOURNAMENT_MIN_PARTICIPANTS"]["default"] == "2"
        assert entries["AI_BOT_DEFAULT_PERSONALITY"]["choices"][0] == "BALANCED"
        assert entries["DEEPSEEK_API_KEY"]["sensitive"] is True


class TestUserLimit:
    """Test /api/admin/settings/user-limit endpoints."""

    @pytest.mark.asyncio
    async def test_default_unlimited(self, authenticated_client: AsyncClient, make_user):
        await make_user(is_ai=True)
        await make_user(is_banned=True)

        response = await authenticated_client.get("/api/admin/settings/user-limit")

        assert response.status_code == 200
        # admin and AI user; banned accounts are not counted
        assert response.json() == {"userLimit": 0, "currentUserCount": 2, "isLimited": False}

    @pytest.mark.asyncio
    async def test_update_limit(self, authenticated_client: AsyncClient, make_user):
        await make_user(is_banned=True)

        response = await authenticated_client.patch(
            "/api/admin/settings/user-limit", json={"userLimit": 10}
        )

        assert response.status_code == 200
        # a configured cap counts as limited even when it is not reached
        assert response.json() == {"userLimit": 10, "currentUserCount": 1, "isLimited": True}

    @pytest.mark.asyncio
    async def test_zero_limit_is_unlimited(self, authenticated_client: AsyncClient):
        await authenticated_client.patch("/api/admin/settings/user-limit", json={"userLimit": 5})

        response = await authenticated_client.patch(
            "/api/admin/settings/user-limit", json={"userLimit": 0}
        )

        assert response.json()["isLimited"] is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [-1, "abc", "5", 1.5, True, None])
    async def test_invalid_limit_rejected(self, authenticated_client: AsyncClient, value):
        response = await authenticated_client.patch(
            "/api/admin/settings/user-limit", json={"userLimit": value}
        )

        assert response.status_code == 400
        assert "non-negative integer" in response.json()["error"]
