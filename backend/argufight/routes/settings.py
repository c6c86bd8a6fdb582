"""Admin settings API endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from argufight.database import get_db
from argufight.dependencies.auth import require_admin
from argufight.errors import NotFoundError, SettingConflictError, SettingValidationError
from argufight.models import User
from argufight.models.principal import AuthUser
from argufight.rate_limit import limiter
from argufight.schemas.setting import (
    SaveSettingsResponse,
    Setting as SettingSchema,
    SettingDefinitionSchema,
    TestConnectionResult,
    UserLimitResponse,
    UserLimitUpdate,
)
from argufight.services.feature_flags import get_feature_flags
from argufight.services.integrations import run_probe
from argufight.services.settings_manager import SettingsManager
from argufight.services.settings_registry import registry
from argufight.utils.log_redaction import mask_value

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=dict[str, str])
async def list_settings(
    response: Response,
    t: str | None = None,
    db: AsyncSession = Depends(get_db),
    user: AuthUser = Depends(require_admin),
):
    """
    Get every stored setting as a flat key/value map.

    Keys that were never written are absent; the UI applies registry
    defaults. ``t`` is a cache buster and is ignored. The ``ETag`` header can
    be echoed back as ``If-Match`` on save to detect concurrent edits.
    """
    settings_manager = SettingsManager(db)
    response.headers["ETag"] = await settings_manager.snapshot_etag()
    response.headers["Cache-Control"] = "no-store"
    return await settings_manager.get_all()


@router.post("", response_model=SaveSettingsResponse)
async def save_settings(
    payload: dict[str, Any] = Body(...),
    if_match: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
    user: AuthUser = Depends(require_admin),
):
    """
    Upsert a partial or full set of settings.

    Each key is saved independently; keys that fail validation are reported
    in ``failed`` while the rest are still written.
    """
    settings_manager = SettingsManager(db)

    if if_match:
        current = await settings_manager.snapshot_etag()
        if if_match.strip() != current:
            raise SettingConflictError(
                "Settings were changed by another admin since you loaded them. "
                "Reload to see the latest values."
            )

    outcome = await settings_manager.set_many(payload, updated_by=user.user_id)

    if outcome.updated:
        await get_feature_flags().invalidate()

    if outcome.failed:
        details = "; ".join(outcome.failed.values())
        return JSONResponse(
            status_code=400,
            content={
                "error": f"Failed to save {len(outcome.failed)} setting(s): {details}",
                "failed": outcome.failed,
                "updated": outcome.updated,
            },
        )

    logger.info(f"Admin {user.username} saved {len(outcome.updated)} setting(s)")
    return SaveSettingsResponse(updated=outcome.updated)


@router.get("/registry", response_model=list[SettingDefinitionSchema])
async def list_definitions(user: AuthUser = Depends(require_admin)):
    """Every known setting with its type, default, bounds and choices."""
    return [SettingDefinitionSchema(**definition.to_dict()) for definition in registry]


@router.get("/user-limit", response_model=UserLimitResponse)
async def get_user_limit(db: AsyncSession = Depends(get_db), user: AuthUser = Depends(require_admin)):
    """Current user cap (0 = unlimited) and how many non-banned accounts exist."""
    return await _user_limit_status(db)


@router.patch("/user-limit", response_model=UserLimitResponse)
async def update_user_limit(
    update: UserLimitUpdate,
    db: AsyncSession = Depends(get_db),
    user: AuthUser = Depends(require_admin),
):
    """Set the user cap."""
    limit = update.userLimit
    # JSON numbers only; "5" and true are rejected
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise SettingValidationError("user_limit", "User limit must be a non-negative integer")

    await SettingsManager(db).set("user_limit", str(limit), updated_by=user.user_id)
    await get_feature_flags().invalidate()
    return await _user_limit_status(db)


async def _user_limit_status(db: AsyncSession) -> UserLimitResponse:
    limit = await SettingsManager(db).get_value("user_limit")
    result = await db.execute(select(func.count(User.id)).where(User.is_banned.is_(False)))
    count = result.scalar_one()
    return UserLimitResponse(
        userLimit=limit,
        currentUserCount=count,
        isLimited=limit > 0,
    )


# ============================================================================
# Integration connection tests
# ============================================================================


@router.post("/test-deepseek", response_model=TestConnectionResult)
@limiter.limit("10/minute")
async def test_deepseek(
    request: Request, db: AsyncSession = Depends(get_db), user: AuthUser = Depends(require_admin)
):
    """Send a tiny completion with the saved DeepSeek key."""
    result = await run_probe("deepseek", db, user_id=user.user_id)
    return result.to_dict()


@router.post("/test-resend", response_model=TestConnectionResult)
@limiter.limit("10/minute")
async def test_resend(
    request: Request, db: AsyncSession = Depends(get_db), user: AuthUser = Depends(require_admin)
):
    """Verify the saved Resend key without sending email."""
    result = await run_probe("resend", db, user_id=user.user_id)
    return result.to_dict()


@router.post("/test-google-analytics", response_model=TestConnectionResult)
@limiter.limit("10/minute")
async def test_google_analytics(
    request: Request, db: AsyncSession = Depends(get_db), user: AuthUser = Depends(require_admin)
):
    """Authenticate the saved service account and run a one-day report."""
    result = await run_probe("google-analytics", db, user_id=user.user_id)
    return result.to_dict()


@router.post("/test-stripe", response_model=TestConnectionResult)
@limiter.limit("10/minute")
async def test_stripe(
    request: Request, db: AsyncSession = Depends(get_db), user: AuthUser = Depends(require_admin)
):
    """Check Stripe key formats and retrieve the account balance."""
    result = await run_probe("stripe", db, user_id=user.user_id)
    return result.to_dict()


@router.get("/{key}", response_model=SettingSchema)
async def get_setting(key: str, db: AsyncSession = Depends(get_db), user: AuthUser = Depends(require_admin)):
    """Get one stored setting with audit metadata. Secret values are masked."""
    setting = await SettingsManager(db).get_setting(key)
    if not setting:
        raise NotFoundError(f"Setting {key} not found")

    schema = SettingSchema.model_validate(setting)
    if setting.encrypted:
        schema.value = mask_value(setting.value)
    return schema
