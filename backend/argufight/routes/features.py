"""Feature flag endpoint for signed-in (non-admin) clients."""

from fastapi import APIRouter, Depends

from argufight.dependencies.auth import require_auth
from argufight.models.principal import AuthUser
from argufight.services.feature_flags import get_feature_flags

router = APIRouter()


@router.get("", response_model=dict[str, bool])
async def list_features(user: AuthUser = Depends(require_auth)):
    """
    Effective state of every feature flag.

    Served from the cached snapshot, so admin changes can take up to
    ``settings_cache_ttl`` seconds to appear here.
    """
    return await get_feature_flags().all_features()
