"""Authentication and authorization dependencies for FastAPI endpoints."""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from argufight.database import get_db
from argufight.models import User
from argufight.models.principal import AuthUser


async def require_auth(request: Request) -> AuthUser:
    """
    Dependency that requires an authenticated caller.

    Raises:
        HTTPException: 401 if no user was attached by the auth middleware
    """
    user = getattr(getattr(request, "state", None), "user", None)
    if user is None or user.is_anonymous:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


async def require_admin(
    user: AuthUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> AuthUser:
    """
    Dependency that requires admin privileges.

    The token only proves identity; admin rights are read from the users table
    on every request so a revoked admin loses access immediately.

    Raises:
        HTTPException: 401 if not authenticated, 403 if authenticated but not admin
    """
    record = await db.get(User, user.user_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if not record.is_admin or record.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    user.is_admin = True
    return user
