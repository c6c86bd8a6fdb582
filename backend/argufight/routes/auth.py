"""Login and logout endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from argufight.config import settings as app_settings
from argufight.database import get_db
from argufight.rate_limit import limiter
from argufight.schemas.auth import LoginRequest, LoginResponse, UserProfile
from argufight.services.user_auth import (
    JWT_COOKIE_NAME,
    authenticate_user,
    jwt_cookie_max_age,
    token_for_user,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    credentials: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate with email and password; sets the session cookie."""
    user = await authenticate_user(db, credentials.email, credentials.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    token = token_for_user(user)
    response.set_cookie(
        key=JWT_COOKIE_NAME,
        value=token,
        max_age=jwt_cookie_max_age(),
        httponly=True,
        secure=app_settings.jwt_cookie_secure,
        samesite="lax",
    )
    logger.info(f"User {user.username} logged in")
    return LoginResponse(user=UserProfile.model_validate(user), access_token=token)


@router.post("/logout")
async def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(JWT_COOKIE_NAME)
    return {"success": True}
