"""User authentication for the admin back-office.

Key features:
- Argon2id password hashing
- JWT tokens in httpOnly cookies (Bearer header accepted for scripts)
- Accounts live in the users table; admin rights come from users.is_admin
"""

import logging
import time
from datetime import UTC, datetime, timedelta

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from authlib.jose import JoseError, jwt
from fastapi import HTTPException, Request, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from argufight.config import settings
from argufight.models import User

logger = logging.getLogger(__name__)

# JWT Configuration
JWT_ALGORITHM = "HS256"
JWT_COOKIE_NAME = "argufight_token"

MIN_PASSWORD_LENGTH = 8

# Initialize Argon2 password hasher with recommended parameters
# time_cost=2, memory_cost=102400 (100MB), parallelism=8
ph = PasswordHasher(time_cost=2, memory_cost=102400, parallelism=8)


# ============================================================================
# Password Operations
# ============================================================================


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against an Argon2 hash."""
    if not hashed_password:
        return False
    try:
        ph.verify(hashed_password, plain_password)
        return True
    except (VerifyMismatchError, InvalidHashError):
        return False


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


# ============================================================================
# JWT Operations
# ============================================================================


def jwt_cookie_max_age() -> int:
    return settings.jwt_access_token_expire_minutes * 60


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    now = datetime.now(UTC)
    to_encode.update({"exp": int((now + expires_delta).timestamp()), "iat": int(now.timestamp())})
    header = {"alg": JWT_ALGORITHM}
    encoded_jwt = jwt.encode(header, to_encode, settings.jwt_secret_key)
    return encoded_jwt.decode("utf-8") if isinstance(encoded_jwt, bytes) else encoded_jwt


def get_token_from_request(request: Request) -> str | None:
    """Extract JWT token from the cookie, falling back to an Authorization header."""
    token = request.cookies.get(JWT_COOKIE_NAME)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def decode_token(token: str) -> dict:
    """Decode and validate JWT token.

    Raises:
        HTTPException: If token is invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, settings.jwt_secret_key)
    except JoseError as e:
        logger.error("JWT decode error: %s", e)
        raise credentials_exception

    # authlib does not validate exp on decode
    if "exp" in payload and payload["exp"] < time.time():
        logger.warning("JWT token has expired")
        raise credentials_exception

    return dict(payload)


def token_for_user(user: User) -> str:
    return create_access_token({"sub": user.id, "username": user.username, "email": user.email})


# ============================================================================
# Authentication
# ============================================================================


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    """Authenticate a user by email and password.

    Returns:
        The user, or None when the credentials are wrong or the account is banned
    """
    user = await get_user_by_email(db, email)
    if user is None:
        # Burn a hash so unknown emails take as long as wrong passwords
        verify_password(password, hash_password("timing-equalizer"))
        return None

    if not verify_password(password, user.password_hash):
        logger.warning(f"Failed login for {user.username}")
        return None

    if user.is_banned:
        logger.warning(f"Banned user {user.username} attempted to log in")
        return None

    return user
