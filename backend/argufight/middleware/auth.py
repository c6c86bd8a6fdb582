"""Authentication middleware for the ArguFight admin API."""

import logging
import posixpath
import urllib.parse

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from argufight.models.principal import ANONYMOUS, AuthUser
from argufight.services.user_auth import decode_token, get_token_from_request

logger = logging.getLogger(__name__)

# Public endpoints under /api
PUBLIC_API_PATHS = ("/api/auth/login", "/api/auth/logout")


def normalize_path(raw_path: str) -> str:
    """Collapse encoding, duplicate slashes and dot segments before matching."""
    path = urllib.parse.unquote(raw_path)
    while "//" in path:
        path = path.replace("//", "/")
    path = posixpath.normpath(path)
    if not path.startswith("/"):
        path = "/" + path
    return path.lower()


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Attach the JWT principal to request.state.user for /api/* routes."""

    async def dispatch(self, request: Request, call_next):
        """
        Flow:
        1. Non-API paths, /health and the login endpoints pass through anonymously
        2. Decode the JWT from the cookie or Authorization header
        3. Attach the principal to request.state.user
        4. Return 401 when an /api/* request carries no valid token
        """
        path = normalize_path(request.url.path)

        if (not path.startswith("/api/") and path != "/api") or path in PUBLIC_API_PATHS:
            request.state.user = ANONYMOUS
            return await call_next(request)

        token = get_token_from_request(request)
        if token:
            try:
                payload = decode_token(token)
            except HTTPException:
                payload = None
                logger.warning(f"JWT validation failed for {path}")

            if payload and payload.get("sub"):
                request.state.user = AuthUser(
                    username=payload.get("username") or payload["sub"],
                    user_id=payload["sub"],
                    email=payload.get("email"),
                    provider="jwt",
                )
                return await call_next(request)

        logger.debug(f"Authentication failed for {path}: no valid token")
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})
