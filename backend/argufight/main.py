"""ArguFight admin back-office FastAPI application."""

import json
import logging
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from argufight.config import settings as app_settings
from argufight.database import init_db
from argufight.errors import ArguFightError
from argufight.middleware.auth import AuthenticationMiddleware
from argufight.rate_limit import limiter
from argufight.routes import api_usage, auth, features
from argufight.routes import settings as settings_api

# Configure logging
logging.basicConfig(
    level=getattr(logging, app_settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {app_settings.app_name} admin backend...")
    await init_db()
    yield
    logger.info(f"Shutting down {app_settings.app_name} admin backend...")


# Read version from installed package metadata
try:
    _APP_VERSION = pkg_version("argufight-admin")
except Exception:
    _APP_VERSION = "0.0.0"

app = FastAPI(
    title="ArguFight Admin",
    description="Settings store, feature flags and integration checks for the ArguFight back-office",
    version=_APP_VERSION,
    lifespan=lifespan,
)

# Rate limiter setup
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]


@app.exception_handler(ArguFightError)
async def argufight_error_handler(request: Request, exc: ArguFightError):
    """Domain errors become {"error": message} with the error's status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Keep the admin UI's {"error": ...} body shape for framework errors too."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Authentication middleware (must be before CORS)
app.add_middleware(AuthenticationMiddleware)

cors_origins_default = ["https://www.argufight.com", "http://localhost:3000"]
try:
    cors_origins = json.loads(app_settings.cors_origins)
except (json.JSONDecodeError, TypeError):
    cors_origins = cors_origins_default

logger.info(f"CORS allowed origins: {cors_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
    expose_headers=["ETag"],
    max_age=600,  # Cache preflight requests for 10 minutes
)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": app_settings.app_name}


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(settings_api.router, prefix="/api/admin/settings", tags=["Admin Settings"])
app.include_router(api_usage.router, prefix="/api/admin/api-usage", tags=["API Usage"])
app.include_router(features.router, prefix="/api/features", tags=["Features"])
