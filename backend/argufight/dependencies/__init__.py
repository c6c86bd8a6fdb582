"""Dependencies for FastAPI endpoints."""

from argufight.dependencies.auth import require_admin, require_auth

__all__ = ["require_auth", "require_admin"]
