"""Authenticated principal attached to each request."""

from dataclasses import dataclass


@dataclass
class AuthUser:
    """Represents the caller of an API request."""

    username: str
    user_id: str | None = None
    email: str | None = None
    is_admin: bool = False
    provider: str = "unknown"

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    def __str__(self) -> str:
        """String representation of user."""
        return f"AuthUser(username='{self.username}', provider='{self.provider}', is_admin={self.is_admin})"


ANONYMOUS = AuthUser(username="anonymous", provider="none")
