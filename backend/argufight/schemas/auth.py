"""Login schemas."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=1, max_length=200)


class UserProfile(BaseModel):
    """Public view of the logged-in account."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str
    is_admin: bool


class LoginResponse(BaseModel):
    """Login response; the token is also set as an httpOnly cookie."""

    user: UserProfile
    access_token: str
    token_type: str = "bearer"
