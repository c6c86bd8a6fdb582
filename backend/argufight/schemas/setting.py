"""Setting schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Setting(BaseModel):
    """Full stored setting, as returned by GET /api/admin/settings/{key}."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    value: str
    value_type: str = "str"
    category: str = "general"
    description: str | None = None
    encrypted: bool = False
    version: int = 1
    updated_by: str | None = None
    updated_at: datetime | None = None


class SettingDefinitionSchema(BaseModel):
    """Registry entry served to the admin UI."""

    key: str
    type: str
    default: str
    category: str
    label: str
    description: str = ""
    min: float | None = None
    max: float | None = None
    choices: list[str] = Field(default_factory=list)
    sensitive: bool = False


class SaveSettingsResponse(BaseModel):
    """Successful batch save."""

    success: bool = True
    updated: list[str]


class UserLimitResponse(BaseModel):
    """Platform user cap and current usage."""

    userLimit: int
    currentUserCount: int
    isLimited: bool


class UserLimitUpdate(BaseModel):
    """Body for PATCH /api/admin/settings/user-limit (0 = unlimited)."""

    userLimit: Any


class TestConnectionResult(BaseModel):
    """Result of an integration "test connection" call."""

    model_config = ConfigDict(extra="allow")

    success: bool
    message: str | None = None
    error: str | None = None
