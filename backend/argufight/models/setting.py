"""Admin setting model for platform configuration."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from argufight.database import Base
from argufight.utils.timezone import get_now


class AdminSetting(Base):
    """Key-value store for feature flags, tunables and integration credentials."""

    __tablename__ = "admin_settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    value_type: Mapped[str] = mapped_column(String(20), nullable=False, default="str")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    encrypted: Mapped[bool] = mapped_column(Boolean, default=False)  # API keys, secrets
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    updated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=get_now, onupdate=get_now)
