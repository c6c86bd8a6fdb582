"""Platform user model."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from argufight.database import Base
from argufight.utils.timezone import get_now

DEFAULT_AI_RESPONSE_DELAY_MS = 3_600_000  # 1 hour


class User(Base):
    """Debater, AI personality, or admin account."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    is_banned: Mapped[bool] = mapped_column(Boolean, default=False)

    # AI personalities
    is_ai: Mapped[bool] = mapped_column(Boolean, default=False)
    ai_paused: Mapped[bool] = mapped_column(Boolean, default=False)
    ai_response_delay_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Debate record
    elo_rating: Mapped[int] = mapped_column(Integer, default=1200)
    debates_won: Mapped[int] = mapped_column(Integer, default=0)
    debates_lost: Mapped[int] = mapped_column(Integer, default=0)
    debates_tied: Mapped[int] = mapped_column(Integer, default=0)
    total_debates: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_now)

    @property
    def effective_response_delay_ms(self) -> int:
        return self.ai_response_delay_ms or DEFAULT_AI_RESPONSE_DELAY_MS
