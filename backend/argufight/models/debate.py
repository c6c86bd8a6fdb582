"""Debate and statement models."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from argufight.database import Base
from argufight.utils.timezone import get_now

# Debate.status values
STATUS_WAITING = "WAITING"
STATUS_ACTIVE = "ACTIVE"
STATUS_COMPLETED = "COMPLETED"
STATUS_VERDICT_READY = "VERDICT_READY"
STATUS_CANCELLED = "CANCELLED"

FINISHED_STATUSES = (STATUS_COMPLETED, STATUS_VERDICT_READY)


class Debate(Base):
    """A structured debate between a challenger and an opponent."""

    __tablename__ = "debates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_WAITING, index=True)
    challenge_type: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")

    challenger_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    opponent_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    winner_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    current_round: Mapped[int] = mapped_column(Integer, default=1)
    total_rounds: Mapped[int] = mapped_column(Integer, default=5)
    round_deadline: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_now)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Statement(Base):
    """One participant's argument in a debate round."""

    __tablename__ = "statements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    debate_id: Mapped[str] = mapped_column(ForeignKey("debates.id"), nullable=False, index=True)
    author_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    round: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=get_now)
