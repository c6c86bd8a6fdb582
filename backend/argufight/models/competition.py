"""Championship belt model."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from argufight.database import Base
from argufight.utils.timezone import get_now

BELT_ACTIVE = "ACTIVE"
BELT_VACANT = "VACANT"
BELT_MANDATORY = "MANDATORY"
BELT_INACTIVE = "INACTIVE"


class Belt(Base):
    """Championship belt held by at most one user."""

    __tablename__ = "belts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False, default="CATEGORY")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=BELT_VACANT)
    current_holder_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    acquired_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_defended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    times_defended: Mapped[int] = mapped_column(Integer, default=0)
