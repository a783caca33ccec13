"""
CheckIn: how a single step completion went (progressive mastery goals only).

Editable (update / delete) only inside the configured edit window.
Range rules live in app/services/check_ins.py so every violation carries a
user-facing message; the columns themselves are plain integers.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class CheckIn(Base):
    __tablename__ = "check_ins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    goal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("goals.id"), nullable=False, index=True
    )
    step_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("steps.id"), nullable=False, index=True
    )
    quality_rating: Mapped[int] = mapped_column(Integer, nullable=False)
    independence_level: Mapped[int] = mapped_column(Integer, nullable=False)
    time_spent_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    confidence_before: Mapped[int | None] = mapped_column(Integer, nullable=True)
    confidence_after: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    helper_present: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    helper_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
