"""
PointsLedgerEntry: append-only point movements per (user, category).

Balance = SUM(points) per (user_id, category). The engine only writes
non-negative awards ("step_completed", "goal_completed"); negative
"redemption_debit" rows come from the reward/redemption collaborator.
"""
from datetime import datetime
from sqlalchemy import Integer, String, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class LedgerEntryType:
    STEP_COMPLETED   = "step_completed"
    GOAL_COMPLETED   = "goal_completed"
    REDEMPTION_DEBIT = "redemption_debit"


class PointsLedgerEntry(Base):
    __tablename__ = "points_ledger"
    __table_args__ = (
        Index("ix_points_ledger_user_category", "user_id", "category"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    entry_type: Mapped[str] = mapped_column(String(32), nullable=False)
    goal_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("goals.id"), nullable=True, index=True
    )
    step_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("steps.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
