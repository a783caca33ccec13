"""
Goal: a tracked objective and the home of the engine's goal-level counters.

Never deleted: `status` moves to "archived" instead.

Derived columns:
  total_possible_points : recomputed whenever category, frequency, duration,
                          milestone or scaffold counts change (never hand-edited)
  streak_count / longest_streak / last_completed_date
                        : written by the streak tracker; always rebuildable
                          from step completion history
  earned_points         : running sum of this goal's ledger awards

metadata: JSON-encoded dict stored as Text holding the embedded
"skill_assessment", "smart_start", "teaching_helper" and "current_phase".
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Text, DateTime, Date, Enum, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from app.db.base import Base


class GoalType(str, enum.Enum):
    habit = "habit"
    progressive_mastery = "progressive_mastery"
    standard = "standard"


class GoalStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    archived = "archived"


class Goal(Base):
    __tablename__ = "goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="general")
    goal_type: Mapped[str] = mapped_column(
        Enum(GoalType, name="goal_type_enum"),
        nullable=False,
        default=GoalType.standard,
    )
    status: Mapped[str] = mapped_column(
        Enum(GoalStatus, name="goal_status_enum"),
        nullable=False,
        default=GoalStatus.active,
        index=True,
    )

    # Plan inputs (drive total_possible_points)
    frequency_per_week: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    duration_weeks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    planned_steps_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    planned_milestones_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    planned_scaffold_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Points
    total_possible_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    earned_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Streak counters
    streak_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_completed_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    goal_metadata: Mapped[str | None] = mapped_column(
        "metadata", Text, nullable=True,
        comment="JSON-encoded dict: skill_assessment, smart_start, teaching_helper, current_phase",
    )

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
