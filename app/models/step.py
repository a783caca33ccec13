from datetime import datetime, date
from sqlalchemy import Integer, String, Text, Boolean, DateTime, Date, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from app.db.base import Base


class StepType(str, enum.Enum):
    habit = "habit"
    action = "action"
    milestone = "milestone"
    scaffolding = "scaffolding"


class StepStatus(str, enum.Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    done = "done"
    skipped = "skipped"


TERMINAL_STEP_STATUSES = (StepStatus.done, StepStatus.skipped)


class SkipReason(str, enum.Enum):
    sick = "sick"
    busy = "busy"
    tired = "tired"
    not_ready = "not_ready"
    forgot = "forgot"
    other = "other"


class Step(Base):
    """
    Atomic unit of a goal. Moves into a terminal status (done / skipped)
    exactly once; habit goals get a fresh Step per future occurrence.
    """

    __tablename__ = "steps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    goal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("goals.id"), nullable=False, index=True
    )
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    step_type: Mapped[str] = mapped_column(
        Enum(StepType, name="step_type_enum"),
        nullable=False,
        default=StepType.action,
    )
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(
        Enum(StepStatus, name="step_status_enum"),
        nullable=False,
        default=StepStatus.not_started,
        index=True,
    )
    points_awarded: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_streak: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Skip tracking
    skip_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    skip_reasons: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON array of skip records: skipped_at, reason, custom_note, streak_at_risk",
    )
    last_skipped_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
