"""
Goal and step lifecycle.

Owns the invariants that span a goal and its steps:
- total_possible_points is recomputed whenever a TPP input changes;
- a step's due date never exceeds its goal's due date;
- a step enters a terminal status (done / skipped) exactly once;
- completing the last required step of a non-habit goal completes the goal
  and awards the category completion bonus once.

Functions named *_step / *_goal that mutate state flush but do not commit
unless documented otherwise; routers and flow services own the commit.

Public API
----------
get_goal(db, goal_id)                    -> Goal
get_step(db, step_id, goal_id=None)      -> Step
create_goal(db, data, owner_id, created_by) -> Goal          (commits)
update_goal(db, goal_id, changes, cache) -> Goal             (commits)
archive_goal(db, goal_id)                -> Goal             (commits)
list_goals(db, owner_id, include_archived) -> list[Goal]
create_step(db, goal_id, data)           -> Step             (commits)
list_steps(db, goal_id)                  -> list[Step]
read_metadata(goal) / update_metadata(goal, patch)
complete_step(db, goal, step, ...)       -> int  points awarded
skip_step(db, step, record, ...)         -> None
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import (
    GoalArchivedError,
    GoalNotFoundError,
    StepAlreadyFinalError,
    StepDueDateError,
    StepNotFoundError,
)
from app.models.goal import Goal, GoalStatus, GoalType
from app.models.points_ledger import LedgerEntryType
from app.models.step import Step, StepStatus, StepType, TERMINAL_STEP_STATUSES
from app.services import points as points_service
from app.services.common import ev, jdump, jload, utcnow
from app.services.goal_type_cache import GoalTypeCache

logger = logging.getLogger(__name__)

# Goal columns that feed calculate_total_possible_points
TPP_FIELDS = frozenset({
    "category",
    "frequency_per_week",
    "duration_weeks",
    "planned_milestones_count",
    "planned_scaffold_count",
})

UPDATABLE_FIELDS = TPP_FIELDS | frozenset({
    "title",
    "goal_type",
    "planned_steps_count",
    "due_date",
})


# ---------------------------------------------------------------------------
# Input DTOs (keep the service layer schema-agnostic)
# ---------------------------------------------------------------------------

@dataclass
class GoalInput:
    title: str
    category: str = "general"
    goal_type: str = GoalType.standard.value
    frequency_per_week: int = 0
    duration_weeks: int = 0
    planned_steps_count: int = 0
    planned_milestones_count: int = 0
    planned_scaffold_count: int = 0
    due_date: Optional[date] = None


@dataclass
class StepInput:
    title: str
    step_type: str = StepType.action.value
    is_required: bool = True
    order_index: Optional[int] = None
    due_date: Optional[date] = None


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def get_goal(db: Session, goal_id: int) -> Goal:
    goal = db.query(Goal).filter(Goal.id == goal_id).first()
    if goal is None:
        raise GoalNotFoundError(goal_id)
    return goal


def get_step(db: Session, step_id: int, goal_id: Optional[int] = None) -> Step:
    q = db.query(Step).filter(Step.id == step_id)
    if goal_id is not None:
        q = q.filter(Step.goal_id == goal_id)
    step = q.first()
    if step is None:
        raise StepNotFoundError(step_id, goal_id)
    return step


def list_goals(db: Session, owner_id: str, include_archived: bool = False) -> list[Goal]:
    q = db.query(Goal).filter(Goal.owner_id == owner_id)
    if not include_archived:
        q = q.filter(Goal.status != GoalStatus.archived)
    return q.order_by(Goal.created_at.desc(), Goal.id.desc()).all()


def list_steps(db: Session, goal_id: int) -> list[Step]:
    get_goal(db, goal_id)
    return (
        db.query(Step)
        .filter(Step.goal_id == goal_id)
        .order_by(Step.order_index, Step.id)
        .all()
    )


# ---------------------------------------------------------------------------
# Metadata (JSON text column)
# ---------------------------------------------------------------------------

def read_metadata(goal: Goal) -> dict[str, Any]:
    return jload(goal.goal_metadata, {})


def update_metadata(goal: Goal, patch: dict[str, Any]) -> dict[str, Any]:
    """Shallow merge: each top-level key in `patch` replaces the stored sub-object."""
    meta = read_metadata(goal)
    meta.update(patch)
    goal.goal_metadata = jdump(meta)
    return meta


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------

def recompute_total_possible_points(goal: Goal) -> int:
    goal.total_possible_points = points_service.calculate_total_possible_points(
        category=goal.category,
        frequency_per_week=goal.frequency_per_week or 0,
        duration_weeks=goal.duration_weeks or 0,
        planned_milestones_count=goal.planned_milestones_count or 0,
        planned_scaffold_count=goal.planned_scaffold_count or 0,
    )
    return goal.total_possible_points


def create_goal(
    db: Session,
    data: GoalInput,
    owner_id: str,
    created_by: Optional[str] = None,
) -> Goal:
    goal = Goal(
        owner_id=owner_id,
        created_by=created_by or owner_id,
        title=data.title,
        category=points_service.normalize_category(data.category),
        goal_type=GoalType(data.goal_type),
        status=GoalStatus.active,
        frequency_per_week=data.frequency_per_week,
        duration_weeks=data.duration_weeks,
        planned_steps_count=data.planned_steps_count,
        planned_milestones_count=data.planned_milestones_count,
        planned_scaffold_count=data.planned_scaffold_count,
        due_date=data.due_date,
        earned_points=0,
        streak_count=0,
        longest_streak=0,
    )
    recompute_total_possible_points(goal)
    db.add(goal)
    db.commit()
    db.refresh(goal)
    logger.info(
        "Created goal=%s owner=%s type=%s tpp=%s",
        goal.id, owner_id, ev(goal.goal_type), goal.total_possible_points,
    )
    return goal


def ensure_active(goal: Goal) -> None:
    if ev(goal.status) == GoalStatus.archived.value:
        raise GoalArchivedError(goal.id)


def apply_plan_changes(
    goal: Goal,
    changes: dict[str, Any],
    cache: Optional[GoalTypeCache] = None,
) -> None:
    """Apply `changes` in memory, keeping TPP and the type cache consistent."""
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Unsupported goal fields: {sorted(unknown)}")

    for name, value in changes.items():
        if name == "category":
            value = points_service.normalize_category(value)
        elif name == "goal_type":
            value = GoalType(value)
        setattr(goal, name, value)

    if TPP_FIELDS & set(changes):
        recompute_total_possible_points(goal)
    if "goal_type" in changes and cache is not None:
        cache.invalidate(goal.id)


def update_goal(
    db: Session,
    goal_id: int,
    changes: dict[str, Any],
    cache: Optional[GoalTypeCache] = None,
) -> Goal:
    goal = get_goal(db, goal_id)
    ensure_active(goal)
    new_due = changes.get("due_date")
    if new_due is not None:
        latest_step_due = (
            db.query(func.max(Step.due_date))
            .filter(Step.goal_id == goal_id)
            .scalar()
        )
        if latest_step_due is not None and latest_step_due > new_due:
            raise StepDueDateError(latest_step_due, new_due)
    apply_plan_changes(goal, changes, cache)
    db.commit()
    db.refresh(goal)
    return goal


def archive_goal(db: Session, goal_id: int) -> Goal:
    goal = get_goal(db, goal_id)
    goal.status = GoalStatus.archived
    db.commit()
    db.refresh(goal)
    logger.info("Archived goal=%s", goal_id)
    return goal


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

def create_step(db: Session, goal_id: int, data: StepInput) -> Step:
    goal = get_goal(db, goal_id)
    ensure_active(goal)
    if data.due_date and goal.due_date and data.due_date > goal.due_date:
        raise StepDueDateError(data.due_date, goal.due_date)

    order_index = data.order_index
    if order_index is None:
        current_max = (
            db.query(func.max(Step.order_index))
            .filter(Step.goal_id == goal_id)
            .scalar()
        )
        order_index = 0 if current_max is None else current_max + 1

    step = Step(
        goal_id=goal_id,
        title=data.title,
        step_type=StepType(data.step_type),
        is_required=data.is_required,
        order_index=order_index,
        due_date=data.due_date,
        status=StepStatus.not_started,
        skip_count=0,
    )
    db.add(step)
    db.commit()
    db.refresh(step)
    return step


def _ensure_not_final(step: Step) -> None:
    if ev(step.status) in {s.value for s in TERMINAL_STEP_STATUSES}:
        raise StepAlreadyFinalError(step.id, ev(step.status))


def complete_step(
    db: Session,
    goal: Goal,
    step: Step,
    points_override: Optional[int] = None,
    now: Optional[datetime] = None,
) -> int:
    """
    Mark `step` done, write its ledger award and bump goal.earned_points.
    Flush only. Returns the points awarded for the step.
    """
    _ensure_not_final(step)
    now = now or utcnow()

    awarded = (
        points_override
        if points_override is not None
        else points_service.calculate_step_points(goal.category, ev(step.step_type))
    )
    step.status = StepStatus.done
    step.completed_at = now
    step.points_awarded = awarded

    points_service.award_points(
        db,
        user_id=goal.owner_id,
        category=goal.category,
        points=awarded,
        entry_type=LedgerEntryType.STEP_COMPLETED,
        goal_id=goal.id,
        step_id=step.id,
    )
    goal.earned_points = (goal.earned_points or 0) + awarded
    db.flush()

    _maybe_complete_goal(db, goal, now)
    return awarded


def _maybe_complete_goal(db: Session, goal: Goal, now: datetime) -> bool:
    """Complete a non-habit goal once all its required steps are done."""
    if ev(goal.goal_type) == GoalType.habit.value:
        return False
    if ev(goal.status) != GoalStatus.active.value:
        return False

    required = (
        db.query(Step.status)
        .filter(Step.goal_id == goal.id, Step.is_required.is_(True))
        .all()
    )
    if not required or any(ev(r.status) != StepStatus.done.value for r in required):
        return False

    bonus = points_service.get_goal_completion_bonus(goal.category)
    points_service.award_points(
        db,
        user_id=goal.owner_id,
        category=goal.category,
        points=bonus,
        entry_type=LedgerEntryType.GOAL_COMPLETED,
        goal_id=goal.id,
    )
    goal.earned_points = (goal.earned_points or 0) + bonus
    goal.status = GoalStatus.completed
    goal.completed_at = now
    db.flush()
    logger.info("Goal=%s completed; bonus=%s", goal.id, bonus)
    return True


def skip_step(db: Session, step: Step, record: dict[str, Any], skipped_on: date) -> None:
    """Append a skip record and mark the step skipped. Flush only."""
    _ensure_not_final(step)
    records = jload(step.skip_reasons, [])
    records.append(record)
    step.skip_reasons = jdump(records)
    step.skip_count = (step.skip_count or 0) + 1
    step.last_skipped_date = skipped_on
    step.status = StepStatus.skipped
    db.flush()
