"""
Habit streak tracker.

Streaks are always derived from step completion history (done steps,
completed_at de-duplicated to one calendar day, UTC); the counters on Goal
(streak_count, longest_streak, last_completed_date) are a cache of that
derivation and can be rebuilt at any time with recompute_goal_streak().

Walk (dates newest first, cursor starts at today):
    gap 0 or 1 day  -> date counts, cursor moves onto it
    gap of 2 days   -> tolerated once per streak (grace), date counts
    anything else   -> walk stops

Risk thresholds: more than 24h since last completion is "at risk";
48h is the hard break.

Public API
----------
calculate_streak(db, goal_id, now=None)        -> StreakCalculation
mark_habit_complete(db, step_id, goal_id, ...)  -> HabitCompletion   (commits)
record_skip(db, step_id, goal_id, reason, ...)  -> SkipOutcome       (commits)
check_streak_status(db, goal_id, now=None)      -> StreakStatus
recompute_goal_streak(db, goal, now=None)       -> StreakCalculation (flush only)
recompute_user_streaks(db, user_id, now=None)   -> list[RecomputeResult] (commits)
get_user_habits(db, user_id, now=None)          -> list[HabitSummary]
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.goal import Goal, GoalStatus, GoalType
from app.models.points_ledger import LedgerEntryType, PointsLedgerEntry
from app.models.step import SkipReason, Step, StepStatus
from app.services.common import as_utc, ev, round_half_up, start_of_day, utcnow
from app.services.goals import complete_step, ensure_active, get_goal, get_step, skip_step

logger = logging.getLogger(__name__)

AT_RISK_HOURS = 24
BREAK_HOURS = 48
GRACE_GAP_DAYS = 2


class StreakMilestone:
    NONE     = "none"
    BRONZE   = "bronze"
    SILVER   = "silver"
    GOLD     = "gold"
    PLATINUM = "platinum"


# (minimum streak, tier), highest first
MILESTONE_TIERS = (
    (30, StreakMilestone.PLATINUM),
    (14, StreakMilestone.GOLD),
    (7,  StreakMilestone.SILVER),
    (3,  StreakMilestone.BRONZE),
)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class StreakCalculation:
    current_streak: int
    longest_streak: int
    consecutive_days: int
    is_streak_at_risk: bool
    streak_milestone: str
    last_completed_date: Optional[date] = None


@dataclass
class HabitCompletion:
    new_streak: int
    longest_streak: int
    milestone: str
    points_awarded: int


@dataclass
class SkipOutcome:
    streak_broken: bool
    new_streak: int


@dataclass
class StreakStatus:
    is_at_risk: bool
    hours_remaining: float


@dataclass
class RecomputeResult:
    goal_id: int
    streak_count: int
    longest_streak: int
    earned_points: int


@dataclass
class HabitSummary:
    goal: Goal
    streak: StreakCalculation


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def get_streak_milestone(streak: int) -> str:
    for minimum, tier in MILESTONE_TIERS:
        if streak >= minimum:
            return tier
    return StreakMilestone.NONE


def walk_streak(dates_desc: list[date], today: date) -> tuple[int, int]:
    """Return (current_streak, consecutive_days) for distinct dates, newest first."""
    cursor = today
    current = 0
    consecutive = 0
    grace_used = False
    for day in dates_desc:
        gap = (cursor - day).days
        if gap <= 1:
            current += 1
            if not grace_used:
                consecutive += 1
        elif gap == GRACE_GAP_DAYS and not grace_used:
            grace_used = True
            current += 1
        else:
            break
        cursor = day
    return current, consecutive


def longest_chain(dates_desc: list[date]) -> int:
    """Longest streak anywhere in the history, same grace rule."""
    best = 0
    run = 0
    grace_used = False
    previous: Optional[date] = None
    for day in reversed(dates_desc):
        gap = (day - previous).days if previous is not None else None
        if gap is None or gap > GRACE_GAP_DAYS or (gap == GRACE_GAP_DAYS and grace_used):
            run = 1
            grace_used = False
        else:
            if gap == GRACE_GAP_DAYS:
                grace_used = True
            run += 1
        best = max(best, run)
        previous = day
    return best


def _hours_since(last: date, reference: datetime) -> float:
    return (reference - start_of_day(last)).total_seconds() / 3600


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def completion_dates(db: Session, goal_id: int) -> list[date]:
    """Distinct UTC completion dates of done steps, newest first."""
    rows = (
        db.query(Step.completed_at)
        .filter(
            Step.goal_id == goal_id,
            Step.status == StepStatus.done,
            Step.completed_at.isnot(None),
        )
        .all()
    )
    return sorted({as_utc(r.completed_at).date() for r in rows}, reverse=True)


def _calculate(goal: Goal, dates: list[date], now: datetime) -> StreakCalculation:
    today = now.date()
    current, consecutive = walk_streak(dates, today)
    last = goal.last_completed_date or (dates[0] if dates else None)

    at_risk = False
    if last is not None and current > 0:
        at_risk = _hours_since(last, start_of_day(today)) > AT_RISK_HOURS

    return StreakCalculation(
        current_streak=current,
        longest_streak=max(goal.longest_streak or 0, current),
        consecutive_days=consecutive,
        is_streak_at_risk=at_risk,
        streak_milestone=get_streak_milestone(current),
        last_completed_date=last,
    )


def calculate_streak(db: Session, goal_id: int, now: Optional[datetime] = None) -> StreakCalculation:
    goal = get_goal(db, goal_id)
    now = as_utc(now or utcnow())
    return _calculate(goal, completion_dates(db, goal_id), now)


def _status(goal: Goal, now: datetime) -> StreakStatus:
    if goal.last_completed_date is None or not goal.streak_count:
        return StreakStatus(is_at_risk=False, hours_remaining=0)
    hours = _hours_since(goal.last_completed_date, now)
    remaining = max(0.0, BREAK_HOURS - hours)
    return StreakStatus(
        is_at_risk=hours > AT_RISK_HOURS,
        hours_remaining=float(round_half_up(remaining, 1)),
    )


def check_streak_status(db: Session, goal_id: int, now: Optional[datetime] = None) -> StreakStatus:
    goal = get_goal(db, goal_id)
    return _status(goal, as_utc(now or utcnow()))


# ---------------------------------------------------------------------------
# Completion / skip
# ---------------------------------------------------------------------------

def mark_habit_complete(
    db: Session,
    step_id: int,
    goal_id: int,
    now: Optional[datetime] = None,
) -> HabitCompletion:
    """
    Complete the step and update the goal's streak counters, earned points
    and ledger in a single transaction.
    """
    now = as_utc(now or utcnow())
    goal = get_goal(db, goal_id)
    ensure_active(goal)
    step = get_step(db, step_id, goal_id=goal_id)

    try:
        awarded = complete_step(db, goal, step, now=now)

        goal.last_completed_date = now.date()
        calc = _calculate(goal, completion_dates(db, goal_id), now)
        goal.streak_count = calc.current_streak
        if calc.current_streak > (goal.longest_streak or 0):
            goal.longest_streak = calc.current_streak
        step.completion_streak = calc.current_streak
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Habit step=%s goal=%s done; streak=%s milestone=%s points=%s",
        step_id, goal_id, calc.current_streak, calc.streak_milestone, awarded,
    )
    return HabitCompletion(
        new_streak=calc.current_streak,
        longest_streak=goal.longest_streak,
        milestone=calc.streak_milestone,
        points_awarded=awarded,
    )


def record_skip(
    db: Session,
    step_id: int,
    goal_id: int,
    reason: str,
    custom_note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SkipOutcome:
    """
    Mark the step skipped with a structured record. The goal's streak is
    zeroed only when it was already at risk at skip time.
    """
    now = as_utc(now or utcnow())
    reason = SkipReason(reason)
    goal = get_goal(db, goal_id)
    step = get_step(db, step_id, goal_id=goal_id)

    at_risk = _calculate(goal, completion_dates(db, goal_id), now).is_streak_at_risk
    record = {
        "skipped_at": now.isoformat(),
        "reason": reason.value,
        "custom_note": custom_note,
        "streak_at_risk": at_risk,
    }
    try:
        skip_step(db, step, record, skipped_on=now.date())
        broken = at_risk and (goal.streak_count or 0) > 0
        if broken:
            goal.streak_count = 0
        db.commit()
    except Exception:
        db.rollback()
        raise

    if broken:
        logger.info("Streak broken on goal=%s by skip of step=%s (%s)", goal_id, step_id, reason.value)
    return SkipOutcome(streak_broken=broken, new_streak=goal.streak_count or 0)


# ---------------------------------------------------------------------------
# Reconciliation (background job)
# ---------------------------------------------------------------------------

def _ledger_earned(db: Session, goal_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(PointsLedgerEntry.points), 0))
        .filter(
            PointsLedgerEntry.goal_id == goal_id,
            PointsLedgerEntry.entry_type != LedgerEntryType.REDEMPTION_DEBIT,
        )
        .scalar()
    )
    return int(total or 0)


def recompute_goal_streak(db: Session, goal: Goal, now: Optional[datetime] = None) -> StreakCalculation:
    """Rebuild the goal's streak counters from history, ignoring stored values. Flush only."""
    now = as_utc(now or utcnow())
    dates = completion_dates(db, goal.id)
    goal.last_completed_date = dates[0] if dates else None

    current, consecutive = walk_streak(dates, now.date())
    longest = max(longest_chain(dates), current)
    at_risk = False
    if dates and current > 0:
        at_risk = _hours_since(dates[0], start_of_day(now.date())) > AT_RISK_HOURS

    goal.streak_count = current
    goal.longest_streak = longest
    db.flush()
    return StreakCalculation(
        current_streak=current,
        longest_streak=longest,
        consecutive_days=consecutive,
        is_streak_at_risk=at_risk,
        streak_milestone=get_streak_milestone(current),
        last_completed_date=goal.last_completed_date,
    )


def recompute_user_streaks(
    db: Session,
    user_id: str,
    now: Optional[datetime] = None,
) -> list[RecomputeResult]:
    """Bulk rebuild of streak and earned-points counters for a user's goals."""
    goals = (
        db.query(Goal)
        .filter(Goal.owner_id == user_id, Goal.status != GoalStatus.archived)
        .order_by(Goal.id)
        .all()
    )
    results = []
    for goal in goals:
        if ev(goal.goal_type) == GoalType.habit.value:
            recompute_goal_streak(db, goal, now=now)
        goal.earned_points = _ledger_earned(db, goal.id)
        results.append(RecomputeResult(
            goal_id=goal.id,
            streak_count=goal.streak_count or 0,
            longest_streak=goal.longest_streak or 0,
            earned_points=goal.earned_points,
        ))
    db.commit()
    logger.info("Recomputed counters for %s goals of user=%s", len(results), user_id)
    return results


def get_user_habits(db: Session, user_id: str, now: Optional[datetime] = None) -> list[HabitSummary]:
    now = as_utc(now or utcnow())
    goals = (
        db.query(Goal)
        .filter(
            Goal.owner_id == user_id,
            Goal.goal_type == GoalType.habit,
            Goal.status == GoalStatus.active,
        )
        .order_by(Goal.created_at.desc(), Goal.id.desc())
        .all()
    )
    return [
        HabitSummary(goal=goal, streak=_calculate(goal, completion_dates(db, goal.id), now))
        for goal in goals
    ]
