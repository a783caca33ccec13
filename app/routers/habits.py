"""
Habits router.

GET  /habits                                     caller's habit goals with streaks
POST /habits/recompute                           rebuild streak / points counters
GET  /habits/{goal_id}/streak                    calculate_streak
GET  /habits/{goal_id}/status                    at-risk probe
POST /habits/{goal_id}/steps/{step_id}/complete  mark habit complete
POST /habits/{goal_id}/steps/{step_id}/skip      record skip
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.deps import get_current_user_id
from app.db.base import get_db
from app.schemas.common import ErrorResponse
from app.schemas.habits import (
    HabitCompletionResponse,
    HabitListResponse,
    HabitSummaryResponse,
    RecomputeItem,
    RecomputeResponse,
    SkipRequest,
    SkipResponse,
    StreakResponse,
    StreakStatusResponse,
)
from app.services import streaks

router = APIRouter(prefix="/habits", tags=["habits"])


def _streak_to_response(calc: streaks.StreakCalculation) -> StreakResponse:
    return StreakResponse(
        current_streak=calc.current_streak,
        longest_streak=calc.longest_streak,
        consecutive_days=calc.consecutive_days,
        is_streak_at_risk=calc.is_streak_at_risk,
        streak_milestone=calc.streak_milestone,
        last_completed_date=calc.last_completed_date.isoformat() if calc.last_completed_date else None,
    )


# ---------------------------------------------------------------------------
# Caller-level
# ---------------------------------------------------------------------------

@router.get("", response_model=HabitListResponse, summary="Active habit goals with streaks")
def list_habits(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    habits = streaks.get_user_habits(db, user_id)
    return HabitListResponse(
        total=len(habits),
        items=[
            HabitSummaryResponse(
                goal_id=h.goal.id,
                title=h.goal.title,
                category=h.goal.category,
                frequency_per_week=h.goal.frequency_per_week or 0,
                streak=_streak_to_response(h.streak),
            )
            for h in habits
        ],
    )


@router.post(
    "/recompute",
    response_model=RecomputeResponse,
    summary="Rebuild streak and earned-points counters from history",
)
def recompute(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Reconciliation job: streak counters are re-derived from step completion
    history and `earned_points` from the ledger, ignoring stored values.
    """
    results = streaks.recompute_user_streaks(db, user_id)
    return RecomputeResponse(
        total=len(results),
        items=[RecomputeItem(**vars(r)) for r in results],
    )


# ---------------------------------------------------------------------------
# Per goal
# ---------------------------------------------------------------------------

@router.get("/{goal_id}/streak", response_model=StreakResponse, summary="Current streak")
def get_streak(goal_id: int, db: Session = Depends(get_db)):
    return _streak_to_response(streaks.calculate_streak(db, goal_id))


@router.get("/{goal_id}/status", response_model=StreakStatusResponse, summary="Streak risk probe")
def get_status(goal_id: int, db: Session = Depends(get_db)):
    """At risk after 24h without a completion; the streak breaks at 48h."""
    s = streaks.check_streak_status(db, goal_id)
    return StreakStatusResponse(is_at_risk=s.is_at_risk, hours_remaining=s.hours_remaining)


@router.post(
    "/{goal_id}/steps/{step_id}/complete",
    response_model=HabitCompletionResponse,
    summary="Complete a habit step",
    responses={409: {"model": ErrorResponse, "description": "Step already done or skipped"}},
)
def complete(goal_id: int, step_id: int, db: Session = Depends(get_db)):
    result = streaks.mark_habit_complete(db, step_id=step_id, goal_id=goal_id)
    return HabitCompletionResponse(**vars(result))


@router.post(
    "/{goal_id}/steps/{step_id}/skip",
    response_model=SkipResponse,
    summary="Skip a habit step",
    responses={409: {"model": ErrorResponse, "description": "Step already done or skipped"}},
)
def skip(goal_id: int, step_id: int, body: SkipRequest, db: Session = Depends(get_db)):
    """
    A skip breaks the streak only when it was already at risk (more than 24h
    since the last completion).
    """
    result = streaks.record_skip(
        db, step_id=step_id, goal_id=goal_id, reason=body.reason, custom_note=body.custom_note
    )
    return SkipResponse(streak_broken=result.streak_broken, new_streak=result.new_streak)
