"""
Check-ins router.

POST   /check-ins                                create (schedules phase recompute)
GET    /check-ins/recent?days=7                  caller's recent activity
GET    /check-ins/goal/{goal_id}                 newest first
GET    /check-ins/goal/{goal_id}/analytics       progression analytics
GET    /check-ins/step/{step_id}                 newest first
GET    /check-ins/step/{step_id}/latest          latest check-in for a step
GET    /check-ins/step/{step_id}/progression     per-step progression
GET    /check-ins/{id}                           fetch
PATCH  /check-ins/{id}                           partial update (edit window)
DELETE /check-ins/{id}                           delete (edit window)
"""
from __future__ import annotations

from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_user_id, get_goal_type_cache
from app.core.errors import CheckInNotFoundError
from app.db.base import get_db, get_session_factory
from app.models.check_in import CheckIn
from app.schemas.common import ErrorResponse
from app.schemas.check_ins import (
    CheckInCreate,
    CheckInListResponse,
    CheckInResponse,
    CheckInUpdate,
    ProgressionAnalyticsResponse,
    StepProgressionResponse,
)
from app.services import check_ins as check_in_service
from app.services.goal_type_cache import GoalTypeCache
from app.services.phase import recompute_phase_in_background

router = APIRouter(prefix="/check-ins", tags=["check-ins"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def check_in_to_response(ci: CheckIn) -> CheckInResponse:
    return CheckInResponse(
        id=ci.id,
        user_id=ci.user_id,
        goal_id=ci.goal_id,
        step_id=ci.step_id,
        quality_rating=ci.quality_rating,
        independence_level=ci.independence_level,
        time_spent_minutes=ci.time_spent_minutes,
        confidence_before=ci.confidence_before,
        confidence_after=ci.confidence_after,
        notes=ci.notes,
        helper_present=bool(ci.helper_present),
        helper_id=ci.helper_id,
        created_at=ci.created_at.isoformat() if ci.created_at else "",
        updated_at=ci.updated_at.isoformat() if ci.updated_at else None,
    )


def _list(items: list[CheckIn]) -> CheckInListResponse:
    return CheckInListResponse(total=len(items), items=[check_in_to_response(ci) for ci in items])


def _whole_minutes(value):
    """JSON numbers like 30.0 arrive as floats; keep real fractions for the validator."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def get_phase_scheduler(
    background_tasks: BackgroundTasks,
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> check_in_service.PhaseScheduler:
    """Queue phase recomputation to run after the response is sent."""
    def schedule(goal_id: int) -> None:
        background_tasks.add_task(recompute_phase_in_background, session_factory, goal_id)
    return schedule


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=CheckInResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a check-in",
    responses={
        404: {"model": ErrorResponse, "description": "Goal or step not found"},
        409: {"model": ErrorResponse, "description": "Step already has a check-in"},
        422: {"model": ErrorResponse, "description": "Validation error (message is user-facing)"},
    },
)
def create_check_in(
    body: CheckInCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    cache: GoalTypeCache = Depends(get_goal_type_cache),
    schedule: check_in_service.PhaseScheduler = Depends(get_phase_scheduler),
):
    """
    Validate and store a check-in for a progressive mastery goal. The goal's
    learning phase is recomputed in the background after the write; a failed
    recompute never affects this response.
    """
    fields = body.model_dump(exclude={"allow_duplicate"})
    fields["time_spent_minutes"] = _whole_minutes(fields["time_spent_minutes"])
    check_in = check_in_service.create_check_in(
        db,
        check_in_service.CheckInInput(**fields),
        user_id=user_id,
        cache=cache,
        schedule_phase_update=schedule,
        allow_duplicate=body.allow_duplicate,
    )
    return check_in_to_response(check_in)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@router.get("/recent", response_model=CheckInListResponse, summary="Caller's recent check-ins")
def recent_activity(
    days: int = Query(default=7, ge=1, le=365),
    limit: int = Query(default=50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return _list(check_in_service.get_recent_activity(db, user_id, days=days, limit=limit))


@router.get("/goal/{goal_id}", response_model=CheckInListResponse, summary="Check-ins for a goal")
def by_goal(
    goal_id: int,
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return _list(check_in_service.get_by_goal(db, goal_id, limit=limit))


@router.get(
    "/goal/{goal_id}/analytics",
    response_model=ProgressionAnalyticsResponse,
    summary="Progression analytics for a goal",
)
def goal_analytics(goal_id: int, db: Session = Depends(get_db)):
    """
    Averages, helper/independent session split, confidence gain and trends
    over the goal's last 100 check-ins.

    ### Trends
    `improving` / `declining` when the later half's mean differs from the
    earlier half's by at least 0.5; `insufficient_data` below 6 check-ins.
    """
    a = check_in_service.get_progression_analytics(db, goal_id)
    return ProgressionAnalyticsResponse(
        total_check_ins=a.total_check_ins,
        avg_quality_rating=a.avg_quality_rating,
        avg_independence_level=a.avg_independence_level,
        quality_trend=a.quality_trend,
        independence_trend=a.independence_trend,
        avg_time_spent_minutes=a.avg_time_spent_minutes,
        sessions_with_helper=a.sessions_with_helper,
        sessions_independent=a.sessions_independent,
        confidence_gain=a.confidence_gain,
        recent_check_ins=[check_in_to_response(ci) for ci in a.recent_check_ins],
    )


@router.get("/step/{step_id}", response_model=CheckInListResponse, summary="Check-ins for a step")
def by_step(
    step_id: int,
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return _list(check_in_service.get_by_step(db, step_id, limit=limit))


@router.get(
    "/step/{step_id}/latest",
    response_model=CheckInResponse,
    summary="Latest check-in for a step",
    responses={404: {"description": "No check-in for this step"}},
)
def latest_for_step(step_id: int, db: Session = Depends(get_db)):
    check_in = check_in_service.get_latest_for_step(db, step_id)
    if check_in is None:
        raise CheckInNotFoundError(step_id=step_id)
    return check_in_to_response(check_in)


@router.get(
    "/step/{step_id}/progression",
    response_model=StepProgressionResponse,
    summary="Progression of a single step",
)
def step_progression(step_id: int, db: Session = Depends(get_db)):
    data = check_in_service.get_step_progression_data(db, step_id)
    return StepProgressionResponse(
        step_id=data.step_id,
        step_title=data.step_title,
        attempt_count=data.attempt_count,
        improvement_rate=data.improvement_rate,
        avg_quality=data.avg_quality,
        avg_independence=data.avg_independence,
        check_ins=[check_in_to_response(ci) for ci in data.check_ins],
    )


@router.get("/{check_in_id}", response_model=CheckInResponse, summary="Fetch a check-in")
def get_check_in(check_in_id: int, db: Session = Depends(get_db)):
    return check_in_to_response(check_in_service.get_check_in(db, check_in_id))


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------

@router.patch(
    "/{check_in_id}",
    response_model=CheckInResponse,
    summary="Edit a check-in",
    responses={409: {"model": ErrorResponse, "description": "Edit window has closed"}},
)
def update_check_in(
    check_in_id: int,
    body: CheckInUpdate,
    db: Session = Depends(get_db),
    schedule: check_in_service.PhaseScheduler = Depends(get_phase_scheduler),
):
    changes = body.model_dump(exclude_unset=True)
    if "time_spent_minutes" in changes:
        changes["time_spent_minutes"] = _whole_minutes(changes["time_spent_minutes"])
    check_in = check_in_service.update_check_in(
        db, check_in_id, changes, schedule_phase_update=schedule
    )
    return check_in_to_response(check_in)


@router.delete(
    "/{check_in_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a check-in",
    responses={409: {"model": ErrorResponse, "description": "Edit window has closed"}},
)
def delete_check_in(
    check_in_id: int,
    db: Session = Depends(get_db),
    schedule: check_in_service.PhaseScheduler = Depends(get_phase_scheduler),
):
    check_in_service.delete_check_in(db, check_in_id, schedule_phase_update=schedule)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
