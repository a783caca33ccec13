"""
Goals router.

POST   /goals                            create goal (computes TPP)
GET    /goals                            list caller's goals
GET    /goals/teaching                   goals where caller is the teaching helper
GET    /goals/{id}                       fetch goal
PATCH  /goals/{id}                       update plan fields
POST   /goals/{id}/archive               archive goal
POST   /goals/{id}/steps                 create step
GET    /goals/{id}/steps                 list steps
POST   /goals/{id}/assessment            save skill assessment
GET    /goals/{id}/smart-start           preview Smart Start suggestion
POST   /goals/{id}/smart-start           save Smart Start plan
PUT    /goals/{id}/teaching-helper       save teaching helper
GET    /goals/{id}/progress-summary      progression rollup
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.deps import get_current_user_id, get_goal_type_cache
from app.db.base import get_db
from app.models.goal import Goal
from app.models.step import Step
from app.schemas.common import ErrorResponse
from app.schemas.goals import (
    AssessmentRequest,
    AssessmentResponse,
    GoalCreate,
    GoalListResponse,
    GoalResponse,
    GoalUpdate,
    ProgressSummaryResponse,
    SkillAssessmentOut,
    SmartStartResponse,
    SmartStartSaveRequest,
    StepCreate,
    StepListResponse,
    StepResponse,
    TeachingGoalListResponse,
    TeachingGoalResponse,
    TeachingHelperRequest,
    TeachingHelperResponse,
)
from app.services import goals as goal_service
from app.services import mastery
from app.services.common import ev, jload
from app.services.goal_type_cache import GoalTypeCache
from app.services.points import category_display_name

router = APIRouter(prefix="/goals", tags=["goals"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def goal_to_response(goal: Goal) -> GoalResponse:
    return GoalResponse(
        id=goal.id,
        owner_id=goal.owner_id,
        created_by=goal.created_by,
        title=goal.title,
        category=goal.category,
        category_display_name=category_display_name(goal.category),
        goal_type=ev(goal.goal_type),
        status=ev(goal.status),
        frequency_per_week=goal.frequency_per_week or 0,
        duration_weeks=goal.duration_weeks or 0,
        planned_steps_count=goal.planned_steps_count or 0,
        planned_milestones_count=goal.planned_milestones_count or 0,
        planned_scaffold_count=goal.planned_scaffold_count or 0,
        total_possible_points=goal.total_possible_points or 0,
        earned_points=goal.earned_points or 0,
        streak_count=goal.streak_count or 0,
        longest_streak=goal.longest_streak or 0,
        last_completed_date=_iso(goal.last_completed_date),
        metadata=goal_service.read_metadata(goal),
        due_date=_iso(goal.due_date),
        completed_at=_iso(goal.completed_at),
        created_at=_iso(goal.created_at) or "",
    )


def step_to_response(step: Step) -> StepResponse:
    return StepResponse(
        id=step.id,
        goal_id=step.goal_id,
        order_index=step.order_index,
        title=step.title,
        step_type=ev(step.step_type),
        is_required=step.is_required,
        status=ev(step.status),
        points_awarded=step.points_awarded,
        due_date=_iso(step.due_date),
        completed_at=_iso(step.completed_at),
        completion_streak=step.completion_streak,
        skip_count=step.skip_count or 0,
        skip_reasons=jload(step.skip_reasons, []),
        last_skipped_date=_iso(step.last_skipped_date),
    )


def _plan_to_response(plan: mastery.SmartStartPlan) -> SmartStartResponse:
    return SmartStartResponse(
        suggested_initial=plan.suggested_initial,
        target_frequency=plan.target_frequency,
        rationale=plan.rationale,
        phase_guidance=plan.phase_guidance,
        used_default=plan.used_default,
    )


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=GoalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a goal",
)
def create_goal(
    body: GoalCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Create a goal owned by the caller. `total_possible_points` is derived from
    category, frequency, duration, milestone and scaffold counts.
    """
    goal = goal_service.create_goal(
        db, goal_service.GoalInput(**body.model_dump()), owner_id=user_id
    )
    return goal_to_response(goal)


@router.get("", response_model=GoalListResponse, summary="List the caller's goals")
def list_goals(
    include_archived: bool = Query(default=False),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    goals = goal_service.list_goals(db, user_id, include_archived=include_archived)
    return GoalListResponse(total=len(goals), items=[goal_to_response(g) for g in goals])


@router.get(
    "/teaching",
    response_model=TeachingGoalListResponse,
    summary="Goals where the caller is the teaching helper",
)
def list_teaching_goals(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    items = mastery.get_teaching_helper_goals(db, helper_id=user_id)
    return TeachingGoalListResponse(
        total=len(items),
        items=[TeachingGoalResponse(**vars(item)) for item in items],
    )


@router.get(
    "/{goal_id}",
    response_model=GoalResponse,
    summary="Fetch a goal",
    responses={404: {"model": ErrorResponse, "description": "Goal not found"}},
)
def get_goal(goal_id: int, db: Session = Depends(get_db)):
    return goal_to_response(goal_service.get_goal(db, goal_id))


@router.patch(
    "/{goal_id}",
    response_model=GoalResponse,
    summary="Update plan fields",
    responses={
        404: {"model": ErrorResponse, "description": "Goal not found"},
        409: {"model": ErrorResponse, "description": "Goal is archived"},
    },
)
def update_goal(
    goal_id: int,
    body: GoalUpdate,
    db: Session = Depends(get_db),
    cache: GoalTypeCache = Depends(get_goal_type_cache),
):
    """Only fields present in the body are applied; TPP is recomputed when its inputs change."""
    changes = {
        name: value
        for name, value in body.model_dump(exclude_unset=True).items()
        if value is not None or name == "due_date"
    }
    goal = goal_service.update_goal(db, goal_id, changes, cache=cache)
    return goal_to_response(goal)


@router.post("/{goal_id}/archive", response_model=GoalResponse, summary="Archive a goal")
def archive_goal(goal_id: int, db: Session = Depends(get_db)):
    return goal_to_response(goal_service.archive_goal(db, goal_id))


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

@router.post(
    "/{goal_id}/steps",
    response_model=StepResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a step",
    responses={422: {"model": ErrorResponse, "description": "Step due date after goal due date"}},
)
def create_step(goal_id: int, body: StepCreate, db: Session = Depends(get_db)):
    step = goal_service.create_step(db, goal_id, goal_service.StepInput(**body.model_dump()))
    return step_to_response(step)


@router.get("/{goal_id}/steps", response_model=StepListResponse, summary="List steps in order")
def list_steps(goal_id: int, db: Session = Depends(get_db)):
    steps = goal_service.list_steps(db, goal_id)
    return StepListResponse(total=len(steps), items=[step_to_response(s) for s in steps])


# ---------------------------------------------------------------------------
# Skill assessment / Smart Start
# ---------------------------------------------------------------------------

@router.post(
    "/{goal_id}/assessment",
    response_model=AssessmentResponse,
    summary="Save a skill assessment",
)
def save_assessment(goal_id: int, body: AssessmentRequest, db: Session = Depends(get_db)):
    """
    Store the three answers and the derived level, and return the Smart Start
    suggestion for the requested (or current) target frequency.
    """
    assessment = mastery.save_skill_assessment(
        db, goal_id, body.q1_familiarity, body.q2_confidence, body.q3_independence
    )
    target = body.target_frequency
    if target is None:
        target = goal_service.get_goal(db, goal_id).frequency_per_week or 0
    plan = mastery.suggest_start_frequency(assessment.calculated_level, target)
    return AssessmentResponse(
        assessment=SkillAssessmentOut(**assessment.to_dict()),
        display_label=mastery.get_skill_level_label(assessment.calculated_level),
        smart_start=_plan_to_response(plan),
    )


@router.get(
    "/{goal_id}/smart-start",
    response_model=SmartStartResponse,
    summary="Preview a Smart Start suggestion",
)
def preview_smart_start(
    goal_id: int,
    target_frequency: int = Query(..., ge=0),
    skill_level: Optional[int] = Query(
        default=None, description="Defaults to the goal's stored assessment level."
    ),
    db: Session = Depends(get_db),
):
    goal = goal_service.get_goal(db, goal_id)
    if skill_level is None:
        stored = goal_service.read_metadata(goal).get("skill_assessment") or {}
        skill_level = stored.get("calculated_level", 1)
    return _plan_to_response(mastery.suggest_start_frequency(skill_level, target_frequency))


@router.post(
    "/{goal_id}/smart-start",
    response_model=GoalResponse,
    summary="Save a Smart Start plan",
)
def save_smart_start(goal_id: int, body: SmartStartSaveRequest, db: Session = Depends(get_db)):
    """Stores the plan and sets the goal's `frequency_per_week` to `selected_frequency`."""
    plan = mastery.suggest_start_frequency(body.skill_level, body.target_frequency)
    goal = mastery.save_smart_start_plan(
        db, goal_id, plan, accepted=body.accepted, selected_frequency=body.selected_frequency
    )
    return goal_to_response(goal)


# ---------------------------------------------------------------------------
# Teaching helper / progress summary
# ---------------------------------------------------------------------------

@router.put(
    "/{goal_id}/teaching-helper",
    response_model=TeachingHelperResponse,
    summary="Assign the teaching helper",
)
def save_teaching_helper(goal_id: int, body: TeachingHelperRequest, db: Session = Depends(get_db)):
    helper = mastery.save_teaching_helper(
        db, goal_id, body.helper_id, body.helper_name, body.relationship
    )
    return TeachingHelperResponse(**helper)


@router.get(
    "/{goal_id}/progress-summary",
    response_model=ProgressSummaryResponse,
    summary="Progression rollup for a goal",
)
def progress_summary(goal_id: int, db: Session = Depends(get_db)):
    return ProgressSummaryResponse(**vars(mastery.get_progress_summary(db, goal_id)))
