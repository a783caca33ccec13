"""
Goal, step and progressive mastery schemas.

POST  /goals                          → GoalCreate → GoalResponse
PATCH /goals/{id}                     → GoalUpdate → GoalResponse
POST  /goals/{id}/steps               → StepCreate → StepResponse
POST  /goals/{id}/assessment          → AssessmentRequest → AssessmentResponse
GET   /goals/{id}/smart-start         → SmartStartResponse
POST  /goals/{id}/smart-start         → SmartStartSaveRequest → GoalResponse
PUT   /goals/{id}/teaching-helper     → TeachingHelperRequest → TeachingHelperResponse
GET   /goals/{id}/progress-summary    → ProgressSummaryResponse
GET   /goals/teaching                 → TeachingGoalListResponse
"""
from __future__ import annotations

import enum
from datetime import date
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.goal import GoalType
from app.models.step import StepType

Count = Annotated[int, Field(ge=0)]
Answer = Annotated[int, Field(ge=1, le=5, description="Self-assessment answer, 1–5.")]


class HelperRelationship(str, enum.Enum):
    parent = "parent"
    teacher = "teacher"
    coach = "coach"


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------

class GoalCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    title: Annotated[str, Field(min_length=1, max_length=256)]
    category: str = Field(
        default="general",
        description="Ledger category or goal domain slug (e.g. `independent-living`).",
        examples=["employment", "independent-living"],
    )
    goal_type: GoalType = GoalType.standard
    frequency_per_week: Count = 0
    duration_weeks: Count = 0
    planned_steps_count: Count = 0
    planned_milestones_count: Count = 0
    planned_scaffold_count: Count = 0
    due_date: Optional[date] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: str) -> str:
        stripped = v.strip() if isinstance(v, str) else v
        if not stripped:
            raise ValueError("title must not be empty after stripping whitespace")
        return stripped


class GoalUpdate(BaseModel):
    """Only the fields present in the request body are applied."""
    model_config = ConfigDict(use_enum_values=True)

    title: Optional[Annotated[str, Field(min_length=1, max_length=256)]] = None
    category: Optional[str] = None
    goal_type: Optional[GoalType] = None
    frequency_per_week: Optional[Count] = None
    duration_weeks: Optional[Count] = None
    planned_steps_count: Optional[Count] = None
    planned_milestones_count: Optional[Count] = None
    planned_scaffold_count: Optional[Count] = None
    due_date: Optional[date] = None


class GoalResponse(BaseModel):
    id: int
    owner_id: str
    created_by: Optional[str] = None
    title: str
    category: str
    category_display_name: str
    goal_type: str
    status: str
    frequency_per_week: int
    duration_weeks: int
    planned_steps_count: int
    planned_milestones_count: int
    planned_scaffold_count: int
    total_possible_points: int
    earned_points: int
    streak_count: int
    longest_streak: int
    last_completed_date: Optional[str] = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="skill_assessment, smart_start, teaching_helper, current_phase.",
    )
    due_date: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: str


class GoalListResponse(BaseModel):
    total: int
    items: list[GoalResponse]


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

class StepCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    title: Annotated[str, Field(min_length=1, max_length=256)]
    step_type: StepType = StepType.action
    is_required: bool = True
    order_index: Optional[Count] = Field(
        default=None, description="Defaults to the end of the goal's step list."
    )
    due_date: Optional[date] = Field(
        default=None, description="Must not be later than the goal's due date."
    )


class StepResponse(BaseModel):
    id: int
    goal_id: int
    order_index: int
    title: str
    step_type: str
    is_required: bool
    status: str
    points_awarded: Optional[int] = None
    due_date: Optional[str] = None
    completed_at: Optional[str] = None
    completion_streak: Optional[int] = None
    skip_count: int
    skip_reasons: list[dict[str, Any]] = Field(default_factory=list)
    last_skipped_date: Optional[str] = None


class StepListResponse(BaseModel):
    total: int
    items: list[StepResponse]


# ---------------------------------------------------------------------------
# Skill assessment / Smart Start
# ---------------------------------------------------------------------------

class AssessmentRequest(BaseModel):
    q1_familiarity: Answer
    q2_confidence: Answer
    q3_independence: Answer
    target_frequency: Optional[Count] = Field(
        default=None,
        description="Target days per week. Defaults to the goal's frequency_per_week.",
    )


class SmartStartResponse(BaseModel):
    suggested_initial: int
    target_frequency: int
    rationale: str
    phase_guidance: str
    used_default: bool = Field(
        description="True when the skill level was outside 1–5 and the fallback ramp applied."
    )


class SkillAssessmentOut(BaseModel):
    calculated_level: int
    q1_familiarity: int
    q2_confidence: int
    q3_independence: int
    level_label: str
    assessment_date: str


class AssessmentResponse(BaseModel):
    assessment: SkillAssessmentOut
    display_label: str
    smart_start: SmartStartResponse


class SmartStartSaveRequest(BaseModel):
    skill_level: int
    target_frequency: Count
    accepted: bool
    selected_frequency: Annotated[int, Field(ge=1)]


# ---------------------------------------------------------------------------
# Teaching helper / rollups
# ---------------------------------------------------------------------------

class TeachingHelperRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    helper_id: Annotated[str, Field(min_length=1, max_length=64)]
    helper_name: Annotated[str, Field(min_length=1, max_length=128)]
    relationship: HelperRelationship


class TeachingHelperResponse(BaseModel):
    helper_id: str
    helper_name: str
    relationship: str


class ProgressSummaryResponse(BaseModel):
    total_steps: int
    completed_steps: int
    avg_quality_rating: float
    avg_independence_level: float
    latest_independence_level: int
    quality_trend: str
    independence_trend: str
    sessions_with_helper: int
    sessions_independent: int
    avg_time_spent_minutes: float
    skill_assessment: Optional[dict[str, Any]] = None
    smart_start: Optional[dict[str, Any]] = None
    teaching_helper: Optional[dict[str, Any]] = None
    current_phase: Optional[str] = None


class TeachingGoalResponse(BaseModel):
    goal_id: int
    title: str
    owner_id: str
    category: str
    status: str
    relationship: str
    current_phase: Optional[str] = None
    streak_count: int = 0


class TeachingGoalListResponse(BaseModel):
    total: int
    items: list[TeachingGoalResponse]
