"""
Check-in request / response schemas.

Field ranges are enforced by the check-in service (with user-facing
messages), not here: the request models only fix the JSON types.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CheckInCreate(BaseModel):
    goal_id: Optional[int] = None
    step_id: Optional[int] = None
    quality_rating: Optional[int] = Field(default=None, description="1–5, required.")
    independence_level: Optional[int] = Field(default=None, description="1–5, required.")
    time_spent_minutes: Optional[float] = Field(default=None, description="1–480 whole minutes.")
    confidence_before: Optional[int] = None
    confidence_after: Optional[int] = None
    notes: Optional[str] = Field(default=None, description="At most 500 characters.")
    helper_present: bool = False
    helper_id: Optional[str] = Field(default=None, description="Required when helper_present.")
    allow_duplicate: bool = Field(
        default=False,
        description="Record another check-in for a step that already has one.",
    )


class CheckInUpdate(BaseModel):
    """Partial update; only fields present in the body are validated and written."""
    quality_rating: Optional[int] = None
    independence_level: Optional[int] = None
    time_spent_minutes: Optional[float] = None
    confidence_before: Optional[int] = None
    confidence_after: Optional[int] = None
    notes: Optional[str] = None
    helper_present: Optional[bool] = None
    helper_id: Optional[str] = None


class CheckInResponse(BaseModel):
    id: int
    user_id: str
    goal_id: int
    step_id: int
    quality_rating: int
    independence_level: int
    time_spent_minutes: Optional[int] = None
    confidence_before: Optional[int] = None
    confidence_after: Optional[int] = None
    notes: Optional[str] = None
    helper_present: bool
    helper_id: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None


class CheckInListResponse(BaseModel):
    total: int
    items: list[CheckInResponse]


class ProgressionAnalyticsResponse(BaseModel):
    total_check_ins: int
    avg_quality_rating: float
    avg_independence_level: float
    quality_trend: str = Field(description='"improving" | "stable" | "declining" | "insufficient_data"')
    independence_trend: str
    avg_time_spent_minutes: float
    sessions_with_helper: int
    sessions_independent: int
    confidence_gain: float
    recent_check_ins: list[CheckInResponse]


class StepProgressionResponse(BaseModel):
    step_id: int
    step_title: str
    attempt_count: int
    improvement_rate: float = Field(description="Percent change of independence, first to last attempt.")
    avg_quality: float
    avg_independence: float
    check_ins: list[CheckInResponse]
