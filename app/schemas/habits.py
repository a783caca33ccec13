"""
Habit streak schemas.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.step import SkipReason


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    consecutive_days: int
    is_streak_at_risk: bool
    streak_milestone: str = Field(description='"none" | "bronze" | "silver" | "gold" | "platinum"')
    last_completed_date: Optional[str] = None


class StreakStatusResponse(BaseModel):
    is_at_risk: bool
    hours_remaining: float = Field(description="Hours left before the 48h break threshold.")


class HabitCompletionResponse(BaseModel):
    new_streak: int
    longest_streak: int
    milestone: str
    points_awarded: int


class SkipRequest(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    reason: SkipReason
    custom_note: Optional[str] = Field(default=None, max_length=500)


class SkipResponse(BaseModel):
    streak_broken: bool
    new_streak: int


class HabitSummaryResponse(BaseModel):
    goal_id: int
    title: str
    category: str
    frequency_per_week: int
    streak: StreakResponse


class HabitListResponse(BaseModel):
    total: int
    items: list[HabitSummaryResponse]


class RecomputeItem(BaseModel):
    goal_id: int
    streak_count: int
    longest_streak: int
    earned_points: int


class RecomputeResponse(BaseModel):
    total: int
    items: list[RecomputeItem]
