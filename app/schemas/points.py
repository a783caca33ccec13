"""
Points / ledger schemas.
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class ScheduleResponse(BaseModel):
    category: str
    display_name: str
    habit: int
    action: int
    milestone: int
    scaffolding: int
    completion_bonus: int
    used_default: bool = Field(description="True when the category was unknown and `general` applied.")


class TPPResponse(BaseModel):
    category: str
    cadence_points: int
    milestone_points: int
    scaffold_points: int
    completion_bonus: int
    total_possible_points: int
    used_default: bool


class BalanceResponse(BaseModel):
    user_id: str
    category: str | None = None
    balance: int


class CategoryPointsOut(BaseModel):
    category: str
    display_name: str
    points: int


class PointsSummaryResponse(BaseModel):
    total_points: int
    categories: list[CategoryPointsOut]


class LedgerEntryResponse(BaseModel):
    id: int
    category: str
    points: int
    entry_type: str
    goal_id: int | None = None
    step_id: int | None = None
    created_at: str


class LedgerListResponse(BaseModel):
    total: int
    items: list[LedgerEntryResponse]
