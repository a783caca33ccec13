"""
Points router.

GET /points/schedule/{category}   per-step values and completion bonus
GET /points/tpp                   Total Possible Points preview
GET /points/balance               caller's ledger balance
GET /points/summary               per-category breakdown
GET /points/ledger                ledger entries (paginated, newest first)
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_current_user_id
from app.db.base import get_db
from app.schemas.points import (
    BalanceResponse,
    CategoryPointsOut,
    LedgerEntryResponse,
    LedgerListResponse,
    PointsSummaryResponse,
    ScheduleResponse,
    TPPResponse,
)
from app.services import points as points_service

router = APIRouter(prefix="/points", tags=["points"])


@router.get("/schedule/{category}", response_model=ScheduleResponse, summary="Category point schedule")
def get_schedule(category: str):
    lookup = points_service.resolve_category(category)
    s = lookup.schedule
    return ScheduleResponse(
        category=s.category,
        display_name=s.display_name,
        habit=s.habit,
        action=s.action,
        milestone=s.milestone,
        scaffolding=s.scaffolding,
        completion_bonus=points_service.get_goal_completion_bonus(category),
        used_default=lookup.used_default,
    )


@router.get("/tpp", response_model=TPPResponse, summary="Preview Total Possible Points")
def preview_tpp(
    category: str = Query(default="general"),
    frequency_per_week: int = Query(default=0),
    duration_weeks: int = Query(default=0),
    planned_milestones_count: int = Query(default=0),
    planned_scaffold_count: int = Query(default=0),
    step_type: str = Query(default="habit", description='"habit" or "action" cadence.'),
):
    """Negative inputs are rejected with `INVALID_POINTS_INPUT`."""
    b = points_service.tpp_breakdown(
        category,
        frequency_per_week,
        duration_weeks,
        planned_milestones_count,
        planned_scaffold_count,
        step_type,
    )
    return TPPResponse(
        category=b.category,
        cadence_points=b.cadence_points,
        milestone_points=b.milestone_points,
        scaffold_points=b.scaffold_points,
        completion_bonus=b.completion_bonus,
        total_possible_points=b.total,
        used_default=b.used_default,
    )


@router.get("/balance", response_model=BalanceResponse, summary="Caller's points balance")
def get_balance(
    category: Optional[str] = Query(default=None, description="Omit for all categories."),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    balance = points_service.get_balance(db, user_id, category)
    return BalanceResponse(
        user_id=user_id,
        category=points_service.normalize_category(category) if category else None,
        balance=balance,
    )


@router.get("/summary", response_model=PointsSummaryResponse, summary="Per-category points")
def get_summary(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    summary = points_service.get_points_summary(db, user_id)
    return PointsSummaryResponse(
        total_points=summary.total_points,
        categories=[CategoryPointsOut(**vars(c)) for c in summary.categories],
    )


@router.get("/ledger", response_model=LedgerListResponse, summary="Ledger entries (newest first)")
def list_ledger(
    category: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    total, items = points_service.list_ledger(db, user_id, category, limit=limit, offset=offset)
    return LedgerListResponse(
        total=total,
        items=[
            LedgerEntryResponse(
                id=e.id,
                category=e.category,
                points=e.points,
                entry_type=e.entry_type,
                goal_id=e.goal_id,
                step_id=e.step_id,
                created_at=e.created_at.isoformat() if e.created_at else "",
            )
            for e in items
        ],
    )
