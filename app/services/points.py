"""
Points & Total Possible Points (TPP) calculator, plus the points ledger.

Schedule
--------
Every category has a static schedule: points per step type and a one-off
goal completion bonus. Goal domains ("independent-living", "social", ...)
are mapped onto categories first. Anything unrecognised falls back to the
"general" schedule; lookups report that through `used_default` instead of
raising.

TPP
---
  cadence value (habit, or action when step_type == "action")
      x frequency_per_week x duration_weeks
  + milestone value x planned_milestones_count
  + SCAFFOLD_POINTS x planned_scaffold_count
  + completion bonus (once)

A zero frequency or duration leaves only the milestone / scaffold / bonus
terms: such goals are milestone-only. Negative inputs are rejected.

Ledger
------
Append-only `points_ledger` rows. award_points() flushes but never commits;
the calling flow owns the transaction.

Public API
----------
resolve_category(raw)                         -> ScheduleLookup
calculate_step_points(category, step_type)    -> int
lookup_step_points(category, step_type)       -> PointsLookup
get_goal_completion_bonus(category)           -> int
calculate_total_possible_points(...)          -> int
tpp_breakdown(...)                            -> TPPBreakdown
award_points(db, ...)                         -> PointsLedgerEntry
get_balance(db, user_id, category)            -> int
get_points_summary(db, user_id)               -> PointsSummary
list_ledger(db, user_id, ...)                 -> tuple[int, list[PointsLedgerEntry]]
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.errors import PointsInputError
from app.models.points_ledger import PointsLedgerEntry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Static schedule
# ---------------------------------------------------------------------------

DEFAULT_CATEGORY = "general"
DEFAULT_STEP_POINTS = 5
DEFAULT_COMPLETION_BONUS = 10
SCAFFOLD_POINTS = 2


@dataclass(frozen=True)
class CategorySchedule:
    category: str
    display_name: str
    habit: int
    action: int
    milestone: int
    completion_bonus: int
    scaffolding: int = SCAFFOLD_POINTS

    def points_for(self, step_type: str) -> Optional[int]:
        return {
            "habit": self.habit,
            "action": self.action,
            "milestone": self.milestone,
            "scaffolding": self.scaffolding,
        }.get(step_type)


_SCHEDULES: dict[str, CategorySchedule] = {
    s.category: s
    for s in (
        CategorySchedule("independent_living", "Independent Living", 5, 10, 20, 25),
        CategorySchedule("education", "Education", 5, 10, 20, 25),
        CategorySchedule("postsecondary", "Postsecondary", 5, 15, 25, 40),
        CategorySchedule("recreation_fun", "Recreation / Fun", 5, 10, 20, 25),
        CategorySchedule("social_skills", "Social Skills", 5, 15, 25, 40),
        CategorySchedule("employment", "Employment", 5, 15, 30, 50),
        CategorySchedule("self_advocacy", "Self-Advocacy", 5, 15, 30, 50),
        CategorySchedule("health", "Health", 5, 10, 20, 25),
        CategorySchedule(
            DEFAULT_CATEGORY, "General",
            DEFAULT_STEP_POINTS, DEFAULT_STEP_POINTS, DEFAULT_STEP_POINTS,
            DEFAULT_COMPLETION_BONUS,
        ),
    )
}

# Goal domain slug -> ledger category
_DOMAIN_TO_CATEGORY = {
    "independent-living": "independent_living",
    "education": "education",
    "postsecondary": "postsecondary",
    "recreation": "recreation_fun",
    "social": "social_skills",
    "employment": "employment",
    "self-advocacy": "self_advocacy",
    "health": "health",
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScheduleLookup:
    schedule: CategorySchedule
    used_default: bool


@dataclass(frozen=True)
class PointsLookup:
    points: int
    category: str
    used_default: bool


@dataclass(frozen=True)
class TPPBreakdown:
    category: str
    cadence_points: int
    milestone_points: int
    scaffold_points: int
    completion_bonus: int
    used_default: bool

    @property
    def total(self) -> int:
        return (
            self.cadence_points
            + self.milestone_points
            + self.scaffold_points
            + self.completion_bonus
        )


@dataclass
class CategoryPoints:
    category: str
    display_name: str
    points: int


@dataclass
class PointsSummary:
    total_points: int
    categories: list[CategoryPoints] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Schedule lookups (pure)
# ---------------------------------------------------------------------------

def resolve_category(raw: Optional[str]) -> ScheduleLookup:
    """Accepts a category key or a goal domain slug."""
    key = (raw or "").strip().lower()
    if key in _SCHEDULES:
        return ScheduleLookup(_SCHEDULES[key], used_default=False)
    mapped = _DOMAIN_TO_CATEGORY.get(key)
    if mapped is not None:
        return ScheduleLookup(_SCHEDULES[mapped], used_default=False)
    return ScheduleLookup(_SCHEDULES[DEFAULT_CATEGORY], used_default=True)


def normalize_category(raw: Optional[str]) -> str:
    return resolve_category(raw).schedule.category


def category_display_name(category: str) -> str:
    return resolve_category(category).schedule.display_name


def lookup_step_points(category: Optional[str], step_type: Optional[str]) -> PointsLookup:
    lookup = resolve_category(category)
    if lookup.used_default:
        return PointsLookup(DEFAULT_STEP_POINTS, lookup.schedule.category, used_default=True)

    schedule = lookup.schedule
    points = schedule.points_for(step_type or "")
    if points is None:
        return PointsLookup(schedule.habit, schedule.category, used_default=True)
    return PointsLookup(points, schedule.category, used_default=False)


def calculate_step_points(category: Optional[str], step_type: Optional[str]) -> int:
    """Point value of one completed step of `step_type` in `category`."""
    return lookup_step_points(category, step_type).points


def get_goal_completion_bonus(category: Optional[str]) -> int:
    lookup = resolve_category(category)
    if lookup.used_default:
        return DEFAULT_COMPLETION_BONUS
    return lookup.schedule.completion_bonus


def _require_non_negative(**values: int) -> None:
    for name, value in values.items():
        if value is None:
            continue
        if value < 0:
            raise PointsInputError(field=name, value=value)


def tpp_breakdown(
    category: Optional[str],
    frequency_per_week: int,
    duration_weeks: int,
    planned_milestones_count: int = 0,
    planned_scaffold_count: int = 0,
    step_type: str = "habit",
) -> TPPBreakdown:
    _require_non_negative(
        frequency_per_week=frequency_per_week,
        duration_weeks=duration_weeks,
        planned_milestones_count=planned_milestones_count,
        planned_scaffold_count=planned_scaffold_count,
    )
    lookup = resolve_category(category)
    schedule = lookup.schedule
    cadence_value = schedule.action if step_type == "action" else schedule.habit

    return TPPBreakdown(
        category=schedule.category,
        cadence_points=cadence_value * (frequency_per_week or 0) * (duration_weeks or 0),
        milestone_points=schedule.milestone * (planned_milestones_count or 0),
        scaffold_points=SCAFFOLD_POINTS * (planned_scaffold_count or 0),
        completion_bonus=get_goal_completion_bonus(category),
        used_default=lookup.used_default,
    )


def calculate_total_possible_points(
    category: Optional[str],
    frequency_per_week: int,
    duration_weeks: int,
    planned_milestones_count: int = 0,
    planned_scaffold_count: int = 0,
    step_type: str = "habit",
) -> int:
    """The goal's point ceiling. Raises PointsInputError on negative inputs."""
    return tpp_breakdown(
        category,
        frequency_per_week,
        duration_weeks,
        planned_milestones_count,
        planned_scaffold_count,
        step_type,
    ).total


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

def award_points(
    db: Session,
    user_id: str,
    category: Optional[str],
    points: int,
    entry_type: str,
    goal_id: Optional[int] = None,
    step_id: Optional[int] = None,
) -> PointsLedgerEntry:
    """Append an award. Flushes only; the caller commits."""
    _require_non_negative(points=points)
    entry = PointsLedgerEntry(
        user_id=user_id,
        category=normalize_category(category),
        points=points,
        entry_type=entry_type,
        goal_id=goal_id,
        step_id=step_id,
    )
    db.add(entry)
    db.flush()
    logger.info(
        "Awarded %s points to user=%s category=%s (%s, goal=%s step=%s)",
        points, user_id, entry.category, entry_type, goal_id, step_id,
    )
    return entry


def get_balance(db: Session, user_id: str, category: Optional[str] = None) -> int:
    """Spendable balance; across all categories when `category` is None."""
    q = db.query(func.coalesce(func.sum(PointsLedgerEntry.points), 0)).filter(
        PointsLedgerEntry.user_id == user_id
    )
    if category is not None:
        q = q.filter(PointsLedgerEntry.category == normalize_category(category))
    return int(q.scalar() or 0)


def get_points_summary(db: Session, user_id: str) -> PointsSummary:
    """Per-category balances (zero balances omitted) plus the overall total."""
    rows = (
        db.query(PointsLedgerEntry.category, func.sum(PointsLedgerEntry.points))
        .filter(PointsLedgerEntry.user_id == user_id)
        .group_by(PointsLedgerEntry.category)
        .order_by(PointsLedgerEntry.category)
        .all()
    )
    categories = [
        CategoryPoints(
            category=category,
            display_name=category_display_name(category),
            points=int(total or 0),
        )
        for category, total in rows
    ]
    return PointsSummary(
        total_points=sum(c.points for c in categories),
        categories=[c for c in categories if c.points != 0],
    )


def list_ledger(
    db: Session,
    user_id: str,
    category: Optional[str] = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[PointsLedgerEntry]]:
    """Return (total, page) of ledger entries ordered newest first."""
    q = db.query(PointsLedgerEntry).filter(PointsLedgerEntry.user_id == user_id)
    if category:
        q = q.filter(PointsLedgerEntry.category == normalize_category(category))
    total = q.count()
    items = (
        q.order_by(PointsLedgerEntry.created_at.desc(), PointsLedgerEntry.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, items
