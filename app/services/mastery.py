"""
Skill assessment, Smart Start planning and the rest of the progressive
mastery goal metadata (teaching helper, progress summary).

Skill level
-----------
  level = round_half_up((q1 + q2 + q3) / 3)      no clamping; inputs are 1–5

Smart Start
-----------
  level | share of target | floor
  ------+-----------------+-------------
    1   | 30 %            | at least 1
    2   | 40 %            | at least 2
    3   | 60 %            | none
    4   | 80 %            | at least 4
    5   | 100 %           | = target
  other | 50 %            | at least 1   (used_default=True)

Shares are rounded half-up, floors applied, then the result is capped at
the target so a small target never yields a suggestion above itself.

Persistence
-----------
save_skill_assessment overwrites metadata["skill_assessment"].
save_smart_start_plan writes metadata["smart_start"] AND
goal.frequency_per_week in one commit (TPP recomputed with it).
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.models.goal import Goal, GoalStatus, GoalType
from app.models.step import Step, StepStatus
from app.services import check_ins as check_in_service
from app.services.common import ev, round_half_up, utcnow
from app.services.goal_type_cache import GoalTypeCache
from app.services.goals import (
    apply_plan_changes,
    ensure_active,
    get_goal,
    read_metadata,
    update_metadata,
)

logger = logging.getLogger(__name__)


_LEVEL_LABELS = {
    1: "Beginner",
    2: "Early Learner",
    3: "Developing",
    4: "Proficient",
    5: "Independent",
}

HELPER_RELATIONSHIPS = ("parent", "teacher", "coach")


@dataclass(frozen=True)
class _Ramp:
    share: Decimal
    floor: Optional[int]
    rationale: str
    phase_guidance: str


_RAMPS: dict[int, _Ramp] = {
    1: _Ramp(
        Decimal("0.3"), 1,
        "Since this is brand new to you, we recommend starting with fewer days "
        "to build confidence and avoid burnout.",
        "We'll increase gradually over 3 phases as you build the skill: "
        "Learning → Developing → Proficient.",
    ),
    2: _Ramp(
        Decimal("0.4"), 2,
        "You've tried this before, so we'll start a bit higher than a complete "
        "beginner while still giving you room to grow.",
        "We'll ramp up over 2-3 weeks as you develop consistency and confidence.",
    ),
    3: _Ramp(
        Decimal("0.6"), None,
        "You have some experience with this, so we can start at a moderate pace "
        "and increase as you refine your skills.",
        "We'll increase to your target over about 2 weeks as you continue developing.",
    ),
    4: _Ramp(
        Decimal("0.8"), 4,
        "You're already proficient, so we're starting close to your target frequency.",
        "We'll reach your full target in 1-2 weeks as you maintain and strengthen "
        "your skills.",
    ),
    5: _Ramp(
        Decimal("1"), None,
        "You're already independent with this skill, so we're starting at your "
        "target frequency right away.",
        "Focus on maintaining consistency and building on your strong foundation.",
    ),
}

_FALLBACK_RAMP = _Ramp(
    Decimal("0.5"), 1,
    "We'll start at a moderate pace and adjust based on your progress.",
    "We'll increase frequency as you build confidence and skills.",
)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class SkillAssessment:
    calculated_level: int
    q1_familiarity: int
    q2_confidence: int
    q3_independence: int
    level_label: str
    assessment_date: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SmartStartPlan:
    suggested_initial: int
    target_frequency: int
    rationale: str
    phase_guidance: str
    used_default: bool = False


@dataclass
class ProgressSummary:
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


@dataclass
class TeachingHelperGoal:
    goal_id: int
    title: str
    owner_id: str
    category: str
    status: str
    relationship: str
    current_phase: Optional[str] = None
    streak_count: int = 0


# ---------------------------------------------------------------------------
# Pure calculations
# ---------------------------------------------------------------------------

def calculate_skill_level(q1: int, q2: int, q3: int) -> int:
    """Mean of the three 1–5 answers, rounded half-up. Inputs are not clamped."""
    return int(round_half_up(Decimal(q1 + q2 + q3) / Decimal(3)))


def get_skill_level_label(level: int) -> str:
    """Total over all integers: anything outside 1–5 reads as "Beginner"."""
    return _LEVEL_LABELS.get(level, _LEVEL_LABELS[1])


def suggest_start_frequency(skill_level: int, target_frequency: int) -> SmartStartPlan:
    ramp = _RAMPS.get(skill_level)
    used_default = ramp is None
    if ramp is None:
        ramp = _FALLBACK_RAMP

    if skill_level == 5:
        suggested = target_frequency
    else:
        suggested = int(round_half_up(Decimal(target_frequency) * ramp.share))
        if ramp.floor is not None:
            suggested = max(ramp.floor, suggested)
    if target_frequency > 0:
        suggested = min(suggested, target_frequency)

    return SmartStartPlan(
        suggested_initial=suggested,
        target_frequency=target_frequency,
        rationale=ramp.rationale,
        phase_guidance=ramp.phase_guidance,
        used_default=used_default,
    )


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def save_skill_assessment(db: Session, goal_id: int, q1: int, q2: int, q3: int) -> SkillAssessment:
    goal = get_goal(db, goal_id)
    ensure_active(goal)

    level = calculate_skill_level(q1, q2, q3)
    assessment = SkillAssessment(
        calculated_level=level,
        q1_familiarity=q1,
        q2_confidence=q2,
        q3_independence=q3,
        level_label=get_skill_level_label(level).lower().replace(" ", "_"),
        assessment_date=utcnow().isoformat(),
    )
    update_metadata(goal, {"skill_assessment": assessment.to_dict()})
    db.commit()
    logger.info("Saved skill assessment for goal=%s level=%s", goal_id, level)
    return assessment


def save_smart_start_plan(
    db: Session,
    goal_id: int,
    plan: SmartStartPlan,
    accepted: bool,
    selected_frequency: int,
) -> Goal:
    """Persist the plan and make `selected_frequency` the goal's live frequency."""
    goal = get_goal(db, goal_id)
    ensure_active(goal)

    smart_start = {
        "suggested_initial": plan.suggested_initial,
        "user_selected_initial": selected_frequency,
        "target_frequency": plan.target_frequency,
        "suggestion_accepted": accepted,
        "rationale": plan.rationale,
        "phase_guidance": plan.phase_guidance,
        "suggested_at": utcnow().isoformat(),
    }
    apply_plan_changes(goal, {"frequency_per_week": selected_frequency})
    update_metadata(goal, {"smart_start": smart_start})
    db.commit()
    db.refresh(goal)
    logger.info(
        "Saved Smart Start plan for goal=%s selected=%s accepted=%s",
        goal_id, selected_frequency, accepted,
    )
    return goal


def save_teaching_helper(
    db: Session,
    goal_id: int,
    helper_id: str,
    helper_name: str,
    relationship: str,
) -> dict[str, Any]:
    if relationship not in HELPER_RELATIONSHIPS:
        raise ValueError(f"relationship must be one of {HELPER_RELATIONSHIPS}")
    goal = get_goal(db, goal_id)
    ensure_active(goal)
    helper = {
        "helper_id": helper_id,
        "helper_name": helper_name,
        "relationship": relationship,
    }
    update_metadata(goal, {"teaching_helper": helper})
    db.commit()
    return helper


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------

def should_show_enhanced_check_in(db: Session, goal_id: int, cache: GoalTypeCache) -> bool:
    return cache.get(db, goal_id) == GoalType.progressive_mastery.value


def get_progress_summary(db: Session, goal_id: int) -> ProgressSummary:
    goal = get_goal(db, goal_id)
    meta = read_metadata(goal)

    step_statuses = [ev(r.status) for r in db.query(Step.status).filter(Step.goal_id == goal_id)]
    analytics = check_in_service.get_progression_analytics(db, goal_id)
    latest = analytics.recent_check_ins[0].independence_level if analytics.recent_check_ins else 0

    return ProgressSummary(
        total_steps=len(step_statuses),
        completed_steps=sum(1 for s in step_statuses if s == StepStatus.done.value),
        avg_quality_rating=analytics.avg_quality_rating,
        avg_independence_level=analytics.avg_independence_level,
        latest_independence_level=latest,
        quality_trend=analytics.quality_trend,
        independence_trend=analytics.independence_trend,
        sessions_with_helper=analytics.sessions_with_helper,
        sessions_independent=analytics.sessions_independent,
        avg_time_spent_minutes=analytics.avg_time_spent_minutes,
        skill_assessment=meta.get("skill_assessment"),
        smart_start=meta.get("smart_start"),
        teaching_helper=meta.get("teaching_helper"),
        current_phase=meta.get("current_phase"),
    )


def get_teaching_helper_goals(db: Session, helper_id: str) -> list[TeachingHelperGoal]:
    """Non-archived goals whose metadata names `helper_id` as teaching helper."""
    goals = (
        db.query(Goal)
        .filter(Goal.goal_metadata.isnot(None), Goal.status != GoalStatus.archived)
        .order_by(Goal.id)
        .all()
    )
    result = []
    for goal in goals:
        meta = read_metadata(goal)
        helper = meta.get("teaching_helper") or {}
        if helper.get("helper_id") != helper_id:
            continue
        result.append(TeachingHelperGoal(
            goal_id=goal.id,
            title=goal.title,
            owner_id=goal.owner_id,
            category=goal.category,
            status=ev(goal.status),
            relationship=helper.get("relationship", ""),
            current_phase=meta.get("current_phase"),
            streak_count=goal.streak_count or 0,
        ))
    return result
