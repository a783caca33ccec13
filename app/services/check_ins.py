"""
Check-in collector: validation, CRUD and progression analytics.

Validation is first-violation-wins; each rule has its own message, shown
to users verbatim (see CheckInValidationError). Creates run
validate -> look up goal / step -> persist (commit) -> schedule phase
recompute. The phase update is handed to a caller-supplied scheduler and
never runs inside this request's transaction.

Trend
-----
Chronological values, at least 6 of them. The earlier half takes the
extra element when the count is odd. Compare the halves' means (each
rounded to one decimal): >= +0.5 improving, <= -0.5 declining, otherwise
stable. Fewer than 6 values -> insufficient_data.

Public API
----------
validate_check_in(fields, is_update)           -> None  (raises)
create_check_in(db, data, user_id, cache, schedule_phase_update, allow_duplicate)
get_check_in / get_by_goal / get_by_step / get_latest_for_step / get_recent_activity
update_check_in(db, check_in_id, changes, ...) -> CheckIn
delete_check_in(db, check_in_id, ...)          -> None
get_progression_analytics(db, goal_id)         -> ProgressionAnalytics
get_step_progression_data(db, step_id)         -> StepProgressionData
calculate_trend(values)                        -> str
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    CheckInEditWindowClosedError,
    CheckInNotFoundError,
    CheckInValidationError,
    DuplicateCheckInError,
    EnhancedCheckInNotSupportedError,
)
from app.models.check_in import CheckIn
from app.models.goal import GoalType
from app.services.common import as_utc, average, round_half_up, utcnow
from app.services.goal_type_cache import GoalTypeCache
from app.services.goals import get_goal, get_step

logger = logging.getLogger(__name__)

PhaseScheduler = Callable[[int], None]

DEFAULT_LIMIT = 50
ANALYTICS_WINDOW = 100
RECENT_IN_ANALYTICS = 5
MIN_TREND_VALUES = 6
TREND_THRESHOLD = Decimal("0.5")

MAX_NOTES_LENGTH = 500
MAX_TIME_SPENT_MINUTES = 480


class Trend:
    IMPROVING         = "improving"
    STABLE            = "stable"
    DECLINING         = "declining"
    INSUFFICIENT_DATA = "insufficient_data"


# Input field name -> CheckIn column
_COLUMNS = {
    "quality_rating": "quality_rating",
    "independence_level": "independence_level",
    "time_spent_minutes": "time_spent_minutes",
    "confidence_before": "confidence_before",
    "confidence_after": "confidence_after",
    "notes": "notes",
    "helper_present": "helper_present",
    "helper_id": "helper_id",
}


# ---------------------------------------------------------------------------
# Input / result types
# ---------------------------------------------------------------------------

@dataclass
class CheckInInput:
    goal_id: Optional[int] = None
    step_id: Optional[int] = None
    quality_rating: Optional[int] = None
    independence_level: Optional[int] = None
    time_spent_minutes: Optional[int] = None
    confidence_before: Optional[int] = None
    confidence_after: Optional[int] = None
    notes: Optional[str] = None
    helper_present: bool = False
    helper_id: Optional[str] = None


@dataclass
class ProgressionAnalytics:
    total_check_ins: int
    avg_quality_rating: float
    avg_independence_level: float
    quality_trend: str
    independence_trend: str
    avg_time_spent_minutes: float
    sessions_with_helper: int
    sessions_independent: int
    confidence_gain: float
    recent_check_ins: list[CheckIn] = field(default_factory=list)


@dataclass
class StepProgressionData:
    step_id: int
    step_title: str
    attempt_count: int
    improvement_rate: float
    avg_quality: float
    avg_independence: float
    check_ins: list[CheckIn] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_rating(fields: dict[str, Any], name: str, message: str) -> None:
    value = fields.get(name)
    if value is None:
        return
    if not _is_int(value) or not 1 <= value <= 5:
        raise CheckInValidationError(message, field=name)


def validate_check_in(fields: dict[str, Any], is_update: bool = False) -> None:
    """
    Validate check-in fields. On update only the supplied keys are checked.
    Raises CheckInValidationError for the first rule violated.
    """
    if not is_update:
        if not fields.get("goal_id") or not fields.get("step_id"):
            raise CheckInValidationError(
                "Goal ID and Step ID are required",
                field="goal_id" if not fields.get("goal_id") else "step_id",
            )
        if fields.get("quality_rating") is None or fields.get("independence_level") is None:
            raise CheckInValidationError(
                "Quality rating and independence level are required",
                field="quality_rating" if fields.get("quality_rating") is None else "independence_level",
            )
    else:
        for name in ("quality_rating", "independence_level"):
            if name in fields and fields[name] is None:
                raise CheckInValidationError(
                    "Quality rating and independence level are required", field=name
                )

    _check_rating(fields, "quality_rating", "Quality rating must be between 1 and 5")
    _check_rating(fields, "independence_level", "Independence level must be between 1 and 5")

    minutes = fields.get("time_spent_minutes")
    if minutes is not None:
        if not isinstance(minutes, (int, float)) or isinstance(minutes, bool):
            raise CheckInValidationError(
                "Time spent must be a whole number of minutes", field="time_spent_minutes"
            )
        if minutes < 1:
            raise CheckInValidationError("Time spent must be positive", field="time_spent_minutes")
        if not _is_int(minutes):
            raise CheckInValidationError(
                "Time spent must be a whole number of minutes", field="time_spent_minutes"
            )
        if minutes > MAX_TIME_SPENT_MINUTES:
            raise CheckInValidationError(
                "Time spent cannot exceed 480 minutes", field="time_spent_minutes"
            )

    _check_rating(
        fields, "confidence_before", "confidenceBefore must be an integer between 1 and 5"
    )
    _check_rating(
        fields, "confidence_after", "confidenceAfter must be an integer between 1 and 5"
    )

    notes = fields.get("notes")
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise CheckInValidationError("Notes cannot exceed 500 characters", field="notes")

    # On update a missing helper_id is checked against the stored row instead
    helper_id_checked = not is_update or "helper_id" in fields
    if fields.get("helper_present") and not fields.get("helper_id") and helper_id_checked:
        raise CheckInValidationError(
            "Helper ID required when helper is present", field="helper_id"
        )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

def create_check_in(
    db: Session,
    data: CheckInInput,
    user_id: str,
    cache: GoalTypeCache,
    schedule_phase_update: PhaseScheduler,
    allow_duplicate: bool = False,
) -> CheckIn:
    fields = asdict(data)
    validate_check_in(fields)

    goal = get_goal(db, data.goal_id)
    step = get_step(db, data.step_id, goal_id=goal.id)

    goal_type = cache.get(db, goal.id)
    if goal_type != GoalType.progressive_mastery.value:
        raise EnhancedCheckInNotSupportedError(goal.id, goal_type)

    if not allow_duplicate:
        existing = get_latest_for_step(db, step.id)
        if existing is not None:
            raise DuplicateCheckInError(step.id, existing.id)

    check_in = CheckIn(
        user_id=user_id,
        goal_id=goal.id,
        step_id=step.id,
        quality_rating=data.quality_rating,
        independence_level=data.independence_level,
        time_spent_minutes=data.time_spent_minutes,
        confidence_before=data.confidence_before,
        confidence_after=data.confidence_after,
        notes=data.notes,
        helper_present=bool(data.helper_present),
        helper_id=data.helper_id,
    )
    db.add(check_in)
    db.commit()
    db.refresh(check_in)
    logger.info("Created check-in=%s goal=%s step=%s", check_in.id, goal.id, step.id)

    schedule_phase_update(goal.id)
    return check_in


# ---------------------------------------------------------------------------
# Reads (newest first)
# ---------------------------------------------------------------------------

def _newest_first(q):
    return q.order_by(CheckIn.created_at.desc(), CheckIn.id.desc())


def get_check_in(db: Session, check_in_id: int) -> CheckIn:
    check_in = db.query(CheckIn).filter(CheckIn.id == check_in_id).first()
    if check_in is None:
        raise CheckInNotFoundError(check_in_id=check_in_id)
    return check_in


def get_by_goal(db: Session, goal_id: int, limit: int = DEFAULT_LIMIT) -> list[CheckIn]:
    q = db.query(CheckIn).filter(CheckIn.goal_id == goal_id)
    return _newest_first(q).limit(limit).all()


def get_by_step(db: Session, step_id: int, limit: int = DEFAULT_LIMIT) -> list[CheckIn]:
    q = db.query(CheckIn).filter(CheckIn.step_id == step_id)
    return _newest_first(q).limit(limit).all()


def get_latest_for_step(db: Session, step_id: int) -> Optional[CheckIn]:
    q = db.query(CheckIn).filter(CheckIn.step_id == step_id)
    return _newest_first(q).first()


def get_recent_activity(
    db: Session,
    user_id: str,
    days: int = 7,
    limit: int = DEFAULT_LIMIT,
    now: Optional[datetime] = None,
) -> list[CheckIn]:
    cutoff = (now or utcnow()) - timedelta(days=days)
    q = db.query(CheckIn).filter(CheckIn.user_id == user_id, CheckIn.created_at >= cutoff)
    return _newest_first(q).limit(limit).all()


# ---------------------------------------------------------------------------
# Update / delete (inside the edit window)
# ---------------------------------------------------------------------------

def _ensure_editable(check_in: CheckIn, now: datetime, window_hours: int) -> None:
    if now - as_utc(check_in.created_at) > timedelta(hours=window_hours):
        raise CheckInEditWindowClosedError(check_in.id, window_hours)


def update_check_in(
    db: Session,
    check_in_id: int,
    changes: dict[str, Any],
    now: Optional[datetime] = None,
    window_hours: Optional[int] = None,
    schedule_phase_update: Optional[PhaseScheduler] = None,
) -> CheckIn:
    """Partial update: only supplied fields are validated and written."""
    unknown = set(changes) - set(_COLUMNS)
    if unknown:
        raise CheckInValidationError(
            f"Unsupported check-in fields: {', '.join(sorted(unknown))}"
        )
    validate_check_in(changes, is_update=True)

    check_in = get_check_in(db, check_in_id)
    # Half of the helper pair may be patched alone; check it against the stored half.
    if changes.get("helper_present") and "helper_id" not in changes and not check_in.helper_id:
        raise CheckInValidationError(
            "Helper ID required when helper is present", field="helper_id"
        )
    if (
        "helper_id" in changes
        and "helper_present" not in changes
        and not changes["helper_id"]
        and check_in.helper_present
    ):
        raise CheckInValidationError(
            "Helper ID required when helper is present", field="helper_id"
        )
    _ensure_editable(
        check_in,
        now or utcnow(),
        window_hours if window_hours is not None else settings.CHECKIN_EDIT_WINDOW_HOURS,
    )

    for name, value in changes.items():
        if name == "helper_present":
            value = bool(value)
        setattr(check_in, _COLUMNS[name], value)
    db.commit()
    db.refresh(check_in)

    if schedule_phase_update is not None and "independence_level" in changes:
        schedule_phase_update(check_in.goal_id)
    return check_in


def delete_check_in(
    db: Session,
    check_in_id: int,
    now: Optional[datetime] = None,
    window_hours: Optional[int] = None,
    schedule_phase_update: Optional[PhaseScheduler] = None,
) -> None:
    check_in = get_check_in(db, check_in_id)
    _ensure_editable(
        check_in,
        now or utcnow(),
        window_hours if window_hours is not None else settings.CHECKIN_EDIT_WINDOW_HOURS,
    )
    goal_id = check_in.goal_id
    db.delete(check_in)
    db.commit()
    logger.info("Deleted check-in=%s goal=%s", check_in_id, goal_id)

    if schedule_phase_update is not None:
        schedule_phase_update(goal_id)


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

def calculate_trend(values: list[int]) -> str:
    """`values` must be in chronological order."""
    if len(values) < MIN_TREND_VALUES:
        return Trend.INSUFFICIENT_DATA

    mid = (len(values) + 1) // 2
    first_avg = Decimal(str(average(values[:mid])))
    second_avg = Decimal(str(average(values[mid:])))
    difference = second_avg - first_avg

    if difference >= TREND_THRESHOLD:
        return Trend.IMPROVING
    if difference <= -TREND_THRESHOLD:
        return Trend.DECLINING
    return Trend.STABLE


def get_progression_analytics(db: Session, goal_id: int) -> ProgressionAnalytics:
    get_goal(db, goal_id)
    check_ins = get_by_goal(db, goal_id, limit=ANALYTICS_WINDOW)

    if not check_ins:
        return ProgressionAnalytics(
            total_check_ins=0,
            avg_quality_rating=0.0,
            avg_independence_level=0.0,
            quality_trend=Trend.INSUFFICIENT_DATA,
            independence_trend=Trend.INSUFFICIENT_DATA,
            avg_time_spent_minutes=0.0,
            sessions_with_helper=0,
            sessions_independent=0,
            confidence_gain=0.0,
        )

    chronological = list(reversed(check_ins))
    quality = [ci.quality_rating for ci in chronological]
    independence = [ci.independence_level for ci in chronological]
    time_spent = [ci.time_spent_minutes for ci in check_ins if ci.time_spent_minutes]
    confidence_changes = [
        ci.confidence_after - ci.confidence_before
        for ci in check_ins
        if ci.confidence_before is not None and ci.confidence_after is not None
    ]
    with_helper = sum(1 for ci in check_ins if ci.helper_present)

    return ProgressionAnalytics(
        total_check_ins=len(check_ins),
        avg_quality_rating=average(quality),
        avg_independence_level=average(independence),
        quality_trend=calculate_trend(quality),
        independence_trend=calculate_trend(independence),
        avg_time_spent_minutes=average(time_spent),
        sessions_with_helper=with_helper,
        sessions_independent=len(check_ins) - with_helper,
        confidence_gain=average(confidence_changes),
        recent_check_ins=check_ins[:RECENT_IN_ANALYTICS],
    )


def get_step_progression_data(db: Session, step_id: int) -> StepProgressionData:
    step = get_step(db, step_id)
    chronological = list(reversed(get_by_step(db, step_id, limit=ANALYTICS_WINDOW)))

    levels = [ci.independence_level for ci in chronological]
    improvement = 0.0
    if len(levels) > 1 and levels[0]:
        rate = Decimal(levels[-1] - levels[0]) / Decimal(levels[0]) * 100
        improvement = float(round_half_up(rate, 1))

    return StepProgressionData(
        step_id=step.id,
        step_title=step.title,
        attempt_count=len(chronological),
        improvement_rate=improvement,
        avg_quality=average([ci.quality_rating for ci in chronological]),
        avg_independence=average(levels),
        check_ins=chronological,
    )
