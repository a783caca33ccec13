"""
Learning phase classifier.

Runs after check-in writes: averages the independence level of the goal's
5 most recent check-ins and stores the phase in metadata["current_phase"].

    avg >= 4.5 -> independent
    avg >= 3.5 -> proficient
    avg >= 2.0 -> developing
    otherwise  -> learning

Best-effort by contract: recompute_phase_in_background() is scheduled
fire-and-forget after the check-in commits, opens its own session, and
logs failures instead of raising. update_current_phase() is the plain,
raising version for callers that want to handle errors themselves.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.models.check_in import CheckIn
from app.services.goals import get_goal, update_metadata

logger = logging.getLogger(__name__)

RECENT_WINDOW = 5


class Phase:
    LEARNING    = "learning"
    DEVELOPING  = "developing"
    PROFICIENT  = "proficient"
    INDEPENDENT = "independent"


def classify_phase(avg_independence: float) -> str:
    if avg_independence >= 4.5:
        return Phase.INDEPENDENT
    if avg_independence >= 3.5:
        return Phase.PROFICIENT
    if avg_independence >= 2.0:
        return Phase.DEVELOPING
    return Phase.LEARNING


def calculate_current_phase(db: Session, goal_id: int) -> Optional[str]:
    """Phase from the latest check-ins, or None when there are none yet."""
    levels = [
        row.independence_level
        for row in (
            db.query(CheckIn.independence_level)
            .filter(CheckIn.goal_id == goal_id)
            .order_by(CheckIn.created_at.desc(), CheckIn.id.desc())
            .limit(RECENT_WINDOW)
            .all()
        )
    ]
    if not levels:
        return None
    return classify_phase(sum(levels) / len(levels))


def update_current_phase(db: Session, goal_id: int) -> Optional[str]:
    """Recompute and store the phase. Idempotent. Commits."""
    goal = get_goal(db, goal_id)
    phase = calculate_current_phase(db, goal_id)
    if phase is None:
        return None
    update_metadata(goal, {"current_phase": phase})
    db.commit()
    logger.debug("goal=%s phase=%s", goal_id, phase)
    return phase


def recompute_phase_in_background(session_factory: Callable[[], Session], goal_id: int) -> None:
    """Fire-and-forget entry point. Never raises."""
    db = session_factory()
    try:
        update_current_phase(db, goal_id)
    except Exception:
        db.rollback()
        logger.warning("Phase recompute failed for goal=%s", goal_id, exc_info=True)
    finally:
        db.close()
