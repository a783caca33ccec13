"""
Bounded goal id -> goal type cache.

Owned by whoever creates it (the FastAPI app keeps one on `app.state`) and
passed explicitly to the code that needs it. Least recently used entries
are evicted past `maxsize`. Anything that can change a goal's type must
call `invalidate()`.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Optional

from sqlalchemy.orm import Session

from app.models.goal import Goal
from app.services.common import ev

logger = logging.getLogger(__name__)


class GoalTypeCache:
    def __init__(self, maxsize: int = 256):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self._items: OrderedDict[int, str] = OrderedDict()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, goal_id: int) -> bool:
        return goal_id in self._items

    def get(self, db: Session, goal_id: int) -> Optional[str]:
        """Cached goal type, loading it on a miss. None when the goal is absent."""
        if goal_id in self._items:
            self._items.move_to_end(goal_id)
            return self._items[goal_id]

        row = db.query(Goal.goal_type).filter(Goal.id == goal_id).first()
        if row is None:
            return None
        goal_type = ev(row.goal_type)
        self._items[goal_id] = goal_type
        if len(self._items) > self.maxsize:
            self._items.popitem(last=False)
        return goal_type

    def invalidate(self, goal_id: int) -> None:
        if self._items.pop(goal_id, None) is not None:
            logger.debug("Invalidated cached goal type for goal=%s", goal_id)

    def clear(self) -> None:
        self._items.clear()
