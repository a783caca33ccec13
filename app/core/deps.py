"""
Request-scoped dependencies shared by the routers.
"""
from __future__ import annotations

from fastapi import Header, Request

from app.services.goal_type_cache import GoalTypeCache


def get_current_user_id(
    x_user_id: str = Header(
        ...,
        min_length=1,
        max_length=64,
        description="Caller identity, supplied by the identity layer in front of the API.",
    ),
) -> str:
    return x_user_id.strip()


def get_goal_type_cache(request: Request) -> GoalTypeCache:
    """The process-wide cache created in app.main."""
    return request.app.state.goal_type_cache
