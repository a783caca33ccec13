"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Tables are created once per session and shared; tests isolate themselves
through a fresh `user_id` rather than by truncating tables.
"""
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base, get_db, get_session_factory
from app.main import app
from app.services.goal_type_cache import GoalTypeCache
from app.services.goals import GoalInput, StepInput, create_goal, create_step

SQLITE_URL = "sqlite:///./test_mastery.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def override_get_session_factory():
    return TestingSessionLocal


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = override_get_session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def user_id() -> str:
    return f"user-{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def headers(user_id) -> dict:
    return {"X-User-Id": user_id}


@pytest.fixture()
def cache() -> GoalTypeCache:
    return GoalTypeCache(maxsize=16)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture()
def make_goal(db, user_id):
    def _make(**overrides):
        data = {"title": "Make breakfast", "category": "independent_living"}
        data.update(overrides)
        owner = data.pop("owner_id", user_id)
        return create_goal(db, GoalInput(**data), owner_id=owner)
    return _make


@pytest.fixture()
def make_step(db):
    def _make(goal, **overrides):
        data = {"title": "Practice", "step_type": "action"}
        data.update(overrides)
        return create_step(db, goal.id, StepInput(**data))
    return _make


@pytest.fixture()
def session_factory():
    return TestingSessionLocal


@pytest.fixture()
def record_check_in(db, user_id, cache):
    """Create a check-in through the service; scheduled phase updates are collected."""
    from app.services.check_ins import CheckInInput, create_check_in

    scheduled: list[int] = []

    def _record(goal, step, allow_duplicate=True, **fields):
        data = {"quality_rating": 3, "independence_level": 3}
        data.update(fields)
        return create_check_in(
            db,
            CheckInInput(goal_id=goal.id, step_id=step.id, **data),
            user_id=user_id,
            cache=cache,
            schedule_phase_update=scheduled.append,
            allow_duplicate=allow_duplicate,
        )

    _record.scheduled = scheduled
    return _record
