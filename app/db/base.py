"""
Database plumbing: declarative Base, engine, session factory, FastAPI dependencies.

`get_db` yields one session per request. Work that runs after the response
(background tasks) must not reuse it; it asks `get_session_factory` for a
factory and opens its own session instead.
"""
from typing import Callable, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from app.core.config import settings


class Base(DeclarativeBase):
    pass


engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory() -> Callable[[], Session]:
    return SessionLocal
