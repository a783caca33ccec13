from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.db.base import get_db
from app.core.config import settings
from app.core.logging import configure_logging
from app.routers import goals as goals_router
from app.routers import habits as habits_router
from app.routers import check_ins as check_ins_router
from app.routers import points as points_router
from app.services.goal_type_cache import GoalTypeCache
from app.core.errors import (
    MasteryException,
    mastery_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Mastery Engine API",
    description=(
        "**Progression and incentive engine for skill and habit goals**\n\n"
        "Skill assessment and Smart Start ramps, habit streaks with a grace day, "
        "structured check-ins with trend and phase analytics, and a per-category "
        "points economy.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Process-wide goal id -> goal type cache ---
app.state.goal_type_cache = GoalTypeCache(maxsize=settings.GOAL_TYPE_CACHE_SIZE)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(MasteryException, mastery_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(goals_router.router)
app.include_router(habits_router.router)
app.include_router(check_ins_router.router)
app.include_router(points_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    Used by the container platform for liveness probes.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
