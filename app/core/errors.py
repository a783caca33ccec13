"""
Custom exception hierarchy for the Mastery Engine API.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages. Check-in validation
messages are meant to be shown to users verbatim.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class MasteryException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# --- validation (422) ---

class CheckInValidationError(MasteryException):
    http_status = 422
    code = "CHECKIN_VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            details={"field": field} if field else {},
        )


class PointsInputError(MasteryException):
    http_status = 422
    code = "INVALID_POINTS_INPUT"

    def __init__(self, field: str, value: Any):
        super().__init__(
            message=f"{field} must not be negative (got {value}).",
            details={"field": field, "value": value},
        )


class StepDueDateError(MasteryException):
    http_status = 422
    code = "STEP_DUE_DATE_AFTER_GOAL"

    def __init__(self, step_due: Any, goal_due: Any):
        super().__init__(
            message=f"Step due date {step_due} is after the goal due date {goal_due}.",
            details={"step_due_date": str(step_due), "goal_due_date": str(goal_due)},
        )


class EnhancedCheckInNotSupportedError(MasteryException):
    http_status = 422
    code = "CHECKIN_NOT_SUPPORTED"

    def __init__(self, goal_id: int, goal_type: Optional[str]):
        super().__init__(
            message="Check-ins are only recorded for progressive mastery goals.",
            details={"goal_id": goal_id, "goal_type": goal_type},
        )


# --- not found (404) ---

class GoalNotFoundError(MasteryException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "GOAL_NOT_FOUND"

    def __init__(self, goal_id: int):
        super().__init__(
            message=f"Goal {goal_id} not found.",
            details={"goal_id": goal_id},
        )


class StepNotFoundError(MasteryException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "STEP_NOT_FOUND"

    def __init__(self, step_id: int, goal_id: Optional[int] = None):
        details: dict[str, Any] = {"step_id": step_id}
        message = f"Step {step_id} not found."
        if goal_id is not None:
            details["goal_id"] = goal_id
            message = f"Step {step_id} not found in goal {goal_id}."
        super().__init__(message=message, details=details)


class CheckInNotFoundError(MasteryException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "CHECKIN_NOT_FOUND"

    def __init__(self, check_in_id: Optional[int] = None, step_id: Optional[int] = None):
        if check_in_id is not None:
            message = f"Check-in {check_in_id} not found."
            details = {"check_in_id": check_in_id}
        else:
            message = f"No check-ins recorded for step {step_id}."
            details = {"step_id": step_id}
        super().__init__(message=message, details=details)


# --- conflicts (409) ---

class StepAlreadyFinalError(MasteryException):
    http_status = status.HTTP_409_CONFLICT
    code = "STEP_ALREADY_FINAL"

    def __init__(self, step_id: int, step_status: str):
        super().__init__(
            message=f"Step {step_id} is already {step_status}.",
            details={"step_id": step_id, "status": step_status},
        )


class DuplicateCheckInError(MasteryException):
    http_status = status.HTTP_409_CONFLICT
    code = "DUPLICATE_CHECKIN"

    def __init__(self, step_id: int, existing_id: int):
        super().__init__(
            message=(
                f"Step {step_id} already has a check-in. "
                "Update it, or pass allow_duplicate to record another."
            ),
            details={"step_id": step_id, "existing_check_in_id": existing_id},
        )


class CheckInEditWindowClosedError(MasteryException):
    http_status = status.HTTP_409_CONFLICT
    code = "CHECKIN_EDIT_WINDOW_CLOSED"

    def __init__(self, check_in_id: int, window_hours: int):
        super().__init__(
            message=f"Check-in {check_in_id} can no longer be changed (edit window is {window_hours}h).",
            details={"check_in_id": check_in_id, "window_hours": window_hours},
        )


class GoalArchivedError(MasteryException):
    http_status = status.HTTP_409_CONFLICT
    code = "GOAL_ARCHIVED"

    def __init__(self, goal_id: int):
        super().__init__(
            message=f"Goal {goal_id} is archived.",
            details={"goal_id": goal_id},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def mastery_exception_handler(request: Request, exc: MasteryException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=422,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
