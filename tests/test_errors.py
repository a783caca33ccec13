"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
import importlib.util
import warnings

import pytest

from app.core.errors import (
    CheckInEditWindowClosedError,
    CheckInNotFoundError,
    CheckInValidationError,
    DuplicateCheckInError,
    EnhancedCheckInNotSupportedError,
    GoalArchivedError,
    GoalNotFoundError,
    PointsInputError,
    StepAlreadyFinalError,
    StepDueDateError,
    StepNotFoundError,
)
from datetime import date


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_check_in_validation_error(self):
        err = CheckInValidationError("Notes cannot exceed 500 characters", field="notes")
        assert err.http_status == 422
        assert err.code == "CHECKIN_VALIDATION_ERROR"
        assert err.to_dict() == {
            "code": "CHECKIN_VALIDATION_ERROR",
            "message": "Notes cannot exceed 500 characters",
            "details": {"field": "notes"},
        }

    def test_validation_error_without_field_omits_details(self):
        d = CheckInValidationError("bad").to_dict()
        assert "details" not in d

    def test_points_input_error(self):
        err = PointsInputError(field="duration_weeks", value=-2)
        assert err.http_status == 422
        assert err.code == "INVALID_POINTS_INPUT"
        assert "duration_weeks" in err.message
        assert err.details == {"field": "duration_weeks", "value": -2}

    def test_step_due_date_error(self):
        err = StepDueDateError(date(2026, 6, 2), date(2026, 6, 1))
        assert err.code == "STEP_DUE_DATE_AFTER_GOAL"
        assert err.details["step_due_date"] == "2026-06-02"

    def test_not_supported(self):
        err = EnhancedCheckInNotSupportedError(3, "habit")
        assert err.http_status == 422
        assert err.details == {"goal_id": 3, "goal_type": "habit"}

    @pytest.mark.parametrize("err,code", [
        (GoalNotFoundError(1), "GOAL_NOT_FOUND"),
        (StepNotFoundError(2), "STEP_NOT_FOUND"),
        (CheckInNotFoundError(check_in_id=3), "CHECKIN_NOT_FOUND"),
    ])
    def test_not_found(self, err, code):
        assert err.http_status == 404
        assert err.code == code

    def test_step_not_found_in_goal(self):
        err = StepNotFoundError(2, goal_id=7)
        assert "goal 7" in err.message
        assert err.details == {"step_id": 2, "goal_id": 7}

    def test_check_in_not_found_for_step(self):
        err = CheckInNotFoundError(step_id=5)
        assert err.details == {"step_id": 5}

    @pytest.mark.parametrize("err,code", [
        (StepAlreadyFinalError(1, "done"), "STEP_ALREADY_FINAL"),
        (DuplicateCheckInError(1, 9), "DUPLICATE_CHECKIN"),
        (CheckInEditWindowClosedError(1, 24), "CHECKIN_EDIT_WINDOW_CLOSED"),
        (GoalArchivedError(1), "GOAL_ARCHIVED"),
    ])
    def test_conflicts(self, err, code):
        assert err.http_status == 409
        assert err.code == code

    @pytest.mark.parametrize("err", [
        CheckInValidationError("bad"),
        PointsInputError("frequency_per_week", -1),
        StepDueDateError(date(2026, 6, 2), date(2026, 6, 1)),
        EnhancedCheckInNotSupportedError(3, "habit"),
    ])
    def test_unprocessable_is_422(self, err):
        assert err.http_status == 422

    def test_module_loads_without_deprecation_warnings(self):
        path = importlib.util.find_spec("app.core.errors").origin
        spec = importlib.util.spec_from_file_location("errors_standalone", path)
        module = importlib.util.module_from_spec(spec)
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            spec.loader.exec_module(module)
        assert module.StepDueDateError.http_status == 422


# ---------------------------------------------------------------------------
# HTTP envelopes
# ---------------------------------------------------------------------------

class TestErrorResponses:
    def test_goal_not_found_envelope(self, client):
        r = client.get("/goals/999999")
        assert r.status_code == 404
        body = r.json()
        assert body["code"] == "GOAL_NOT_FOUND"
        assert body["details"]["goal_id"] == 999999

    def test_request_validation_envelope(self, client, headers):
        r = client.post("/goals", json={"title": ""}, headers=headers)
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"]["errors"][0]["field"] == "title"

    def test_missing_identity_header(self, client):
        r = client.post("/goals", json={"title": "No owner"})
        assert r.status_code == 422
        assert r.json()["code"] == "VALIDATION_ERROR"

    def test_points_input_envelope(self, client):
        r = client.get("/points/tpp", params={"category": "health", "frequency_per_week": -1})
        assert r.status_code == 422
        assert r.json()["code"] == "INVALID_POINTS_INPUT"

    def test_check_in_message_is_verbatim(self, client, headers):
        r = client.post("/check-ins", json={"goal_id": 1}, headers=headers)
        assert r.status_code == 422
        body = r.json()
        assert body["code"] == "CHECKIN_VALIDATION_ERROR"
        assert body["message"] == "Goal ID and Step ID are required"
