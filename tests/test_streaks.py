"""
Tests for the habit streak tracker.

Covered:
  - streak walk: consecutive days, single grace day, second 2-day gap breaks
  - milestone tiers
  - at-risk (24h) and hard break (48h) thresholds
  - mark_habit_complete: counters, points, single transaction
  - record_skip: breaks only an at-risk streak
  - reconciliation from history
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.errors import StepAlreadyFinalError
from app.services import points as points_service
from app.services import streaks
from app.services.common import jload
from app.services.streaks import get_streak_milestone, longest_chain, walk_streak

D = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
TODAY = D.date()


def _days_ago(*offsets: int) -> list[date]:
    return [TODAY - timedelta(days=n) for n in offsets]


@pytest.fixture()
def habit(make_goal):
    return make_goal(goal_type="habit", category="independent_living", frequency_per_week=7)


@pytest.fixture()
def complete_on(db, habit, make_step):
    """Complete a fresh habit step at each given datetime; returns the last result."""
    def _complete(*moments: datetime):
        result = None
        for moment in moments:
            step = make_step(habit, step_type="habit")
            result = streaks.mark_habit_complete(db, step.id, habit.id, now=moment)
        return result
    return _complete


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

class TestWalk:
    def test_consecutive_days(self):
        assert walk_streak(_days_ago(0, 1, 2), TODAY) == (3, 3)

    def test_starts_from_yesterday(self):
        assert walk_streak(_days_ago(1, 2), TODAY) == (2, 2)

    def test_single_grace_gap(self):
        current, consecutive = walk_streak(_days_ago(0, 2, 3), TODAY)
        assert current == 3
        assert consecutive == 1

    def test_second_grace_gap_breaks(self):
        assert walk_streak(_days_ago(0, 2, 4), TODAY)[0] == 2

    def test_three_day_gap_breaks(self):
        assert walk_streak(_days_ago(0, 3, 4), TODAY)[0] == 1

    def test_stale_history(self):
        assert walk_streak(_days_ago(5, 6), TODAY) == (0, 0)

    def test_empty(self):
        assert walk_streak([], TODAY) == (0, 0)


class TestLongestChain:
    def test_picks_longest_run(self):
        assert longest_chain(_days_ago(0, 1, 6, 7, 8, 9)) == 4

    def test_grace_inside_run(self):
        assert longest_chain(_days_ago(0, 2, 3, 7)) == 3

    def test_empty(self):
        assert longest_chain([]) == 0


class TestMilestones:
    @pytest.mark.parametrize("streak,tier", [
        (0, "none"), (2, "none"), (3, "bronze"), (6, "bronze"),
        (7, "silver"), (13, "silver"), (14, "gold"), (29, "gold"),
        (30, "platinum"), (100, "platinum"),
    ])
    def test_tiers(self, streak, tier):
        assert get_streak_milestone(streak) == tier


# ---------------------------------------------------------------------------
# mark_habit_complete
# ---------------------------------------------------------------------------

class TestMarkHabitComplete:
    def test_builds_streak_day_by_day(self, db, habit, complete_on):
        result = complete_on(D - timedelta(days=2), D - timedelta(days=1), D)

        db.refresh(habit)
        assert result.new_streak == 3
        assert result.milestone == "bronze"
        assert result.points_awarded == 5
        assert habit.streak_count == 3
        assert habit.longest_streak == 3
        assert habit.last_completed_date == TODAY
        assert habit.earned_points == 15

    def test_writes_ledger(self, db, habit, complete_on, user_id):
        complete_on(D)
        assert points_service.get_balance(db, user_id, "independent_living") == 5

    def test_longest_streak_not_lowered(self, db, habit, complete_on):
        complete_on(D - timedelta(days=10), D - timedelta(days=9), D - timedelta(days=8))
        result = complete_on(D)

        db.refresh(habit)
        assert result.new_streak == 1
        assert habit.longest_streak == 3

    def test_step_records_completion_streak(self, db, habit, make_step):
        step = make_step(habit, step_type="habit")
        streaks.mark_habit_complete(db, step.id, habit.id, now=D)
        db.refresh(step)
        assert step.completion_streak == 1
        assert step.points_awarded == 5

    def test_completing_twice_is_rejected(self, db, habit, make_step):
        step = make_step(habit, step_type="habit")
        streaks.mark_habit_complete(db, step.id, habit.id, now=D)
        with pytest.raises(StepAlreadyFinalError):
            streaks.mark_habit_complete(db, step.id, habit.id, now=D)
        db.refresh(habit)
        assert habit.earned_points == 5


# ---------------------------------------------------------------------------
# calculate_streak / check_streak_status
# ---------------------------------------------------------------------------

class TestCalculateStreak:
    def test_grace_day_keeps_streak(self, db, habit, complete_on):
        complete_on(D - timedelta(days=3), D - timedelta(days=2), D)
        calc = streaks.calculate_streak(db, habit.id, now=D)
        assert calc.current_streak == 3
        assert calc.consecutive_days == 1

    def test_not_at_risk_next_day(self, db, habit, complete_on):
        complete_on(D)
        calc = streaks.calculate_streak(db, habit.id, now=D + timedelta(days=1))
        assert calc.current_streak == 1
        assert calc.is_streak_at_risk is False

    def test_at_risk_after_a_missed_day(self, db, habit, complete_on):
        complete_on(D)
        calc = streaks.calculate_streak(db, habit.id, now=D + timedelta(days=2))
        assert calc.current_streak == 1
        assert calc.is_streak_at_risk is True

    def test_no_history(self, db, habit):
        calc = streaks.calculate_streak(db, habit.id, now=D)
        assert calc.current_streak == 0
        assert calc.is_streak_at_risk is False
        assert calc.streak_milestone == "none"


class TestCheckStreakStatus:
    def test_same_day(self, db, habit, complete_on):
        complete_on(D)
        status = streaks.check_streak_status(db, habit.id, now=D + timedelta(hours=6))
        assert status.is_at_risk is False
        assert status.hours_remaining == 30.0

    def test_at_risk(self, db, habit, complete_on):
        complete_on(D)
        status = streaks.check_streak_status(db, habit.id, now=D + timedelta(days=1))
        assert status.is_at_risk is True
        assert status.hours_remaining == 12.0

    def test_past_break_threshold(self, db, habit, complete_on):
        complete_on(D)
        status = streaks.check_streak_status(db, habit.id, now=D + timedelta(days=3))
        assert status.hours_remaining == 0

    def test_no_streak(self, db, habit):
        status = streaks.check_streak_status(db, habit.id, now=D)
        assert status.is_at_risk is False
        assert status.hours_remaining == 0


# ---------------------------------------------------------------------------
# record_skip
# ---------------------------------------------------------------------------

class TestRecordSkip:
    def test_skip_while_safe_keeps_streak(self, db, habit, make_step, complete_on):
        complete_on(D - timedelta(days=1), D)
        step = make_step(habit, step_type="habit")

        outcome = streaks.record_skip(
            db, step.id, habit.id, "tired", custom_note="long day", now=D + timedelta(hours=8)
        )

        db.refresh(step)
        assert outcome.streak_broken is False
        assert outcome.new_streak == 2
        assert step.status == "skipped"
        assert step.skip_count == 1
        assert step.last_skipped_date == TODAY
        record = jload(step.skip_reasons, [])[0]
        assert record["reason"] == "tired"
        assert record["custom_note"] == "long day"
        assert record["streak_at_risk"] is False

    def test_skip_the_day_after_completion_keeps_streak(self, db, habit, make_step, complete_on):
        complete_on(D - timedelta(days=1), D)
        step = make_step(habit, step_type="habit")
        later = D + timedelta(days=1)

        assert streaks.calculate_streak(db, habit.id, now=later).is_streak_at_risk is False
        outcome = streaks.record_skip(db, step.id, habit.id, "busy", now=later)

        db.refresh(habit)
        db.refresh(step)
        assert outcome.streak_broken is False
        assert outcome.new_streak == 2
        assert habit.streak_count == 2
        assert jload(step.skip_reasons, [])[0]["streak_at_risk"] is False

    def test_skip_while_at_risk_breaks_streak(self, db, habit, make_step, complete_on):
        complete_on(D - timedelta(days=2))
        step = make_step(habit, step_type="habit")

        assert streaks.calculate_streak(db, habit.id, now=D).is_streak_at_risk is True
        outcome = streaks.record_skip(db, step.id, habit.id, "sick", now=D)

        db.refresh(habit)
        assert outcome.streak_broken is True
        assert outcome.new_streak == 0
        assert habit.streak_count == 0
        assert habit.last_completed_date == TODAY - timedelta(days=2)

    def test_skip_done_step_rejected(self, db, habit, make_step):
        step = make_step(habit, step_type="habit")
        streaks.mark_habit_complete(db, step.id, habit.id, now=D)
        with pytest.raises(StepAlreadyFinalError):
            streaks.record_skip(db, step.id, habit.id, "busy", now=D)

    def test_unknown_reason_rejected(self, db, habit, make_step):
        step = make_step(habit, step_type="habit")
        with pytest.raises(ValueError):
            streaks.record_skip(db, step.id, habit.id, "bored", now=D)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

class TestRecompute:
    def test_rebuilds_counters_from_history(self, db, habit, complete_on, user_id):
        complete_on(D - timedelta(days=2), D - timedelta(days=1), D)
        habit.streak_count = 99
        habit.longest_streak = 99
        habit.earned_points = 0
        db.commit()

        results = streaks.recompute_user_streaks(db, user_id, now=D)

        db.refresh(habit)
        assert [r.goal_id for r in results] == [habit.id]
        assert habit.streak_count == 3
        assert habit.longest_streak == 3
        assert habit.earned_points == 15

    def test_user_habits_lists_only_active_habits(self, db, habit, make_goal, complete_on, user_id):
        make_goal(goal_type="standard")
        complete_on(D)

        habits = streaks.get_user_habits(db, user_id, now=D)
        assert [h.goal.id for h in habits] == [habit.id]
        assert habits[0].streak.current_streak == 1
