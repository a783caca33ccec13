"""
Tests for the goal and step lifecycle.

Covered:
  - TPP computed on create and recomputed on plan changes
  - goal-type cache invalidation on type change
  - step due date bounded by goal due date
  - goal completion bonus awarded once, habit goals never auto-complete
  - archiving
"""
from __future__ import annotations

from datetime import date

import pytest

from app.core.errors import GoalArchivedError, StepAlreadyFinalError, StepDueDateError
from app.models.points_ledger import LedgerEntryType, PointsLedgerEntry
from app.services import goals as goal_service
from app.services.goal_type_cache import GoalTypeCache


class TestCreateGoal:
    def test_tpp_and_category(self, make_goal, user_id):
        goal = make_goal(category="social", frequency_per_week=3, duration_weeks=4,
                         planned_milestones_count=1)
        assert goal.category == "social_skills"
        assert goal.total_possible_points == 5 * 3 * 4 + 25 + 40
        assert goal.owner_id == user_id
        assert goal.created_by == user_id
        assert goal.status == "active"

    def test_unknown_category_is_general(self, make_goal):
        assert make_goal(category="???").category == "general"


class TestUpdateGoal:
    def test_recomputes_tpp(self, db, make_goal):
        goal = make_goal(category="health", frequency_per_week=1, duration_weeks=1)
        updated = goal_service.update_goal(db, goal.id, {"frequency_per_week": 4})
        assert updated.total_possible_points == 5 * 4 * 1 + 25

    def test_title_change_keeps_tpp(self, db, make_goal):
        goal = make_goal(category="health", frequency_per_week=2, duration_weeks=2)
        before = goal.total_possible_points
        updated = goal_service.update_goal(db, goal.id, {"title": "Walk"})
        assert updated.title == "Walk"
        assert updated.total_possible_points == before

    def test_type_change_invalidates_cache(self, db, make_goal):
        cache = GoalTypeCache()
        goal = make_goal(goal_type="standard")
        assert cache.get(db, goal.id) == "standard"

        goal_service.update_goal(db, goal.id, {"goal_type": "progressive_mastery"}, cache=cache)
        assert goal.id not in cache
        assert cache.get(db, goal.id) == "progressive_mastery"

    def test_unknown_field_rejected(self, db, make_goal):
        with pytest.raises(ValueError):
            goal_service.update_goal(db, make_goal().id, {"earned_points": 1000})

    def test_archived_goal_is_read_only(self, db, make_goal):
        goal = make_goal()
        goal_service.archive_goal(db, goal.id)
        with pytest.raises(GoalArchivedError):
            goal_service.update_goal(db, goal.id, {"title": "x"})


class TestSteps:
    def test_order_index_appends(self, db, make_goal, make_step):
        goal = make_goal()
        first = make_step(goal)
        second = make_step(goal)
        assert (first.order_index, second.order_index) == (0, 1)
        assert [s.id for s in goal_service.list_steps(db, goal.id)] == [first.id, second.id]

    def test_due_date_bounded_by_goal(self, make_goal, make_step):
        goal = make_goal(due_date=date(2026, 6, 1))
        make_step(goal, due_date=date(2026, 6, 1))
        with pytest.raises(StepDueDateError):
            make_step(goal, due_date=date(2026, 6, 2))

    def test_goal_due_date_cannot_move_before_a_step(self, db, make_goal, make_step):
        goal = make_goal(due_date=date(2026, 12, 31))
        make_step(goal, due_date=date(2026, 12, 1))

        with pytest.raises(StepDueDateError):
            goal_service.update_goal(db, goal.id, {"due_date": date(2026, 6, 1)})
        db.refresh(goal)
        assert goal.due_date == date(2026, 12, 31)

        updated = goal_service.update_goal(db, goal.id, {"due_date": date(2026, 12, 1)})
        assert updated.due_date == date(2026, 12, 1)


class TestCompletion:
    def test_goal_completes_with_bonus_once(self, db, make_goal, make_step, user_id):
        goal = make_goal(category="employment")
        a = make_step(goal, step_type="action")
        b = make_step(goal, step_type="milestone")
        make_step(goal, step_type="action", is_required=False)

        assert goal_service.complete_step(db, goal, a) == 15
        db.commit()
        assert goal.status == "active"

        assert goal_service.complete_step(db, goal, b) == 30
        db.commit()
        db.refresh(goal)

        assert goal.status == "completed"
        assert goal.completed_at is not None
        assert goal.earned_points == 15 + 30 + 50
        bonuses = (
            db.query(PointsLedgerEntry)
            .filter(
                PointsLedgerEntry.goal_id == goal.id,
                PointsLedgerEntry.entry_type == LedgerEntryType.GOAL_COMPLETED,
            )
            .count()
        )
        assert bonuses == 1

    def test_habit_goal_never_auto_completes(self, db, make_goal, make_step):
        goal = make_goal(goal_type="habit")
        step = make_step(goal, step_type="habit")
        goal_service.complete_step(db, goal, step)
        db.commit()
        assert goal.status == "active"

    def test_points_override(self, db, make_goal, make_step):
        goal = make_goal(goal_type="habit")
        step = make_step(goal, step_type="habit")
        assert goal_service.complete_step(db, goal, step, points_override=0) == 0
        db.commit()

    def test_terminal_step_is_final(self, db, make_goal, make_step):
        goal = make_goal(goal_type="habit")
        step = make_step(goal, step_type="habit")
        goal_service.complete_step(db, goal, step)
        db.commit()
        with pytest.raises(StepAlreadyFinalError):
            goal_service.complete_step(db, goal, step)


class TestListGoals:
    def test_archived_hidden_by_default(self, db, make_goal, user_id):
        kept = make_goal()
        archived = make_goal()
        goal_service.archive_goal(db, archived.id)

        assert [g.id for g in goal_service.list_goals(db, user_id)] == [kept.id]
        ids = {g.id for g in goal_service.list_goals(db, user_id, include_archived=True)}
        assert ids == {kept.id, archived.id}
