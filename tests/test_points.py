"""
Tests for the points schedule, Total Possible Points and the ledger.

Covered:
  - per-category step values, with tagged fallbacks for unknown input
  - completion bonus lookup (default 10)
  - TPP formula, milestone-only goals, monotonicity, negative input rejection
  - ledger awards, balances, per-category summary and pagination
"""
from __future__ import annotations

import pytest

from app.core.errors import PointsInputError
from app.models.points_ledger import LedgerEntryType
from app.services import points as points_service
from app.services.points import (
    calculate_step_points,
    calculate_total_possible_points,
    get_goal_completion_bonus,
    lookup_step_points,
    resolve_category,
    tpp_breakdown,
)


# ---------------------------------------------------------------------------
# Step points
# ---------------------------------------------------------------------------

class TestStepPoints:
    @pytest.mark.parametrize("category,step_type,expected", [
        ("employment", "habit", 5),
        ("employment", "action", 15),
        ("employment", "milestone", 30),
        ("education", "milestone", 20),
        ("social_skills", "action", 15),
        ("postsecondary", "milestone", 25),
        ("health", "scaffolding", 2),
    ])
    def test_schedule_values(self, category, step_type, expected):
        assert calculate_step_points(category, step_type) == expected

    def test_domain_slug_maps_to_category(self):
        assert calculate_step_points("independent-living", "action") == 10
        assert resolve_category("recreation").schedule.category == "recreation_fun"
        assert resolve_category("self-advocacy").schedule.category == "self_advocacy"

    def test_unknown_category_defaults_to_five(self):
        lookup = lookup_step_points("underwater-basketry", "milestone")
        assert lookup.points == 5
        assert lookup.category == "general"
        assert lookup.used_default is True

    def test_unknown_step_type_falls_back_to_habit_value(self):
        lookup = lookup_step_points("employment", "bogus")
        assert lookup.points == 5
        assert lookup.used_default is True

    def test_known_lookup_is_not_tagged(self):
        assert lookup_step_points("employment", "action").used_default is False

    def test_none_category(self):
        assert calculate_step_points(None, "habit") == 5


class TestCompletionBonus:
    def test_known_categories(self):
        assert get_goal_completion_bonus("employment") == 50
        assert get_goal_completion_bonus("social_skills") == 40
        assert get_goal_completion_bonus("health") == 25

    def test_unknown_category_defaults_to_ten(self):
        assert get_goal_completion_bonus("nope") == 10


# ---------------------------------------------------------------------------
# TPP
# ---------------------------------------------------------------------------

class TestTotalPossiblePoints:
    def test_formula(self):
        # 5*3*4 + 30*2 + 2*5 + 50
        assert calculate_total_possible_points("employment", 3, 4, 2, 5) == 180

    def test_action_cadence(self):
        # 15*3*4 + 50
        assert calculate_total_possible_points("employment", 3, 4, step_type="action") == 230

    def test_zero_frequency_is_milestone_only(self):
        b = tpp_breakdown("education", 0, 10, planned_milestones_count=3)
        assert b.cadence_points == 0
        assert b.total == 20 * 3 + 25

    def test_zero_duration_is_milestone_only(self):
        assert calculate_total_possible_points("education", 5, 0) == 25

    def test_unknown_category_uses_general_schedule(self):
        b = tpp_breakdown("mystery", 2, 2, planned_milestones_count=1)
        assert b.used_default is True
        assert b.total == 5 * 2 * 2 + 5 + 10

    @pytest.mark.parametrize("field", [
        "frequency_per_week", "duration_weeks", "planned_milestones_count", "planned_scaffold_count",
    ])
    def test_monotonic_in_each_input(self, field):
        base = {
            "frequency_per_week": 3,
            "duration_weeks": 4,
            "planned_milestones_count": 2,
            "planned_scaffold_count": 1,
        }
        previous = None
        for value in range(0, 6):
            args = dict(base, **{field: value})
            total = calculate_total_possible_points("social_skills", **args)
            if previous is not None:
                assert total >= previous
            previous = total

    @pytest.mark.parametrize("field", [
        "frequency_per_week", "duration_weeks", "planned_milestones_count", "planned_scaffold_count",
    ])
    def test_negative_inputs_rejected(self, field):
        args = {
            "frequency_per_week": 1,
            "duration_weeks": 1,
            "planned_milestones_count": 0,
            "planned_scaffold_count": 0,
        }
        args[field] = -1
        with pytest.raises(PointsInputError) as exc:
            calculate_total_possible_points("health", **args)
        assert exc.value.details["field"] == field


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class TestLedger:
    def test_award_and_balance(self, db, user_id):
        points_service.award_points(db, user_id, "employment", 15, LedgerEntryType.STEP_COMPLETED)
        points_service.award_points(db, user_id, "health", 5, LedgerEntryType.STEP_COMPLETED)
        db.commit()

        assert points_service.get_balance(db, user_id) == 20
        assert points_service.get_balance(db, user_id, "employment") == 15
        assert points_service.get_balance(db, user_id, "education") == 0

    def test_award_normalizes_category(self, db, user_id):
        entry = points_service.award_points(
            db, user_id, "independent-living", 10, LedgerEntryType.STEP_COMPLETED
        )
        db.commit()
        assert entry.category == "independent_living"

    def test_negative_award_rejected(self, db, user_id):
        with pytest.raises(PointsInputError):
            points_service.award_points(db, user_id, "health", -5, LedgerEntryType.STEP_COMPLETED)

    def test_summary_omits_zero_categories(self, db, user_id):
        from app.models.points_ledger import PointsLedgerEntry

        points_service.award_points(db, user_id, "education", 20, LedgerEntryType.STEP_COMPLETED)
        points_service.award_points(db, user_id, "health", 10, LedgerEntryType.STEP_COMPLETED)
        # External redemption zeroes out health
        db.add(PointsLedgerEntry(
            user_id=user_id, category="health", points=-10,
            entry_type=LedgerEntryType.REDEMPTION_DEBIT,
        ))
        db.commit()

        summary = points_service.get_points_summary(db, user_id)
        assert summary.total_points == 20
        assert [c.category for c in summary.categories] == ["education"]
        assert summary.categories[0].display_name == "Education"

    def test_list_ledger_paginates_newest_first(self, db, user_id):
        for pts in (1, 2, 3):
            points_service.award_points(db, user_id, "general", pts, LedgerEntryType.STEP_COMPLETED)
        db.commit()

        total, items = points_service.list_ledger(db, user_id, limit=2)
        assert total == 3
        assert [e.points for e in items] == [3, 2]

        total, items = points_service.list_ledger(db, user_id, limit=2, offset=2)
        assert [e.points for e in items] == [1]
