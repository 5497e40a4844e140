"""Unit tests for constraint checks and evaluation.

Tests the core business rules:
- Size: more than max_group_size campers is a HARD violation
- Grade spread: max - min grade above max_grade_spread is a HARD violation,
  campers without a grade are ignored
- Friend cohesion: a friend group in 2+ groups is a WARNING, reported once
"""

from __future__ import annotations

from grouping.models import CampGroup, GroupingConfig, ViolationSeverity, ViolationType
from grouping.solver.constraints import (
    ConstraintContext,
    check_friend_cohesion,
    check_grade_spread,
    check_group_size,
    evaluate_constraints,
    fits_grade_window,
    grade_spread,
    has_grade_violation,
    has_size_violation,
)
from grouping.solver.logging import ConstraintLogger
from tests.factories import link_friends, make_camper, make_campers


def group_with(number: int, camper_ids: list[str]) -> CampGroup:
    return CampGroup.create(number).model_copy(update={"camper_ids": camper_ids})


class TestGroupSize:
    """Tests for the group size constraint."""

    def test_boundary(self):
        config = GroupingConfig(max_group_size=3)
        assert has_size_violation(3, config) is False
        assert has_size_violation(4, config) is True

    def test_oversize_group_is_hard_violation(self):
        campers = make_campers([3, 3, 3, 3])
        ctx = ConstraintContext.build(campers, GroupingConfig(max_group_size=3))

        violation = check_group_size(ctx, group_with(2, [c.athlete_id for c in campers]))

        assert violation.violation_type == ViolationType.SIZE_EXCEEDED
        assert violation.severity == ViolationSeverity.HARD
        assert violation.title == "Group 2 Exceeds Size Limit"
        assert violation.affected_group_id == "group-2"
        assert len(violation.affected_camper_ids) == 4

    def test_full_group_is_fine(self):
        campers = make_campers([3, 3, 3])
        ctx = ConstraintContext.build(campers, GroupingConfig(max_group_size=3))
        assert check_group_size(ctx, group_with(1, [c.athlete_id for c in campers])) is None


class TestGradeSpread:
    """Tests for the grade spread constraint."""

    def test_spread_helpers(self):
        config = GroupingConfig(max_grade_spread=2)
        assert grade_spread([]) == 0
        assert grade_spread([4]) == 0
        assert grade_spread([0, 2, 1]) == 2
        assert has_grade_violation([0, 2], config) is False
        assert has_grade_violation([0, 3], config) is True
        assert fits_grade_window([1, 2], [3], config) is True
        assert fits_grade_window([1, 2], [4], config) is False

    def test_only_extreme_grades_are_affected(self):
        """The youngest and oldest campers are listed; middle grades are not."""
        campers = [make_camper("a", 1), make_camper("b", 2), make_camper("c", 4), make_camper("d", 1)]
        ctx = ConstraintContext.build(campers, GroupingConfig(max_grade_spread=2))

        violation = check_grade_spread(ctx, group_with(1, ["a", "b", "c", "d"]))

        assert violation.severity == ViolationSeverity.HARD
        assert violation.title == "Group 1 Exceeds Grade Spread"
        assert violation.affected_camper_ids == ["a", "c", "d"]
        assert "1st - 4th" in violation.description

    def test_unknown_grades_never_violate(self):
        campers = [make_camper("a", 1), make_camper("b", None), make_camper("c", 3)]
        ctx = ConstraintContext.build(campers, GroupingConfig(max_grade_spread=2))
        assert check_grade_spread(ctx, group_with(1, ["a", "b", "c"])) is None


class TestFriendCohesion:
    """Tests for the friend cohesion constraint."""

    def test_split_reported_once_as_warning(self):
        campers, friend_groups = link_friends(make_campers([3, 3, 3, 3]), ["c01", "c02", "c03"])
        ctx = ConstraintContext.build(campers, GroupingConfig(), friend_groups)
        groups = [group_with(1, ["c01"]), group_with(2, ["c02"]), group_with(3, ["c03", "c04"])]

        violations = check_friend_cohesion(ctx, groups)

        assert len(violations) == 1
        violation = violations[0]
        assert violation.severity == ViolationSeverity.WARNING
        assert violation.affected_group_id is None
        assert violation.affected_camper_ids == ["c01", "c02", "c03"]
        assert violation.affected_friend_group_id == friend_groups[0].id
        assert violation.title == "Friend Group #1 Split"
        assert "Lightning, Thunder, Storm" in violation.description

    def test_ungrouped_members_do_not_split(self):
        """A member moved to ungrouped leaves the friend group intact."""
        campers, friend_groups = link_friends(make_campers([3, 3]), ["c01", "c02"])
        ctx = ConstraintContext.build(campers, GroupingConfig(), friend_groups)
        assert check_friend_cohesion(ctx, [group_with(1, ["c01"]), group_with(2, [])]) == []


class TestEvaluateConstraints:
    """Tests for evaluate_constraints."""

    def test_refreshes_stats_and_orders_violations(self):
        """Size before grade within a group, groups in display order, friend splits last."""
        campers, friend_groups = link_friends(make_campers([1, 4, 2, 2, 2]), ["c03", "c04"])
        config = GroupingConfig(max_group_size=2, max_grade_spread=2)
        groups = [group_with(2, ["c03", "c05"]), group_with(1, ["c01", "c02", "c04"])]

        refreshed, violations = evaluate_constraints(groups, campers, friend_groups, config)

        assert [v.violation_type for v in violations] == [
            ViolationType.SIZE_EXCEEDED,
            ViolationType.GRADE_SPREAD_EXCEEDED,
            ViolationType.FRIEND_GROUP_SPLIT,
        ]
        first = next(g for g in refreshed if g.id == "group-1")
        assert (first.camper_count, first.min_grade, first.max_grade, first.grade_spread) == (3, 1, 4, 3)
        assert first.size_violation and first.grade_violation and first.friend_violation

    def test_does_not_mutate_input(self):
        campers = make_campers([1, 5])
        groups = [group_with(1, ["c01", "c02"])]
        evaluate_constraints(groups, campers, [], GroupingConfig())
        assert groups[0].camper_count == 0

    def test_violations_are_logged(self):
        campers = make_campers([1, 5])
        constraint_logger = ConstraintLogger()
        ctx = ConstraintContext.build(campers, GroupingConfig(), constraint_logger=constraint_logger)

        evaluate_constraints([group_with(1, ["c01", "c02"])], campers, [], GroupingConfig(), ctx)

        summary = constraint_logger.get_summary()
        assert summary["violations"][ViolationType.GRADE_SPREAD_EXCEEDED.value][0]["severity"] == "error"
