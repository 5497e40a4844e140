"""Unit tests for late registrations and cancellations."""

from __future__ import annotations

import pytest

from grouping.errors import ConflictError, NotFoundError, ValidationError
from grouping.graph.friend_groups import resolve_friend_groups
from grouping.models import AssignmentType, GroupingConfig, GroupingState, GroupingStatus, ViolationType
from grouping.registrations import add_camper, remove_camper
from tests.factories import make_camper, make_campers, make_state


@pytest.fixture
def grouped_state():
    """Two 1st graders in group-1, two 4th graders in group-2."""
    return make_state(make_campers([1, 1, 4, 4]), [["c01", "c02"], ["c03", "c04"]])


class TestAddCamper:
    """Tests for add_camper."""

    def test_placed_in_best_fit_group(self, grouped_state):
        state, group = add_camper(grouped_state, make_camper("late", 4), user_id="director")

        assert group.id == "group-2"
        assert state.get_group("group-2").camper_ids == ["c03", "c04", "late"]
        assert state.status == GroupingStatus.REVIEWED
        assert state.violations == []

        record = state.assignment_log[-1]
        assert (record.camper_id, record.to_group_id) == ("late", "group-2")
        assert record.assignment_type == AssignmentType.AUTO
        assert record.assigned_by == "director"
        assert "Late registration" in record.reason

    def test_other_campers_stay_put(self, grouped_state):
        state, _ = add_camper(grouped_state, make_camper("late", 1))

        assert state.get_group("group-1").camper_ids == ["c01", "c02", "late"]
        assert state.get_group("group-2").camper_ids == ["c03", "c04"]

    def test_joins_friend_and_friend_group(self, grouped_state):
        """A 2nd grader fits either group but follows the friend they requested."""
        state, group = add_camper(grouped_state, make_camper("late", 2, friend_request_athlete_ids=["c03"]))

        assert group.id == "group-2"
        assert [fg.member_ids for fg in state.friend_groups] == [["c03", "late"]]
        assert state.get_camper("c03").friend_group_id == state.get_camper("late").friend_group_id

    def test_full_groups_report_violation(self):
        state = make_state(
            make_campers([1, 1, 4, 4]), [["c01", "c02"], ["c03", "c04"]], config=GroupingConfig(max_group_size=2)
        )

        new_state, group = add_camper(state, make_camper("late", 1))

        assert group.id == "group-1"
        assert [(v.violation_type, v.affected_group_id) for v in new_state.violations] == [
            (ViolationType.SIZE_EXCEEDED, "group-1")
        ]

    def test_pending_session_only_gains_roster_entry(self):
        state = GroupingState(camp_id="camp-1", campers=make_campers([1, 2]))

        new_state, group = add_camper(state, make_camper("late", 3), warnings=["Late registration"])

        assert group is None
        assert new_state.status == GroupingStatus.PENDING
        assert [c.athlete_id for c in new_state.campers] == ["c01", "c02", "late"]
        assert new_state.standardization_warnings == {"late": ["Late registration"]}

    def test_duplicate_athlete(self, grouped_state):
        with pytest.raises(ValidationError):
            add_camper(grouped_state, make_camper("c01", 1))

    def test_finalized_session(self, grouped_state):
        finalized = grouped_state.model_copy(update={"status": GroupingStatus.FINALIZED})
        with pytest.raises(ConflictError):
            add_camper(finalized, make_camper("late", 1))


class TestRemoveCamper:
    """Tests for remove_camper."""

    def test_cancelled_camper_leaves_group(self, grouped_state):
        state = remove_camper(grouped_state, "c03", user_id="director")

        assert state.get_camper("c03") is None
        assert state.get_group("group-2").camper_ids == ["c04"]
        assert state.status == GroupingStatus.REVIEWED

        record = state.assignment_log[-1]
        assert (record.camper_id, record.from_group_id, record.to_group_id) == ("c03", "group-2", None)
        assert record.reason == "Registration cancelled"

    def test_friend_chain_through_removed_camper_breaks(self):
        campers = [
            make_camper("c01", 2, friend_request_athlete_ids=["c02"]),
            make_camper("c02", 2, friend_request_athlete_ids=["c03"]),
            make_camper("c03", 2),
            make_camper("c04", 2),
        ]
        campers, friend_groups = resolve_friend_groups(campers)
        state = make_state(campers, [["c01", "c02", "c03"], ["c04"]], friend_groups)

        new_state = remove_camper(state, "c02")

        assert new_state.friend_groups == []
        assert new_state.get_camper("c01").friend_request_athlete_ids == []
        assert new_state.get_camper("c01").friend_group_id is None

    def test_clears_grade_violation(self):
        state = make_state(make_campers([1, 1, 5]), [["c01", "c02", "c03"]])
        assert state.violations[0].violation_type == ViolationType.GRADE_SPREAD_EXCEEDED

        assert remove_camper(state, "c03").violations == []

    def test_pending_status_kept(self):
        state = GroupingState(camp_id="camp-1", campers=make_campers([1, 2]), standardization_warnings={"c02": ["x"]})

        new_state = remove_camper(state, "c02")

        assert new_state.status == GroupingStatus.PENDING
        assert new_state.standardization_warnings == {}

    def test_unknown_camper(self, grouped_state):
        with pytest.raises(NotFoundError):
            remove_camper(grouped_state, "ghost")

    def test_finalized_session(self, grouped_state):
        finalized = grouped_state.model_copy(update={"status": GroupingStatus.FINALIZED})
        with pytest.raises(ConflictError):
            remove_camper(finalized, "c01")
