"""Unit tests for drag-and-drop move validation and commit.

Tests:
- validate_move is pure and reports the hypothetical target group
- Hard violations in the target block the move; friend splits only warn
- Stale from_group ids are a conflict
- commit_moves is all-or-nothing and records overrides in the audit log
"""

from __future__ import annotations

import pytest

from grouping.errors import ConflictError, NotFoundError
from grouping.models import AssignmentType, GroupingConfig, GroupingStatus, MoveRequest, ViolationType
from grouping.moves import commit_moves, validate_move
from tests.factories import link_friends, make_campers, make_state


@pytest.fixture
def state():
    """Two groups of grade 2-3 campers, one grade-6 camper ungrouped, a friend pair in group 1."""
    campers, friend_groups = link_friends(make_campers([2, 2, 3, 3, 6]), ["c01", "c02"])
    return make_state(
        campers,
        [["c01", "c02", "c03"], ["c04"]],
        friend_groups,
        GroupingConfig(max_group_size=3, max_grade_spread=2),
    )


class TestValidateMove:
    """Tests for validate_move."""

    def test_clean_move_allowed(self, state):
        validation = validate_move("c03", "group-1", "group-2", state)

        assert validation.allowed is True
        assert validation.violations == []
        assert validation.new_group_state.size == 2
        assert (validation.new_group_state.min_grade, validation.new_group_state.max_grade) == (3, 3)

    def test_does_not_modify_state(self, state):
        before = state.model_dump()
        validate_move("c05", None, "group-2", state)
        assert state.model_dump() == before

    def test_grade_spread_blocks(self, state):
        validation = validate_move("c05", None, "group-2", state)

        assert validation.allowed is False
        assert validation.violations == [ViolationType.GRADE_SPREAD_EXCEEDED]
        assert validation.new_group_state.grade_spread == 3
        assert "would span 3 grades" in validation.reasons[0]

    def test_size_blocks(self, state):
        validation = validate_move("c04", "group-2", "group-1", state)

        assert validation.allowed is False
        assert ViolationType.SIZE_EXCEEDED in validation.violations
        assert validation.new_group_state.size == 4

    def test_friend_split_warns_but_allows(self, state):
        validation = validate_move("c01", "group-1", "group-2", state)

        assert validation.allowed is True
        assert validation.splits_friend_group is True
        assert validation.violations == [ViolationType.FRIEND_GROUP_SPLIT]

    def test_moving_to_ungrouped_always_allowed(self, state):
        validation = validate_move("c03", "group-1", None, state)
        assert validation.allowed is True
        assert validation.new_group_state is None

    def test_same_group(self, state):
        validation = validate_move("c03", "group-1", "group-1", state)
        assert validation.allowed is True
        assert validation.reasons == ["Camper is already in this group"]

    def test_stale_from_group_is_conflict(self, state):
        with pytest.raises(ConflictError) as exc_info:
            validate_move("c03", "group-2", "group-1", state)
        assert exc_info.value.details["actual_group_id"] == "group-1"

    @pytest.mark.parametrize(
        "camper_id,from_group,to_group",
        [("ghost", None, "group-1"), ("c03", "group-1", "group-9"), ("c05", "group-9", "group-1")],
    )
    def test_unknown_ids(self, state, camper_id, from_group, to_group):
        with pytest.raises(NotFoundError):
            validate_move(camper_id, from_group, to_group, state)


class TestCommitMoves:
    """Tests for commit_moves."""

    def test_moves_applied_and_logged(self, state):
        updated = commit_moves(state, [MoveRequest(camper_id="c03", from_group_id="group-1", to_group_id="group-2")], "dir")

        assert updated.status == GroupingStatus.REVIEWED
        assert updated.get_group("group-1").camper_ids == ["c01", "c02"]
        assert updated.get_group("group-2").camper_ids == ["c04", "c03"]
        assert updated.get_group("group-2").camper_count == 2

        record = updated.assignment_log[-1]
        assert record.assignment_type == AssignmentType.MANUAL
        assert (record.from_group_id, record.to_group_id, record.assigned_by) == ("group-1", "group-2", "dir")
        assert state.get_group("group-1").camper_ids == ["c01", "c02", "c03"]

    def test_disallowed_move_needs_override(self, state):
        with pytest.raises(ConflictError) as exc_info:
            commit_moves(state, [MoveRequest(camper_id="c05", to_group_id="group-2")])
        assert exc_info.value.details["violations"] == ["grade_spread_exceeded"]

    def test_override_is_audited_and_creates_violation(self, state):
        move = MoveRequest(
            camper_id="c05", to_group_id="group-2", override_acknowledged=True, override_note="Sibling in group"
        )
        updated = commit_moves(state, [move], "dir")

        record = updated.assignment_log[-1]
        assert record.assignment_type == AssignmentType.OVERRIDE
        assert record.override_acknowledged is True
        assert record.override_note == "Sibling in group"
        assert record.caused_grade_violation is True
        assert any(
            v.violation_type == ViolationType.GRADE_SPREAD_EXCEEDED and v.affected_group_id == "group-2"
            for v in updated.violations
        )

    def test_batch_is_all_or_nothing(self, state):
        """A rejected second move leaves the original state untouched."""
        moves = [
            MoveRequest(camper_id="c03", from_group_id="group-1", to_group_id="group-2"),
            MoveRequest(camper_id="c05", to_group_id="group-2"),
        ]
        with pytest.raises(ConflictError):
            commit_moves(state, moves)
        assert state.get_group("group-2").camper_ids == ["c04"]
        assert state.status == GroupingStatus.AUTO_GROUPED

    def test_moves_validated_against_running_state(self, state):
        """The second move sees the camper where the first move put it."""
        moves = [
            MoveRequest(camper_id="c03", from_group_id="group-1", to_group_id="group-2"),
            MoveRequest(camper_id="c03", from_group_id="group-2", to_group_id=None),
        ]
        updated = commit_moves(state, moves)

        assert "c03" in updated.ungrouped_camper_ids
        assert len(updated.assignment_log) == 2

    def test_finalized_rejects_moves(self, state):
        finalized = state.model_copy(update={"status": GroupingStatus.FINALIZED})
        with pytest.raises(ConflictError):
            commit_moves(finalized, [MoveRequest(camper_id="c03", from_group_id="group-1", to_group_id="group-2")])

    def test_pending_rejects_moves(self, state):
        pending = state.model_copy(update={"status": GroupingStatus.PENDING})
        with pytest.raises(ConflictError):
            commit_moves(pending, [])
