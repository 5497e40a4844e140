"""
Move validation and commit.

``validate_move`` answers "what happens if this camper is dropped here?"
without touching state, so the UI can call it on every hover. A move is
allowed only when the target group would have no hard violation afterwards,
whether or not the group was already in violation. Friend-split checks only
look at the mover's own friend group.

``commit_moves`` applies a batch of moves to a copy of the state. Moves that
were not allowed must carry ``override_acknowledged``; they are recorded as
overrides in the audit log.
"""

from __future__ import annotations

import logging

from grouping.errors import ConflictError, NotFoundError
from grouping.models import (
    AssignmentType,
    DropValidation,
    GroupAssignmentRecord,
    GroupingState,
    MoveRequest,
    NewGroupState,
    ViolationType,
)
from grouping.solver.constraints.grade_spread import grade_range, grade_spread, has_grade_violation
from grouping.solver.constraints.group_size import has_size_violation

from .state_machine import GroupingAction, next_status
from .violations import recompute_violations

logger = logging.getLogger(__name__)


def _hypothetical_split(state: GroupingState, camper_id: str, to_group_id: str | None) -> bool:
    """Whether the mover's friend group would span two or more groups after the move."""
    camper = state.get_camper(camper_id)
    if camper is None or camper.friend_group_id is None:
        return False
    friend_group = state.get_friend_group(camper.friend_group_id)
    if friend_group is None:
        return False

    holding: set[str] = set()
    for member_id in friend_group.member_ids:
        if member_id == camper_id:
            group_id = to_group_id
        else:
            group = state.group_of(member_id)
            group_id = group.id if group else None
        if group_id is not None:
            holding.add(group_id)
    return len(holding) >= 2


def validate_move(
    camper_id: str,
    from_group_id: str | None,
    to_group_id: str | None,
    state: GroupingState,
) -> DropValidation:
    """Evaluate a proposed move without committing it.

    Args:
        camper_id: Camper being moved
        from_group_id: Group the client believes the camper is in (None = ungrouped)
        to_group_id: Destination group (None = ungrouped)
        state: Current session state (not modified)

    Returns:
        DropValidation with the hypothetical target group stats

    Raises:
        NotFoundError: If the camper or either group is unknown
        ConflictError: If ``from_group_id`` does not match the camper's current group
    """
    camper = state.get_camper(camper_id)
    if camper is None:
        raise NotFoundError(f"Camper '{camper_id}' not found", {"camper_id": camper_id})
    for group_id in (from_group_id, to_group_id):
        if group_id is not None and state.get_group(group_id) is None:
            raise NotFoundError(f"Group '{group_id}' not found", {"group_id": group_id})

    current = state.group_of(camper_id)
    current_id = current.id if current else None
    if from_group_id != current_id:
        raise ConflictError(
            f"Camper '{camper_id}' is no longer in group '{from_group_id}'; reload and try again",
            details={"camper_id": camper_id, "expected_group_id": from_group_id, "actual_group_id": current_id},
        )

    if to_group_id is None:
        return DropValidation(allowed=True, reasons=["Camper will be moved to ungrouped"])
    if to_group_id == current_id:
        return DropValidation(allowed=True, reasons=["Camper is already in this group"])

    target = state.get_group(to_group_id)
    assert target is not None
    member_ids = [*target.camper_ids, camper_id]

    camper_by_id = state.camper_by_id()
    grades = [g for g in (camper_by_id[cid].grade_validated for cid in member_ids) if g is not None]
    low, high = grade_range(grades)
    new_group_state = NewGroupState(size=len(member_ids), grade_spread=grade_spread(grades), min_grade=low, max_grade=high)

    violations: list[ViolationType] = []
    reasons: list[str] = []
    if has_size_violation(len(member_ids), state.config):
        violations.append(ViolationType.SIZE_EXCEEDED)
        reasons.append(f"{target.group_name} would have {len(member_ids)} campers (max {state.config.max_group_size})")
    if has_grade_violation(grades, state.config):
        violations.append(ViolationType.GRADE_SPREAD_EXCEEDED)
        reasons.append(
            f"{target.group_name} would span {new_group_state.grade_spread} grades "
            f"(max {state.config.max_grade_spread})"
        )

    splits = _hypothetical_split(state, camper_id, to_group_id)
    if splits:
        violations.append(ViolationType.FRIEND_GROUP_SPLIT)
        reasons.append(f"{camper.full_name} would be separated from their friend group")

    return DropValidation(
        allowed=not (ViolationType.SIZE_EXCEEDED in violations or ViolationType.GRADE_SPREAD_EXCEEDED in violations),
        violations=violations,
        new_group_state=new_group_state,
        reasons=reasons,
        splits_friend_group=splits,
    )


def commit_moves(state: GroupingState, moves: list[MoveRequest], user_id: str | None = None) -> GroupingState:
    """Apply camper moves in order and recompute violations.

    The batch is all-or-nothing: any rejected move raises before a new state
    is returned.

    Args:
        state: Current session state (not modified)
        moves: Moves to apply, validated against the state left by the previous move
        user_id: Who made the moves

    Returns:
        New state with status ``reviewed``

    Raises:
        ConflictError: For invalid status, stale ``from_group_id``, or a
            disallowed move without ``override_acknowledged``
        NotFoundError: For unknown campers or groups
    """
    new_status = next_status(state.status, GroupingAction.MOVE)
    working = state.model_copy(deep=True)

    for move in moves:
        validation = validate_move(move.camper_id, move.from_group_id, move.to_group_id, working)
        if not validation.allowed and not move.override_acknowledged:
            raise ConflictError(
                f"Moving camper '{move.camper_id}' would create hard violations: {'; '.join(validation.reasons)}",
                details={
                    "camper_id": move.camper_id,
                    "to_group_id": move.to_group_id,
                    "violations": [v.value for v in validation.violations],
                },
            )
        if move.from_group_id == move.to_group_id:
            continue

        if move.from_group_id is not None:
            source = working.get_group(move.from_group_id)
            assert source is not None
            source.camper_ids = [cid for cid in source.camper_ids if cid != move.camper_id]
        if move.to_group_id is not None:
            target = working.get_group(move.to_group_id)
            assert target is not None
            target.camper_ids = [*target.camper_ids, move.camper_id]

        is_override = not validation.allowed
        working.assignment_log.append(
            GroupAssignmentRecord(
                camper_id=move.camper_id,
                from_group_id=move.from_group_id,
                to_group_id=move.to_group_id,
                assignment_type=AssignmentType.OVERRIDE if is_override else AssignmentType.MANUAL,
                reason=move.override_note if is_override else "Manual move",
                caused_size_violation=ViolationType.SIZE_EXCEEDED in validation.violations,
                caused_grade_violation=ViolationType.GRADE_SPREAD_EXCEEDED in validation.violations,
                caused_friend_violation=validation.splits_friend_group,
                override_acknowledged=is_override,
                override_note=move.override_note if is_override else None,
                assigned_by=user_id,
            )
        )
        if is_override:
            logger.warning(
                f"Camp {state.camp_id}: override move of {move.camper_id} to {move.to_group_id} "
                f"by {user_id or 'unknown'}: {'; '.join(validation.reasons)}"
            )

    working.status = new_status
    logger.info(f"Camp {state.camp_id}: committed {len(moves)} move(s)")
    return recompute_violations(working)
