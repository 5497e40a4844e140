"""
Incremental roster changes: late registrations and cancellations.

A late registrant is placed into the best existing group without moving
anyone else. A cancelled registration leaves the roster and its group. In
both cases friend groups are rebuilt from the campers' matched requests and
violations are recomputed, carrying resolutions forward.
"""

from __future__ import annotations

import logging

from grouping.errors import NotFoundError, ValidationError
from grouping.graph.friend_groups import resolve_friend_groups
from grouping.models import (
    AssignmentType,
    CampGroup,
    GroupAssignmentRecord,
    GroupingState,
    GroupingStatus,
    StandardizedCamper,
)
from grouping.solver.auto_grouper import AUTO_ASSIGNED_BY, AutoGrouper

from .state_machine import GroupingAction, ensure_editable, next_status
from .violations import recompute_violations

logger = logging.getLogger(__name__)


def add_camper(
    state: GroupingState,
    camper: StandardizedCamper,
    existing: list[StandardizedCamper] | None = None,
    warnings: list[str] | None = None,
    require_mutual: bool = False,
    user_id: str | None = None,
) -> tuple[GroupingState, CampGroup | None]:
    """Add a standardized camper to the session.

    Before the first auto-grouping run the camper only joins the roster.
    Afterwards they are placed into an existing group (see
    ``AutoGrouper.place_camper``) and the session becomes ``reviewed``.

    Args:
        state: Current session state
        camper: The new camper
        existing: Existing campers with updated friend links (defaults to ``state.campers``)
        warnings: Standardization warnings for the new camper
        require_mutual: Only link reciprocated friend requests
        user_id: Who added the camper

    Returns:
        Tuple of (new state, group the camper was placed in or None)

    Raises:
        ConflictError: If the grouping is finalized
        ValidationError: If the athlete is already in the session
    """
    ensure_editable(state)
    if state.get_camper(camper.athlete_id) is not None:
        raise ValidationError(
            f"Athlete '{camper.athlete_id}' is already in this session", {"athlete_ids": [camper.athlete_id]}
        )

    campers = [*(existing if existing is not None else state.campers), camper]
    campers, friend_groups = resolve_friend_groups(campers, require_mutual=require_mutual, config=state.config)

    standardization_warnings = dict(state.standardization_warnings)
    if warnings:
        standardization_warnings[camper.athlete_id] = list(warnings)

    working = state.model_copy(
        update={
            "campers": campers,
            "friend_groups": friend_groups,
            "standardization_warnings": standardization_warnings,
        }
    )
    if state.status == GroupingStatus.PENDING or not state.groups:
        logger.info(f"Camp {state.camp_id}: added camper {camper.athlete_id} to the roster")
        return working, None

    new_status = next_status(state.status, GroupingAction.MOVE)
    grouper = AutoGrouper(campers, state.config, friend_groups, groups=state.groups)
    target = grouper.place_camper(camper.athlete_id, state.groups)
    assert target is not None

    groups = [
        g.model_copy(update={"camper_ids": [*g.camper_ids, camper.athlete_id]}) if g.id == target.id else g
        for g in state.groups
    ]
    record = GroupAssignmentRecord(
        camper_id=camper.athlete_id,
        to_group_id=target.id,
        assignment_type=AssignmentType.AUTO,
        reason="Late registration placed in best-fit group",
        assigned_by=user_id or AUTO_ASSIGNED_BY,
    )
    working = working.model_copy(
        update={"groups": groups, "status": new_status, "assignment_log": [*state.assignment_log, record]}
    )
    working = recompute_violations(working)

    placed = working.get_group(target.id)
    assert placed is not None
    if placed.size_violation or placed.grade_violation:
        logger.warning(
            f"Camp {state.camp_id}: late registration {camper.athlete_id} pushed {placed.group_name} "
            f"over its limits (size {placed.camper_count}, spread {placed.grade_spread})"
        )
    else:
        logger.info(f"Camp {state.camp_id}: late registration {camper.athlete_id} placed in {placed.group_name}")
    return working, placed


def remove_camper(
    state: GroupingState,
    camper_id: str,
    require_mutual: bool = False,
    user_id: str | None = None,
) -> GroupingState:
    """Remove a camper whose registration was cancelled.

    Other campers' requests for the camper are dropped, so a friend group
    that depended on them may split into smaller groups.

    Raises:
        ConflictError: If the grouping is finalized
        NotFoundError: If the camper is not in the session
    """
    ensure_editable(state)
    if state.get_camper(camper_id) is None:
        raise NotFoundError(f"Camper '{camper_id}' not found", {"camper_id": camper_id})

    remaining = [
        c.model_copy(update={"friend_request_athlete_ids": [a for a in c.friend_request_athlete_ids if a != camper_id]})
        for c in state.campers
        if c.athlete_id != camper_id
    ]
    campers, friend_groups = resolve_friend_groups(remaining, require_mutual=require_mutual, config=state.config)

    standardization_warnings = {k: v for k, v in state.standardization_warnings.items() if k != camper_id}
    update: dict[str, object] = {
        "campers": campers,
        "friend_groups": friend_groups,
        "standardization_warnings": standardization_warnings,
    }

    source = state.group_of(camper_id)
    if source is not None:
        update["groups"] = [
            g.model_copy(update={"camper_ids": [cid for cid in g.camper_ids if cid != camper_id]}) for g in state.groups
        ]
        update["status"] = next_status(state.status, GroupingAction.MOVE)
        update["assignment_log"] = [
            *state.assignment_log,
            GroupAssignmentRecord(
                camper_id=camper_id,
                from_group_id=source.id,
                to_group_id=None,
                assignment_type=AssignmentType.MANUAL,
                reason="Registration cancelled",
                assigned_by=user_id,
            ),
        ]

    logger.info(
        f"Camp {state.camp_id}: removed camper {camper_id}"
        + (f" from {source.group_name}" if source is not None else "")
    )
    return recompute_violations(state.model_copy(update=update))
