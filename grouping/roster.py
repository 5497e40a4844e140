"""
Group roster management: add, rename/recolour and remove groups.

Removing a group sends its campers to ungrouped and renumbers the remaining
groups so display numbers stay contiguous. Group ids never change.
"""

from __future__ import annotations

import logging
import re

from grouping.errors import NotFoundError, ValidationError
from grouping.models import (
    AssignmentType,
    CampGroup,
    GroupAssignmentRecord,
    GroupingState,
    GroupingStatus,
    default_group_color,
    default_group_name,
)

from .state_machine import ensure_editable
from .violations import recompute_violations

logger = logging.getLogger(__name__)

HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _validate_name(name: str) -> str:
    if not name or not name.strip():
        raise ValidationError("Group name must not be blank")
    return name.strip()


def _validate_color(color: str) -> str:
    if not HEX_COLOR_PATTERN.match(color):
        raise ValidationError(f"Invalid group colour '{color}'; expected #RRGGBB", {"group_color": color})
    return color.upper()


def _next_group_id(groups: list[CampGroup]) -> str:
    existing = {g.id for g in groups}
    k = len(groups) + 1
    while f"group-{k}" in existing:
        k += 1
    return f"group-{k}"


def add_group(
    state: GroupingState,
    name: str | None = None,
    color: str | None = None,
) -> tuple[GroupingState, CampGroup]:
    """Append an empty group with the next display number.

    Args:
        state: Current session state
        name: Group name (defaults to the palette name for the number)
        color: ``#RRGGBB`` colour (defaults to the palette colour)

    Returns:
        Tuple of (new state, the created group)

    Raises:
        ConflictError: If the grouping is finalized
        ValidationError: If the name is blank or the colour is malformed
    """
    ensure_editable(state)

    group_number = max((g.group_number for g in state.groups), default=0) + 1
    group = CampGroup(
        id=_next_group_id(state.groups),
        group_number=group_number,
        group_name=_validate_name(name) if name is not None else default_group_name(group_number),
        group_color=_validate_color(color) if color is not None else default_group_color(group_number),
    )

    logger.info(f"Camp {state.camp_id}: added group {group.id} ({group.group_name})")
    return state.model_copy(update={"groups": [*state.groups, group]}), group


def update_group(
    state: GroupingState,
    group_id: str,
    name: str | None = None,
    color: str | None = None,
) -> GroupingState:
    """Rename and/or recolour a group.

    Raises:
        ConflictError: If the grouping is finalized
        NotFoundError: If the group does not exist
        ValidationError: If the name is blank or the colour is malformed
    """
    ensure_editable(state)
    if state.get_group(group_id) is None:
        raise NotFoundError(f"Group '{group_id}' not found", {"group_id": group_id})

    update: dict[str, str] = {}
    if name is not None:
        update["group_name"] = _validate_name(name)
    if color is not None:
        update["group_color"] = _validate_color(color)

    groups = [g.model_copy(update=update) if g.id == group_id else g for g in state.groups]
    return state.model_copy(update={"groups": groups})


def remove_group(state: GroupingState, group_id: str, user_id: str | None = None) -> GroupingState:
    """Delete a group; its campers become ungrouped.

    Raises:
        ConflictError: If the grouping is finalized
        NotFoundError: If the group does not exist
    """
    ensure_editable(state)
    removed = state.get_group(group_id)
    if removed is None:
        raise NotFoundError(f"Group '{group_id}' not found", {"group_id": group_id})

    remaining = sorted((g for g in state.groups if g.id != group_id), key=lambda g: g.group_number)
    groups = [g.model_copy(update={"group_number": number}) for number, g in enumerate(remaining, start=1)]

    records = [
        GroupAssignmentRecord(
            camper_id=camper_id,
            from_group_id=group_id,
            to_group_id=None,
            assignment_type=AssignmentType.MANUAL,
            reason=f"Group {removed.group_name} removed",
            assigned_by=user_id,
        )
        for camper_id in removed.camper_ids
    ]

    status = state.status
    if removed.camper_ids and status == GroupingStatus.AUTO_GROUPED:
        status = GroupingStatus.REVIEWED

    logger.info(
        f"Camp {state.camp_id}: removed group {group_id} ({removed.group_name}), "
        f"{len(removed.camper_ids)} camper(s) now ungrouped"
    )
    updated = state.model_copy(
        update={"groups": groups, "assignment_log": [*state.assignment_log, *records], "status": status}
    )
    return recompute_violations(updated)
