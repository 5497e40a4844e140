"""
Finalization state machine.

    pending --run--> auto_grouped
    auto_grouped | reviewed --rerun--> auto_grouped   (destructive, caller confirms)
    auto_grouped | reviewed --move--> reviewed
    auto_grouped | reviewed --finalize--> finalized    (no unresolved hard violations)
    finalized --unlock--> auto_grouped

Any other transition raises ConflictError.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum

from grouping.errors import ConflictError
from grouping.models import GroupingState, GroupingStatus

from .violations import blocking_violations

logger = logging.getLogger(__name__)


class GroupingAction(str, Enum):
    RUN = "run"
    RERUN = "rerun"
    MOVE = "move"
    FINALIZE = "finalize"
    UNLOCK = "unlock"


TRANSITIONS: dict[tuple[GroupingStatus, GroupingAction], GroupingStatus] = {
    (GroupingStatus.PENDING, GroupingAction.RUN): GroupingStatus.AUTO_GROUPED,
    (GroupingStatus.AUTO_GROUPED, GroupingAction.RERUN): GroupingStatus.AUTO_GROUPED,
    (GroupingStatus.REVIEWED, GroupingAction.RERUN): GroupingStatus.AUTO_GROUPED,
    (GroupingStatus.AUTO_GROUPED, GroupingAction.MOVE): GroupingStatus.REVIEWED,
    (GroupingStatus.REVIEWED, GroupingAction.MOVE): GroupingStatus.REVIEWED,
    (GroupingStatus.AUTO_GROUPED, GroupingAction.FINALIZE): GroupingStatus.FINALIZED,
    (GroupingStatus.REVIEWED, GroupingAction.FINALIZE): GroupingStatus.FINALIZED,
    (GroupingStatus.FINALIZED, GroupingAction.UNLOCK): GroupingStatus.AUTO_GROUPED,
}


def can_transition(status: GroupingStatus, action: GroupingAction) -> bool:
    return (status, action) in TRANSITIONS


def next_status(status: GroupingStatus, action: GroupingAction) -> GroupingStatus:
    """Status after applying ``action``.

    Raises:
        ConflictError: If the transition is not allowed
    """
    try:
        return TRANSITIONS[(status, action)]
    except KeyError:
        raise ConflictError(
            f"Cannot {action.value} a grouping in status '{status.value}'",
            details={"status": status.value, "action": action.value},
        ) from None


def ensure_editable(state: GroupingState) -> None:
    """Raise ConflictError when the session is finalized."""
    if state.status == GroupingStatus.FINALIZED:
        raise ConflictError("Grouping is finalized; unlock it before making changes", details={"status": "finalized"})


def finalize(state: GroupingState, user_id: str | None = None, now: datetime | None = None) -> GroupingState:
    """Lock the grouping.

    Raises:
        ConflictError: If the transition is invalid, or with the ids of the
            blocking violations when unresolved hard violations remain
    """
    new_status = next_status(state.status, GroupingAction.FINALIZE)

    blocking = blocking_violations(state.violations)
    if blocking:
        group_ids = sorted({v.affected_group_id for v in blocking if v.affected_group_id})
        group_names = [g.group_name for g in state.groups if g.id in group_ids]
        titles = "; ".join(v.title for v in blocking)
        raise ConflictError(
            f"Cannot finalize: {len(blocking)} unresolved hard violation(s): {titles}",
            blocking_violation_ids=[v.id for v in blocking],
            details={"group_ids": group_ids, "group_names": group_names},
        )

    logger.info(f"Camp {state.camp_id}: grouping finalized by {user_id or 'unknown'}")
    return state.model_copy(
        update={"status": new_status, "finalized_at": now or datetime.now(UTC), "finalized_by": user_id}
    )


def unlock(state: GroupingState, user_id: str | None = None) -> GroupingState:
    """Re-open a finalized grouping for editing; assignments and resolutions are kept."""
    new_status = next_status(state.status, GroupingAction.UNLOCK)
    logger.info(f"Camp {state.camp_id}: grouping unlocked by {user_id or 'unknown'}")
    return state.model_copy(update={"status": new_status, "finalized_at": None, "finalized_by": None})
