"""
Friend Cohesion Constraint - keep friend groups in one group.

A friend group is split when its members sit in two or more groups.
Ungrouped members do not count toward a split. Each split is reported once
per friend group, not once per group, with ``affected_group_id=None`` and
every member listed.
"""

from __future__ import annotations

from grouping.models import CampGroup, ConstraintViolation, FriendGroup, ViolationSeverity, ViolationType

from .base import ConstraintContext


def groups_holding(friend_group: FriendGroup, camper_to_group: dict[str, str]) -> set[str]:
    """Ids of the groups holding at least one member of the friend group."""
    return {camper_to_group[mid] for mid in friend_group.member_ids if mid in camper_to_group}


def is_split(friend_group: FriendGroup, camper_to_group: dict[str, str]) -> bool:
    return len(groups_holding(friend_group, camper_to_group)) >= 2


def camper_group_index(groups: list[CampGroup]) -> dict[str, str]:
    """camper id -> group id for every placed camper."""
    return {cid: group.id for group in groups for cid in group.camper_ids}


def check_friend_cohesion(ctx: ConstraintContext, groups: list[CampGroup]) -> list[ConstraintViolation]:
    """Return one warning per split friend group, in friend group display order."""
    camper_to_group = camper_group_index(groups)
    group_by_id = {g.id: g for g in groups}
    violations: list[ConstraintViolation] = []

    for friend_group in sorted(ctx.friend_groups, key=lambda fg: fg.group_number):
        holding = groups_holding(friend_group, camper_to_group)
        if len(holding) < 2:
            continue

        names = ", ".join(
            group_by_id[gid].group_name for gid in sorted(holding, key=lambda gid: group_by_id[gid].group_number)
        )
        if ctx.constraint_logger:
            ctx.constraint_logger.log_violation(
                ViolationType.FRIEND_GROUP_SPLIT.value,
                f"Friend group #{friend_group.group_number} split across {len(holding)} groups",
                severity="warning",
            )

        violations.append(
            ConstraintViolation(
                violation_type=ViolationType.FRIEND_GROUP_SPLIT,
                severity=ViolationSeverity.WARNING,
                title=f"Friend Group #{friend_group.group_number} Split",
                description=(
                    f"{friend_group.member_count} friends are split across {len(holding)} groups ({names})."
                ),
                affected_group_id=None,
                affected_camper_ids=list(friend_group.member_ids),
                affected_friend_group_id=friend_group.id,
                suggested_resolution="Consider moving friends to the same group if constraints allow.",
            )
        )

    return violations
