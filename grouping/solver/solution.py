"""
Solution analysis.

Pure functions that summarize a grouping for the API response and logs.
"""

from __future__ import annotations

import logging

from grouping.models import (
    CampGroup,
    ConstraintViolation,
    FriendGroup,
    GroupingStats,
    StandardizedCamper,
    ViolationSeverity,
)

from .constraints.friend_cohesion import camper_group_index, groups_holding

logger = logging.getLogger(__name__)


def analyze_solution(
    groups: list[CampGroup],
    campers: list[StandardizedCamper],
    friend_groups: list[FriendGroup],
    violations: list[ConstraintViolation],
) -> GroupingStats:
    """Compute summary statistics for a set of groups.

    Args:
        groups: Groups with current membership
        campers: All campers in the session
        friend_groups: Friend groups from standardization
        violations: Current violations (inactive audit records are ignored)

    Returns:
        GroupingStats
    """
    camper_to_group = camper_group_index(groups)
    placed = sum(1 for c in campers if c.athlete_id in camper_to_group)

    intact = 0
    split = 0
    for friend_group in friend_groups:
        holding = groups_holding(friend_group, camper_to_group)
        if len(holding) >= 2:
            split += 1
        elif len(holding) == 1:
            intact += 1

    active = [v for v in violations if v.is_active]
    stats = GroupingStats(
        total_campers=len(campers),
        placed_count=placed,
        unplaced_count=len(campers) - placed,
        group_count=len(groups),
        group_sizes=[len(g.camper_ids) for g in sorted(groups, key=lambda g: g.group_number)],
        friend_groups_total=len(friend_groups),
        friend_groups_intact=intact,
        friend_groups_split=split,
        hard_violations=sum(1 for v in active if v.severity == ViolationSeverity.HARD),
        warnings=sum(1 for v in active if v.severity == ViolationSeverity.WARNING),
        unresolved_hard_violations=sum(1 for v in active if v.is_blocking),
        late_registrations=sum(1 for c in campers if c.is_late_registration),
        grade_discrepancies=sum(1 for c in campers if c.grade_discrepancy),
    )

    logger.debug(
        f"Solution: {stats.placed_count}/{stats.total_campers} placed in {stats.group_count} groups, "
        f"{stats.friend_groups_intact} friend groups intact, {stats.friend_groups_split} split"
    )
    return stats
