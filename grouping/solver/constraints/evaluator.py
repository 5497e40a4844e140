"""
Constraint evaluation over a full set of groups.

Violations are always recomputed from group membership, never patched.
Carrying user resolutions forward is the job of ``grouping.violations``.
"""

from __future__ import annotations

import logging

from grouping.models import CampGroup, ConstraintViolation, FriendGroup, GroupingConfig, StandardizedCamper

from .base import ConstraintContext
from .friend_cohesion import camper_group_index, check_friend_cohesion, groups_holding
from .grade_spread import check_grade_spread, grade_range, grade_spread, has_grade_violation
from .group_size import check_group_size, has_size_violation

logger = logging.getLogger(__name__)


def refresh_group_stats(ctx: ConstraintContext, groups: list[CampGroup]) -> list[CampGroup]:
    """Return copies of the groups with derived stats and violation flags recomputed."""
    camper_to_group = camper_group_index(groups)
    split_group_ids: set[str] = set()
    for friend_group in ctx.friend_groups:
        holding = groups_holding(friend_group, camper_to_group)
        if len(holding) >= 2:
            split_group_ids |= holding

    refreshed: list[CampGroup] = []
    for group in groups:
        grades = ctx.grades_of(group.camper_ids)
        low, high = grade_range(grades)
        refreshed.append(
            group.model_copy(
                update={
                    "camper_count": len(group.camper_ids),
                    "min_grade": low,
                    "max_grade": high,
                    "grade_spread": grade_spread(grades),
                    "size_violation": has_size_violation(len(group.camper_ids), ctx.config),
                    "grade_violation": has_grade_violation(grades, ctx.config),
                    "friend_violation": group.id in split_group_ids,
                }
            )
        )
    return refreshed


def evaluate_constraints(
    groups: list[CampGroup],
    campers: list[StandardizedCamper],
    friend_groups: list[FriendGroup],
    config: GroupingConfig,
    ctx: ConstraintContext | None = None,
) -> tuple[list[CampGroup], list[ConstraintViolation]]:
    """Evaluate every constraint against the groups.

    Args:
        groups: Current groups
        campers: All campers in the session
        friend_groups: Friend groups from standardization
        config: Grouping configuration
        ctx: Prebuilt context (e.g. one carrying a ConstraintLogger)

    Returns:
        Tuple of (groups with refreshed stats, violations). Violations are
        ordered by group display order (size before grade), then friend splits.
    """
    ctx = ctx or ConstraintContext.build(campers, config, friend_groups)
    refreshed = refresh_group_stats(ctx, groups)

    violations: list[ConstraintViolation] = []
    for group in sorted(refreshed, key=lambda g: g.group_number):
        size_violation = check_group_size(ctx, group)
        if size_violation:
            violations.append(size_violation)
        grade_violation = check_grade_spread(ctx, group)
        if grade_violation:
            violations.append(grade_violation)

    violations.extend(check_friend_cohesion(ctx, refreshed))

    logger.debug(
        f"Evaluated {len(refreshed)} groups: "
        f"{sum(1 for v in violations if v.severity.value == 'hard')} hard, "
        f"{sum(1 for v in violations if v.severity.value == 'warning')} warnings"
    )
    return refreshed, violations
