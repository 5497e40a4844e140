"""
Group Size Constraint - hard cap on campers per group.

Oversize groups are allowed (the solver never rejects campers); they are
flagged with a hard ``size_exceeded`` violation that blocks finalization.
"""

from __future__ import annotations

from grouping.models import CampGroup, ConstraintViolation, GroupingConfig, ViolationSeverity, ViolationType

from .base import ConstraintContext


def has_size_violation(camper_count: int, config: GroupingConfig) -> bool:
    """Whether a group of ``camper_count`` campers exceeds ``max_group_size``."""
    return camper_count > config.max_group_size


def check_group_size(ctx: ConstraintContext, group: CampGroup) -> ConstraintViolation | None:
    """Return a hard violation if the group is over the size cap."""
    count = len(group.camper_ids)
    if not has_size_violation(count, ctx.config):
        return None

    over_by = count - ctx.config.max_group_size
    if ctx.constraint_logger:
        ctx.constraint_logger.log_violation(
            ViolationType.SIZE_EXCEEDED.value,
            f"{group.group_name} has {count} campers (max {ctx.config.max_group_size})",
            severity="error",
        )

    return ConstraintViolation(
        violation_type=ViolationType.SIZE_EXCEEDED,
        severity=ViolationSeverity.HARD,
        title=f"Group {group.group_number} Exceeds Size Limit",
        description=(
            f"{group.group_name} has {count} campers, {over_by} over the maximum of {ctx.config.max_group_size}."
        ),
        affected_group_id=group.id,
        affected_camper_ids=list(group.camper_ids),
        suggested_resolution="Move some campers to other groups.",
    )
