"""
Grade Spread Constraint - limit the distance between youngest and oldest grade in a group.

Spread is ``max_grade - min_grade`` over campers with a known grade; campers
without a grade (missing date of birth) never cause a violation.
"""

from __future__ import annotations

from grouping.models import CampGroup, ConstraintViolation, GroupingConfig, ViolationSeverity, ViolationType
from grouping.standardization.grades import format_grade_range

from .base import ConstraintContext


def grade_range(grades: list[int]) -> tuple[int | None, int | None]:
    """(min, max) of the given grades, or (None, None) when empty."""
    if not grades:
        return None, None
    return min(grades), max(grades)


def grade_spread(grades: list[int]) -> int:
    """Distance between the highest and lowest grade (0 when fewer than two grades)."""
    low, high = grade_range(grades)
    if low is None or high is None:
        return 0
    return high - low


def has_grade_violation(grades: list[int], config: GroupingConfig) -> bool:
    """Whether the grades exceed ``max_grade_spread``."""
    return grade_spread(grades) > config.max_grade_spread


def fits_grade_window(grades: list[int], unit_grades: list[int], config: GroupingConfig) -> bool:
    """Whether adding ``unit_grades`` to a group with ``grades`` keeps it within the spread limit."""
    return not has_grade_violation(grades + unit_grades, config)


def check_grade_spread(ctx: ConstraintContext, group: CampGroup) -> ConstraintViolation | None:
    """Return a hard violation if the group's grade spread is over the limit."""
    grades = ctx.grades_of(group.camper_ids)
    if not has_grade_violation(grades, ctx.config):
        return None

    low, high = grade_range(grades)
    spread = grade_spread(grades)
    # Youngest and oldest campers are the ones a director would move
    extremes = [cid for cid in group.camper_ids if ctx.grade_of(cid) in (low, high)]

    if ctx.constraint_logger:
        ctx.constraint_logger.log_violation(
            ViolationType.GRADE_SPREAD_EXCEEDED.value,
            f"{group.group_name} spans {spread} grades (max {ctx.config.max_grade_spread})",
            severity="error",
        )

    return ConstraintViolation(
        violation_type=ViolationType.GRADE_SPREAD_EXCEEDED,
        severity=ViolationSeverity.HARD,
        title=f"Group {group.group_number} Exceeds Grade Spread",
        description=(
            f"{group.group_name} spans {format_grade_range(low, high)} ({spread} grades), "
            f"more than the maximum spread of {ctx.config.max_grade_spread}."
        ),
        affected_group_id=group.id,
        affected_camper_ids=extremes,
        suggested_resolution="Move the youngest or oldest camper to another group.",
    )
