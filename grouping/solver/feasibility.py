"""
Feasibility checking for the grouping solver.

Pre-solve checks that predict violations the solver cannot avoid. They only
produce warnings: the solver always places every camper.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from grouping.models import FriendGroup, GroupingConfig, StandardizedCamper
from grouping.standardization.grades import format_grade_range

if TYPE_CHECKING:
    from grouping.solver.logging import ConstraintLogger

logger = logging.getLogger(__name__)


def minimum_grade_bands(grades: list[int], max_grade_spread: int) -> int:
    """Fewest groups needed to hold these grades without a grade-spread violation.

    Greedy interval cover over the sorted distinct grades: each band starts at
    the lowest uncovered grade and reaches ``max_grade_spread`` above it.
    """
    bands = 0
    band_start: int | None = None
    for grade in sorted(set(grades)):
        if band_start is None or grade - band_start > max_grade_spread:
            bands += 1
            band_start = grade
    return bands


def check_feasibility(
    campers: list[StandardizedCamper],
    friend_groups: list[FriendGroup],
    config: GroupingConfig,
    num_groups: int,
    constraint_logger: ConstraintLogger,
) -> list[str]:
    """Perform pre-solve feasibility checks and log warnings.

    Args:
        campers: Campers to place
        friend_groups: Friend groups (already analyzed against ``config``)
        config: Grouping configuration
        num_groups: Number of groups the solver will fill
        constraint_logger: Logger for feasibility messages

    Returns:
        The warnings raised by this check
    """
    logger.info("=== Pre-solve Feasibility Check ===")
    start = len(constraint_logger.feasibility_warnings)

    # 1. Total capacity
    total_capacity = num_groups * config.max_group_size
    if len(campers) > total_capacity:
        constraint_logger.log_feasibility_warning(
            f"Total campers ({len(campers)}) exceeds total capacity ({total_capacity} = "
            f"{num_groups} groups x {config.max_group_size}). Some groups will be oversize."
        )
    else:
        logger.info(f"Total capacity check: {len(campers)} campers, {total_capacity} spots available")

    # 2. Friend groups that cannot be placed intact
    for friend_group in friend_groups:
        if friend_group.exceeds_size_constraint:
            constraint_logger.log_feasibility_warning(
                f"Friend group #{friend_group.group_number} has {friend_group.member_count} members, more than "
                f"the maximum group size of {config.max_group_size}; it will be split."
            )
        if friend_group.exceeds_grade_constraint:
            constraint_logger.log_feasibility_warning(
                f"Friend group #{friend_group.group_number} spans "
                f"{format_grade_range(friend_group.min_grade, friend_group.max_grade)}, more than the maximum "
                f"grade spread of {config.max_grade_spread}; it will be split by grade."
            )

    # 3. Grade bands versus number of groups
    grades = [c.grade_validated for c in campers if c.grade_validated is not None]
    bands = minimum_grade_bands(grades, config.max_grade_spread)
    if bands > num_groups:
        constraint_logger.log_feasibility_warning(
            f"Campers span {bands} grade bands of width {config.max_grade_spread} but only {num_groups} "
            f"groups are available; at least one grade-spread violation is unavoidable."
        )

    # 4. Missing grades
    missing = [c.athlete_id for c in campers if c.grade_validated is None]
    if missing:
        constraint_logger.log_feasibility_warning(
            f"{len(missing)} camper(s) have no grade and are excluded from grade-spread checks."
        )

    return constraint_logger.feasibility_warnings[start:]
