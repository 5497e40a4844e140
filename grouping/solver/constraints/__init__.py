"""
Constraint checks for the grouping solver.

Each module owns one constraint:
- group_size: hard cap on campers per group
- grade_spread: hard limit on grade range within a group
- friend_cohesion: warning when a friend group is split
"""

from __future__ import annotations

from .base import ConstraintContext
from .evaluator import evaluate_constraints, refresh_group_stats
from .friend_cohesion import camper_group_index, check_friend_cohesion, is_split
from .grade_spread import check_grade_spread, fits_grade_window, grade_range, grade_spread, has_grade_violation
from .group_size import check_group_size, has_size_violation

__all__ = [
    "ConstraintContext",
    "camper_group_index",
    "check_friend_cohesion",
    "check_grade_spread",
    "check_group_size",
    "evaluate_constraints",
    "fits_grade_window",
    "grade_range",
    "grade_spread",
    "has_grade_violation",
    "has_size_violation",
    "is_split",
    "refresh_group_stats",
]
