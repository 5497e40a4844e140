"""
Grouping solver - greedy placement of campers into groups.

This package contains:
- AutoGrouper: Greedy constructive solver with a local repair pass
- ConstraintLogger: Logging for placement decisions and violations
- Constraint checks: group size, grade spread, friend cohesion
- Feasibility: Pre-solve capacity and grade-band warnings
- Solution analysis: Post-solve statistics
"""

from .auto_grouper import AutoGrouper, PlacementUnit, SolveResult, solve
from .feasibility import check_feasibility, minimum_grade_bands
from .logging import ConstraintLogger
from .solution import analyze_solution

__all__ = [
    "AutoGrouper",
    "ConstraintLogger",
    "PlacementUnit",
    "SolveResult",
    "analyze_solution",
    "check_feasibility",
    "minimum_grade_bands",
    "solve",
]
