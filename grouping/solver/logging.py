"""
Constraint Logger - Logging infrastructure for the solver.

Tracks placement decisions, feasibility warnings, violations, and solver progress
for one solve so they can be returned alongside the result.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any

logger = logging.getLogger(__name__)


class ConstraintLogger:
    """Logger for tracking placement decisions and violations during solving."""

    def __init__(self, debug_mode: bool = False) -> None:
        self.debug_mode = debug_mode
        self.placements: dict[str, list[str]] = defaultdict(list)
        self.violations: dict[str, list[dict[str, str]]] = defaultdict(list)
        self.feasibility_warnings: list[str] = []
        self.solver_progress: list[str] = []

    def log_placement(self, strategy: str, details: str) -> None:
        """Log how a unit was placed ("intact", "split", "repair", ...)."""
        self.placements[strategy].append(details)
        if self.debug_mode:
            logger.debug(f"[PLACEMENT] {strategy}: {details}")

    def log_feasibility_warning(self, warning: str) -> None:
        """Log potential feasibility issues."""
        self.feasibility_warnings.append(warning)
        logger.warning(f"[FEASIBILITY] {warning}")

    def log_violation(self, constraint_type: str, details: str, severity: str = "info") -> None:
        """Log constraint violations found in a solution."""
        self.violations[constraint_type].append({"details": details, "severity": severity})
        if severity == "error":
            logger.error(f"[VIOLATION] {constraint_type}: {details}")
        else:
            logger.info(f"[VIOLATION] {constraint_type}: {details}")

    def log_progress(self, message: str) -> None:
        """Log solver progress."""
        self.solver_progress.append(message)
        if self.debug_mode:
            logger.debug(f"[SOLVER] {message}")

    def get_summary(self) -> dict[str, Any]:
        """Get summary of all logged information."""
        return {
            "placements": {strategy: len(entries) for strategy, entries in self.placements.items()},
            "violations": dict(self.violations),
            "feasibility_warnings": self.feasibility_warnings,
            "solver_progress": self.solver_progress,
        }
