"""
Grouping - core logic for assigning camp campers to groups.

This package contains:
- models: Domain models (StandardizedCamper, CampGroup, ConstraintViolation, ...)
- standardization: Roster cleanup, grades and friend-request matching
- graph: Friend-group resolution over the request graph
- solver: Greedy auto-grouping solver and constraint checks
- moves / violations / state_machine / roster: Director workflow operations
- service / store: Async service boundary and session persistence
"""

from grouping.errors import (
    ConflictError,
    GroupingError,
    NotFoundError,
    OperationResult,
    StoreUnavailableError,
    ValidationError,
)
from grouping.models import (
    CampGroup,
    ConstraintViolation,
    DropValidation,
    FriendGroup,
    GroupingConfig,
    GroupingState,
    GroupingStatus,
    MoveRequest,
    StandardizedCamper,
)
from grouping.moves import commit_moves, validate_move
from grouping.solver import AutoGrouper, ConstraintLogger, solve
from grouping.state_machine import finalize, unlock
from grouping.violations import resolve_violation

__all__ = [
    "AutoGrouper",
    "CampGroup",
    "ConflictError",
    "ConstraintLogger",
    "ConstraintViolation",
    "DropValidation",
    "FriendGroup",
    "GroupingConfig",
    "GroupingError",
    "GroupingState",
    "GroupingStatus",
    "MoveRequest",
    "NotFoundError",
    "OperationResult",
    "StandardizedCamper",
    "StoreUnavailableError",
    "ValidationError",
    "commit_moves",
    "finalize",
    "resolve_violation",
    "solve",
    "unlock",
    "validate_move",
]
