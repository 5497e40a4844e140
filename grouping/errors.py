"""Grouping engine error classes and the result wrapper used at the service boundary.

Engine functions raise these errors internally; ``grouping.service`` catches
them and returns an ``OperationResult`` so request handlers never see an
exception escape the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class GroupingError(Exception):
    """Base exception for grouping engine errors."""

    code = "grouping_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class ValidationError(GroupingError):
    """Raised for malformed input or bad configuration (e.g. max_group_size <= 0)."""

    code = "validation"


class NotFoundError(GroupingError):
    """Raised when a camp, group, camper or violation id is unknown."""

    code = "not_found"


class ConflictError(GroupingError):
    """Raised for invalid state transitions and concurrent modification.

    Finalize rejections carry the ids of the violations that block them.
    """

    code = "conflict"

    def __init__(
        self,
        message: str,
        blocking_violation_ids: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.blocking_violation_ids = blocking_violation_ids or []
        merged = dict(details or {})
        if self.blocking_violation_ids:
            merged["blocking_violation_ids"] = self.blocking_violation_ids
        super().__init__(message, merged)


class StoreUnavailableError(GroupingError):
    """Raised when the session store cannot be reached."""

    code = "unavailable"


@dataclass
class OperationResult(Generic[T]):
    """Outcome of a service operation: either ``data`` or ``error`` is set."""

    data: T | None = None
    error: GroupingError | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: T, warnings: list[str] | None = None) -> OperationResult[T]:
        return cls(data=data, warnings=warnings or [])

    @classmethod
    def failure(cls, error: GroupingError) -> OperationResult[T]:
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the data or re-raise the captured error."""
        if self.error is not None:
            raise self.error
        return self.data  # type: ignore[return-value]
