"""
Violation tracking and the resolution workflow.

Violations are recomputed from group membership after every change. A
director's "accept with note" resolution is carried forward to any
recomputed violation with the same key (type, group, sorted campers), so
accepting a violation is not undone by an unrelated edit. Resolved
violations whose condition has gone away are kept as inactive audit records.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from grouping.errors import ConflictError, NotFoundError, ValidationError
from grouping.models import ConstraintViolation, GroupingState, GroupingStatus
from grouping.solver.constraints.evaluator import evaluate_constraints

logger = logging.getLogger(__name__)


def merge_violations(
    new_violations: list[ConstraintViolation],
    previous: list[ConstraintViolation],
) -> list[ConstraintViolation]:
    """Carry resolutions from ``previous`` onto freshly computed violations.

    Args:
        new_violations: Violations from the latest evaluation
        previous: Violations stored before the change

    Returns:
        Active violations (with resolutions carried forward) followed by
        inactive audit records for resolved violations that no longer occur
    """
    resolved_by_key = {v.key: v for v in previous if v.resolved}
    new_keys = {v.key for v in new_violations}

    merged: list[ConstraintViolation] = []
    for violation in new_violations:
        prior = resolved_by_key.get(violation.key)
        if prior is not None:
            violation = violation.model_copy(
                update={
                    "resolved": True,
                    "resolution_note": prior.resolution_note,
                    "resolved_by": prior.resolved_by,
                    "resolved_at": prior.resolved_at,
                }
            )
        merged.append(violation)

    for key, prior in resolved_by_key.items():
        if key not in new_keys:
            merged.append(prior.model_copy(update={"is_active": False}))

    return merged


def recompute_violations(state: GroupingState) -> GroupingState:
    """Re-evaluate constraints for the state's groups and merge prior resolutions."""
    groups, violations = evaluate_constraints(state.groups, state.campers, state.friend_groups, state.config)
    return state.model_copy(update={"groups": groups, "violations": merge_violations(violations, state.violations)})


def blocking_violations(violations: list[ConstraintViolation]) -> list[ConstraintViolation]:
    """Active, unresolved, hard violations."""
    return [v for v in violations if v.is_blocking]


def count_unresolved_hard(violations: list[ConstraintViolation]) -> int:
    return len(blocking_violations(violations))


def resolve_violation(
    state: GroupingState,
    violation_id: str,
    note: str,
    user_id: str | None = None,
    now: datetime | None = None,
) -> GroupingState:
    """Accept a violation with a note.

    Args:
        state: Current session state
        violation_id: Violation to resolve
        note: Why the violation is acceptable; must not be blank
        user_id: Who resolved it
        now: Resolution time (defaults to the current UTC time)

    Returns:
        New state with the violation marked resolved

    Raises:
        ValidationError: If the note is blank
        NotFoundError: If the violation id is unknown
        ConflictError: If the session is finalized or the violation is no longer active
    """
    if not note or not note.strip():
        raise ValidationError("A resolution note is required to resolve a violation")

    if state.status == GroupingStatus.FINALIZED:
        raise ConflictError("Grouping is finalized; unlock it before resolving violations")

    target = state.get_violation(violation_id)
    if target is None:
        raise NotFoundError(f"Violation '{violation_id}' not found", {"violation_id": violation_id})
    if not target.is_active:
        raise ConflictError(f"Violation '{violation_id}' no longer applies to the current groups")

    resolved_at = now or datetime.now(UTC)
    violations = [
        v.model_copy(
            update={
                "resolved": True,
                "resolution_note": note.strip(),
                "resolved_by": user_id,
                "resolved_at": resolved_at,
            }
        )
        if v.id == violation_id
        else v
        for v in state.violations
    ]

    logger.info(f"Camp {state.camp_id}: violation {violation_id} ({target.title}) resolved by {user_id or 'unknown'}")
    return state.model_copy(update={"violations": violations})
