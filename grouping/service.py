"""
Grouping service - the boundary between request handlers and the engine.

Every operation returns an ``OperationResult``: engine errors, pydantic
validation failures and config/store outages are captured as
``GroupingError`` values instead of propagating to the caller. Mutating
operations run through ``GroupingSessionManager`` so they are serialized per
camp and saved with a version check.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from grouping.config import ConfigLoader, ConfigValidationError, DatabaseUnavailableError, UnknownKeyError
from grouping.errors import (
    ConflictError,
    GroupingError,
    OperationResult,
    StoreUnavailableError,
    ValidationError,
)
from grouping.models import (
    CampGroup,
    DropValidation,
    GroupingConfig,
    GroupingState,
    GroupingStats,
    GroupingStatus,
    MoveRequest,
)
from grouping.solver import analyze_solution, solve
from grouping.standardization import RawCamper, RawFriendRequest, standardize_addition, standardize_roster
from grouping.standardization.standardizer import resolve_cutoff

from . import moves as move_ops
from . import registrations, roster, state_machine
from . import violations as violation_ops
from .state_machine import GroupingAction
from .store import GroupingSessionManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AutoGroupingOutcome:
    """Result of an auto-grouping run."""

    state: GroupingState
    stats: GroupingStats
    warnings: list[str] = field(default_factory=list)
    log_summary: dict[str, Any] = field(default_factory=dict)


def _pydantic_error(e: PydanticValidationError) -> ValidationError:
    return ValidationError(
        f"Invalid input: {e.error_count()} validation error(s)",
        {"errors": json.loads(e.json(include_url=False))},
    )


class GroupingService:
    """Async facade over the grouping engine for one store."""

    def __init__(self, manager: GroupingSessionManager, config_loader: ConfigLoader | None = None) -> None:
        self.manager = manager
        self.config_loader = config_loader or ConfigLoader.get_instance()

    async def _guard(self, operation: str, call: Callable[[], Awaitable[T]]) -> OperationResult[T]:
        try:
            return OperationResult.success(await call())
        except GroupingError as e:
            logger.warning(f"{operation} failed ({e.code}): {e.message}")
            return OperationResult.failure(e)
        except PydanticValidationError as e:
            logger.warning(f"{operation} rejected invalid input: {e.error_count()} error(s)")
            return OperationResult.failure(_pydantic_error(e))
        except (ConfigValidationError, UnknownKeyError) as e:
            logger.error(f"{operation} failed on configuration: {e}")
            return OperationResult.failure(ValidationError(f"Invalid configuration: {e}"))
        except DatabaseUnavailableError as e:
            logger.error(f"{operation} failed, configuration database unavailable: {e}")
            return OperationResult.failure(StoreUnavailableError(str(e)))

    def _grouping_config(self, base: GroupingConfig | None, overrides: Mapping[str, Any] | None) -> GroupingConfig:
        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        if base is None:
            return self.config_loader.get_grouping_config(**overrides)
        return GroupingConfig.model_validate({**base.model_dump(), **overrides})

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_state(self, camp_id: str) -> OperationResult[GroupingState]:
        return await self._guard("get_state", lambda: self.manager.load(camp_id))

    async def validate_move(
        self,
        camp_id: str,
        camper_id: str,
        from_group_id: str | None,
        to_group_id: str | None,
    ) -> OperationResult[DropValidation]:
        """Check a move against the current state; takes no lock and saves nothing."""

        async def call() -> DropValidation:
            state = await self.manager.load(camp_id)
            return move_ops.validate_move(camper_id, from_group_id, to_group_id, state)

        return await self._guard("validate_move", call)

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def initialize_session(
        self,
        camp_id: str,
        raw_campers: Sequence[RawCamper | Mapping[str, object]],
        camp_start_date: date,
        raw_friend_requests: Iterable[RawFriendRequest | tuple[str, str]] | None = None,
        registration_dates: Mapping[str, datetime] | None = None,
        cutoff_date: date | datetime | None = None,
        config_overrides: Mapping[str, Any] | None = None,
        confirm: bool = False,
    ) -> OperationResult[GroupingState]:
        """Standardize a roster and create (or replace) the camp's session.

        Replacing a session that has groups discards every assignment and
        resolution, so it requires ``confirm=True``. A finalized session is
        never replaced.
        """

        async def call() -> GroupingState:
            config = self._grouping_config(None, config_overrides)
            options = self.config_loader.get_standardization_options()
            result = standardize_roster(
                raw_campers,
                raw_friend_requests,
                registration_dates,
                cutoff_date,
                camp_start_date,
                options=options,
                config=config,
            )
            cutoff = resolve_cutoff(cutoff_date, camp_start_date, options.late_registration_days)

            def build(existing: GroupingState | None) -> GroupingState:
                if existing is not None:
                    state_machine.ensure_editable(existing)
                    if existing.status != GroupingStatus.PENDING and not confirm:
                        raise ConflictError(
                            "Replacing the roster discards all current groups; pass confirm=true to proceed",
                            details={"status": existing.status.value, "requires_confirm": True},
                        )
                return GroupingState(
                    camp_id=camp_id,
                    status=GroupingStatus.PENDING,
                    config=config,
                    campers=result.campers,
                    friend_groups=result.friend_groups,
                    standardization_warnings=result.warnings,
                    camp_start_date=camp_start_date,
                    late_registration_cutoff=cutoff,
                )

            state = await self.manager.replace(camp_id, build)
            logger.info(
                f"Camp {camp_id}: session initialized with {len(result.campers)} campers, "
                f"{len(result.friend_groups)} friend groups, {len(result.warnings)} camper(s) with warnings"
            )
            return state

        return await self._guard("initialize_session", call)

    async def run_auto_grouping(
        self,
        camp_id: str,
        confirm: bool = False,
        config_overrides: Mapping[str, Any] | None = None,
    ) -> OperationResult[AutoGroupingOutcome]:
        """Run the solver for a camp.

        The first run needs no confirmation. Re-running replaces every
        assignment, including manual moves, so it requires ``confirm=True``.
        Existing groups (names, colours, ids) are refilled unless the group
        count changes. Resolutions carry forward to identical violations.
        """

        def run(state: GroupingState) -> tuple[GroupingState, AutoGroupingOutcome]:
            action = GroupingAction.RUN if state.status == GroupingStatus.PENDING else GroupingAction.RERUN
            new_status = state_machine.next_status(state.status, action)
            if action == GroupingAction.RERUN and not confirm:
                raise ConflictError(
                    "Re-running auto-grouping replaces all current assignments; pass confirm=true to proceed",
                    details={"status": state.status.value, "requires_confirm": True},
                )

            config = self._grouping_config(state.config, config_overrides)
            target_count = config.resolve_num_groups(len(state.campers))
            existing = state.groups if state.groups and len(state.groups) == target_count else None

            result = solve(state.campers, config, state.friend_groups, groups=existing)
            merged = violation_ops.merge_violations(result.violations, state.violations)
            new_state = state.model_copy(
                update={
                    "status": new_status,
                    "config": config,
                    "friend_groups": result.friend_groups,
                    "groups": result.groups,
                    "violations": merged,
                    "assignment_log": [*state.assignment_log, *result.assignments],
                    "run_at": datetime.now(UTC),
                }
            )
            outcome = AutoGroupingOutcome(
                state=new_state,
                stats=analyze_solution(new_state.groups, new_state.campers, new_state.friend_groups, merged),
                warnings=result.warnings,
                log_summary=result.log_summary,
            )
            return new_state, outcome

        async def call() -> AutoGroupingOutcome:
            saved, outcome = await self.manager.mutate_with(camp_id, run)
            outcome.state = saved
            return outcome

        result = await self._guard("run_auto_grouping", call)
        if result.ok and result.data is not None:
            result.warnings = list(result.data.warnings)
        return result

    # =========================================================================
    # Edits
    # =========================================================================

    async def commit_moves(
        self,
        camp_id: str,
        moves: Sequence[MoveRequest | Mapping[str, Any]],
        user_id: str | None = None,
    ) -> OperationResult[GroupingState]:
        async def call() -> GroupingState:
            requests = [m if isinstance(m, MoveRequest) else MoveRequest.model_validate(m) for m in moves]
            return await self.manager.mutate(camp_id, lambda s: move_ops.commit_moves(s, requests, user_id))

        return await self._guard("commit_moves", call)

    async def resolve_violation(
        self,
        camp_id: str,
        violation_id: str,
        note: str,
        user_id: str | None = None,
    ) -> OperationResult[GroupingState]:
        return await self._guard(
            "resolve_violation",
            lambda: self.manager.mutate(
                camp_id, lambda s: violation_ops.resolve_violation(s, violation_id, note, user_id)
            ),
        )

    async def finalize(self, camp_id: str, user_id: str | None = None) -> OperationResult[GroupingState]:
        return await self._guard(
            "finalize", lambda: self.manager.mutate(camp_id, lambda s: state_machine.finalize(s, user_id))
        )

    async def unfinalize(self, camp_id: str, user_id: str | None = None) -> OperationResult[GroupingState]:
        return await self._guard(
            "unfinalize", lambda: self.manager.mutate(camp_id, lambda s: state_machine.unlock(s, user_id))
        )

    async def add_group(
        self,
        camp_id: str,
        name: str | None = None,
        color: str | None = None,
    ) -> OperationResult[CampGroup]:
        async def call() -> CampGroup:
            _, group = await self.manager.mutate_with(camp_id, lambda s: roster.add_group(s, name, color))
            return group

        return await self._guard("add_group", call)

    async def update_group(
        self,
        camp_id: str,
        group_id: str,
        name: str | None = None,
        color: str | None = None,
    ) -> OperationResult[GroupingState]:
        return await self._guard(
            "update_group",
            lambda: self.manager.mutate(camp_id, lambda s: roster.update_group(s, group_id, name, color)),
        )

    async def remove_group(
        self,
        camp_id: str,
        group_id: str,
        user_id: str | None = None,
    ) -> OperationResult[GroupingState]:
        return await self._guard(
            "remove_group",
            lambda: self.manager.mutate(camp_id, lambda s: roster.remove_group(s, group_id, user_id)),
        )

    async def add_camper(
        self,
        camp_id: str,
        raw_camper: RawCamper | Mapping[str, object],
        camp_start_date: date | None = None,
        user_id: str | None = None,
    ) -> OperationResult[GroupingState]:
        """Add a late registration to an existing session.

        The camper is standardized against the session's roster, camp start
        date and late-registration cutoff, then placed into the best existing
        group when the session has been grouped.
        """

        def add(state: GroupingState) -> GroupingState:
            start = camp_start_date or state.camp_start_date
            if start is None:
                raise ValidationError("camp_start_date is required; the session does not record one")
            options = self.config_loader.get_standardization_options()
            existing, camper, warnings = standardize_addition(
                raw_camper,
                state.campers,
                start,
                cutoff_date=state.late_registration_cutoff,
                options=options,
            )
            new_state, _ = registrations.add_camper(
                state,
                camper,
                existing=existing,
                warnings=warnings,
                require_mutual=options.require_mutual_requests,
                user_id=user_id,
            )
            return new_state

        return await self._guard("add_camper", lambda: self.manager.mutate(camp_id, add))

    async def remove_camper(
        self,
        camp_id: str,
        camper_id: str,
        user_id: str | None = None,
    ) -> OperationResult[GroupingState]:
        """Remove a camper whose registration was cancelled."""

        def remove(state: GroupingState) -> GroupingState:
            options = self.config_loader.get_standardization_options()
            return registrations.remove_camper(
                state, camper_id, require_mutual=options.require_mutual_requests, user_id=user_id
            )

        return await self._guard("remove_camper", lambda: self.manager.mutate(camp_id, remove))
