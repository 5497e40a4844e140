"""
Grouping Router - Endpoints for the camp grouping workflow.

This router handles:
- Creating a grouping session from a registration roster
- Running auto-grouping and reading the current state
- Validating and committing drag-and-drop moves
- Resolving violations and finalizing
- Adding, renaming and removing groups
- Adding late registrations and removing cancelled campers
"""

from __future__ import annotations

import logging
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from grouping.errors import OperationResult
from grouping.models import CAMP_ID_PATTERN, CampGroup, DropValidation, GroupingState
from grouping.service import GroupingService

from ..dependencies import get_grouping_service
from ..schemas.grouping import (
    AddCamperRequest,
    AddGroupRequest,
    AutoGroupRequest,
    AutoGroupResponse,
    FinalizeRequest,
    ResolveViolationRequest,
    SessionRequest,
    UpdateGroupRequest,
    UpdateGroupsRequest,
    ValidateMoveRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/grouping", tags=["grouping"])

T = TypeVar("T")

ERROR_STATUS_CODES = {
    "validation": 422,
    "not_found": 404,
    "conflict": 409,
    "unavailable": 503,
}

CampId = Annotated[str, Path(description="Camp session ID", pattern=CAMP_ID_PATTERN)]
Service = Annotated[GroupingService, Depends(get_grouping_service)]


def _unwrap(result: OperationResult[T]) -> T:
    """Return the result data or raise the matching HTTPException."""
    if result.error is not None:
        status_code = ERROR_STATUS_CODES.get(result.error.code, 500)
        raise HTTPException(status_code=status_code, detail=result.error.to_dict())
    return result.data  # type: ignore[return-value]


def _overrides(config: Any) -> dict[str, Any] | None:
    return config.model_dump(exclude_none=True) if config is not None else None


# ========================================
# Session
# ========================================


@router.post("/{camp_id}/session")
async def create_session(camp_id: CampId, request: SessionRequest, service: Service) -> GroupingState:
    """Standardize a roster and start (or replace) the camp's grouping session."""
    result = await service.initialize_session(
        camp_id,
        request.campers,
        request.camp_start_date,
        raw_friend_requests=request.friend_requests,
        registration_dates=request.registration_dates,
        cutoff_date=request.cutoff_date,
        config_overrides=_overrides(request.config),
        confirm=request.confirm,
    )
    return _unwrap(result)


@router.get("/{camp_id}")
async def get_grouping(camp_id: CampId, service: Service) -> GroupingState:
    """Current groups, violations and status for a camp."""
    return _unwrap(await service.get_state(camp_id))


# ========================================
# Auto-grouping and moves
# ========================================


@router.post("/{camp_id}/auto")
async def run_auto_grouping(
    camp_id: CampId,
    service: Service,
    request: AutoGroupRequest | None = None,
) -> AutoGroupResponse:
    """Run the solver. Re-running over existing groups requires ``confirm``."""
    request = request or AutoGroupRequest()
    outcome = _unwrap(await service.run_auto_grouping(camp_id, request.confirm, _overrides(request.config)))
    return AutoGroupResponse(
        groups=outcome.state.groups,
        warnings=outcome.warnings,
        stats=outcome.stats,
        status=outcome.state.status.value,
        version=outcome.state.version,
        log_summary=outcome.log_summary,
    )


@router.post("/{camp_id}/validate-move")
async def validate_move(camp_id: CampId, request: ValidateMoveRequest, service: Service) -> DropValidation:
    """Check a drag-and-drop move without committing it."""
    result = await service.validate_move(camp_id, request.camper_id, request.from_group_id, request.to_group_id)
    return _unwrap(result)


@router.post("/{camp_id}/update")
async def update_groups(camp_id: CampId, request: UpdateGroupsRequest, service: Service) -> GroupingState:
    """Commit a batch of camper moves."""
    return _unwrap(await service.commit_moves(camp_id, request.updates, request.user_id))


# ========================================
# Violations and finalization
# ========================================


@router.post("/{camp_id}/violations/{violation_id}/resolve")
async def resolve_violation(
    camp_id: CampId,
    violation_id: Annotated[str, Path(description="Violation ID")],
    request: ResolveViolationRequest,
    service: Service,
) -> GroupingState:
    """Accept a violation with a note."""
    return _unwrap(await service.resolve_violation(camp_id, violation_id, request.note, request.user_id))


@router.post("/{camp_id}/finalize")
async def finalize_grouping(camp_id: CampId, request: FinalizeRequest, service: Service) -> GroupingState:
    """Finalize (lock) or unfinalize the grouping."""
    if request.action == "finalize":
        result = await service.finalize(camp_id, request.user_id)
    else:
        result = await service.unfinalize(camp_id, request.user_id)
    state = _unwrap(result)
    logger.info(f"Camp {camp_id}: {request.action} -> {state.status.value}")
    return state


# ========================================
# Group roster
# ========================================


@router.post("/{camp_id}/group")
async def add_group(camp_id: CampId, request: AddGroupRequest, service: Service) -> CampGroup:
    """Add an empty group with the next display number."""
    return _unwrap(await service.add_group(camp_id, request.name, request.color))


@router.put("/{camp_id}/group")
async def update_group(camp_id: CampId, request: UpdateGroupRequest, service: Service) -> GroupingState:
    """Rename and/or recolour a group."""
    return _unwrap(await service.update_group(camp_id, request.group_id, request.name, request.color))


@router.delete("/{camp_id}/group")
async def remove_group(
    camp_id: CampId,
    group_id: Annotated[str, Query(description="Group to remove")],
    service: Service,
    user_id: Annotated[str | None, Query(description="Who removed the group")] = None,
) -> GroupingState:
    """Remove a group; its campers become ungrouped."""
    return _unwrap(await service.remove_group(camp_id, group_id, user_id))


# ========================================
# Registrations
# ========================================


@router.post("/{camp_id}/campers")
async def add_camper(camp_id: CampId, request: AddCamperRequest, service: Service) -> GroupingState:
    """Add a late registration, placing it into the best existing group."""
    result = await service.add_camper(camp_id, request.camper, request.camp_start_date, request.user_id)
    return _unwrap(result)


@router.delete("/{camp_id}/campers/{camper_id}")
async def remove_camper(
    camp_id: CampId,
    camper_id: Annotated[str, Path(description="Athlete ID of the cancelled registration")],
    service: Service,
    user_id: Annotated[str | None, Query(description="Who removed the camper")] = None,
) -> GroupingState:
    """Remove a camper whose registration was cancelled."""
    return _unwrap(await service.remove_camper(camp_id, camper_id, user_id))
