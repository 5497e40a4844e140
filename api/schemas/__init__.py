"""
Pydantic schemas for the Huddle API.

Re-exports all schemas for convenient importing.
"""

from __future__ import annotations

from .grouping import (
    AddCamperRequest,
    AddGroupRequest,
    AutoGroupRequest,
    AutoGroupResponse,
    FinalizeRequest,
    GroupingConfigOverrides,
    ResolveViolationRequest,
    SessionRequest,
    UpdateGroupRequest,
    UpdateGroupsRequest,
    ValidateMoveRequest,
)

__all__ = [
    "AddCamperRequest",
    "AddGroupRequest",
    "AutoGroupRequest",
    "AutoGroupResponse",
    "FinalizeRequest",
    "GroupingConfigOverrides",
    "ResolveViolationRequest",
    "SessionRequest",
    "UpdateGroupRequest",
    "UpdateGroupsRequest",
    "ValidateMoveRequest",
]
