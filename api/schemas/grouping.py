"""
Pydantic schemas for grouping endpoints.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from grouping.models import CampGroup, GroupingStats, MoveRequest
from grouping.standardization import RawCamper, RawFriendRequest


class GroupingConfigOverrides(BaseModel):
    """Per-run overrides of the configured grouping defaults."""

    max_group_size: int | None = Field(default=None, gt=0)
    max_grade_spread: int | None = Field(default=None, ge=0)
    num_groups: int | None = Field(default=None, ge=1)


class SessionRequest(BaseModel):
    """Roster to standardize into a new grouping session."""

    campers: list[RawCamper]
    camp_start_date: date
    friend_requests: list[RawFriendRequest] = Field(default_factory=list)
    registration_dates: dict[str, datetime] | None = None
    cutoff_date: datetime | date | None = None
    config: GroupingConfigOverrides | None = None
    confirm: bool = False  # Required when replacing a session that has groups


class AutoGroupRequest(BaseModel):
    """Request to run (or re-run) auto-grouping."""

    confirm: bool = False  # Required when re-running over existing assignments
    config: GroupingConfigOverrides | None = None


class AutoGroupResponse(BaseModel):
    """Groups produced by an auto-grouping run."""

    groups: list[CampGroup]
    warnings: list[str]
    stats: GroupingStats
    status: str
    version: int
    log_summary: dict[str, Any] = Field(default_factory=dict)


class ValidateMoveRequest(BaseModel):
    """A hypothetical move to check without committing."""

    camper_id: str
    from_group_id: str | None = None
    to_group_id: str | None = None


class UpdateGroupsRequest(BaseModel):
    """Batch of camper moves from the drag-and-drop board."""

    updates: list[MoveRequest]
    user_id: str | None = None


class ResolveViolationRequest(BaseModel):
    """Director's acceptance of a violation."""

    note: str = Field(min_length=1)
    user_id: str | None = None


class FinalizeRequest(BaseModel):
    """Lock or unlock the grouping."""

    action: Literal["finalize", "unfinalize"]
    user_id: str | None = None


class AddGroupRequest(BaseModel):
    name: str | None = None
    color: str | None = None


class UpdateGroupRequest(BaseModel):
    group_id: str
    name: str | None = None
    color: str | None = None


class AddCamperRequest(BaseModel):
    """A registration received after the roster was loaded."""

    camper: RawCamper
    camp_start_date: date | None = None  # Defaults to the session's camp start
    user_id: str | None = None
