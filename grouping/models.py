"""
Domain models for the grouping engine.

Every record the engine reads or produces is a pydantic model so that the
whole session state can be persisted as JSON and returned from the API
without a separate mapping layer.
"""

from __future__ import annotations

import math
from datetime import UTC, date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from grouping.utils.content_hash import stable_id

# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_MAX_GROUP_SIZE = 12
DEFAULT_MAX_GRADE_SPREAD = 2

# Camp ids are interpolated into PocketBase filters
CAMP_ID_PATTERN = r"^[A-Za-z0-9_-]+$"

GROUP_NAMES = [
    "Lightning",
    "Thunder",
    "Storm",
    "Blaze",
    "Phoenix",
    "Titans",
    "Falcons",
    "Panthers",
    "Vipers",
    "Wolves",
]

GROUP_COLORS = [
    "#CCFF00",
    "#FF2DCE",
    "#6F00D8",
    "#22C55E",
    "#F59E0B",
    "#06B6D4",
    "#EC4899",
    "#8B5CF6",
    "#10B981",
    "#F97316",
]


def default_group_name(group_number: int) -> str:
    """Name for a group by display number, falling back to "Group N" past the palette."""
    if 1 <= group_number <= len(GROUP_NAMES):
        return GROUP_NAMES[group_number - 1]
    return f"Group {group_number}"


def default_group_color(group_number: int) -> str:
    """Colour for a group by display number (palette wraps around)."""
    return GROUP_COLORS[(group_number - 1) % len(GROUP_COLORS)]


# =============================================================================
# ENUMS
# =============================================================================


class GroupingStatus(str, Enum):
    PENDING = "pending"
    AUTO_GROUPED = "auto_grouped"
    REVIEWED = "reviewed"
    FINALIZED = "finalized"


class ViolationType(str, Enum):
    SIZE_EXCEEDED = "size_exceeded"
    GRADE_SPREAD_EXCEEDED = "grade_spread_exceeded"
    FRIEND_GROUP_SPLIT = "friend_group_split"


class ViolationSeverity(str, Enum):
    HARD = "hard"
    WARNING = "warning"


class AssignmentType(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"
    OVERRIDE = "override"


# =============================================================================
# CONFIGURATION
# =============================================================================


class GroupingConfig(BaseModel):
    """Per-run grouping configuration. Changing it requires a rerun."""

    model_config = ConfigDict(frozen=True)

    max_group_size: int = Field(default=DEFAULT_MAX_GROUP_SIZE, gt=0)
    max_grade_spread: int = Field(default=DEFAULT_MAX_GRADE_SPREAD, ge=0)
    num_groups: int | None = Field(default=None, ge=1)

    def resolve_num_groups(self, camper_count: int) -> int:
        """Number of groups to create for a roster of the given size.

        Uses the explicit ``num_groups`` when set, otherwise enough groups to
        hold every camper at ``max_group_size``.
        """
        if self.num_groups is not None:
            return self.num_groups
        return max(1, math.ceil(camper_count / self.max_group_size))


# =============================================================================
# CAMPERS AND FRIEND GROUPS
# =============================================================================


class StandardizedCamper(BaseModel):
    """Canonical camper-session record consumed by the solver and UI."""

    athlete_id: str
    registration_id: str | None = None
    first_name: str = ""
    last_name: str = ""
    full_name: str
    date_of_birth: date | None = None

    # Grades: -1 = Pre-K, 0 = K, 1..12
    grade_from_registration: str | None = None  # Raw text entered by the parent
    grade_reported: int | None = None  # Parsed parent grade
    grade_computed_from_dob: int | None = None
    grade_validated: int | None = None  # Authoritative grade used for grouping
    grade_display: str = ""
    grade_discrepancy: bool = False

    age_at_camp_start: int | None = None
    age_months_at_camp_start: int | None = None

    friend_requests: list[str] = Field(default_factory=list)  # Normalized names
    friend_request_athlete_ids: list[str] = Field(default_factory=list)
    friend_group_id: str | None = None
    friend_group_number: int | None = None
    squad_id: str | None = None  # Read-only to the engine

    registered_at: datetime | None = None
    is_late_registration: bool = False

    # Surfaced to directors, never used by constraints
    medical_notes: str | None = None
    allergies: str | None = None
    special_considerations: str | None = None
    leadership_potential: bool = False


class FriendGroup(BaseModel):
    """Transitively closed set of campers who asked to be placed together."""

    id: str
    group_number: int
    member_ids: list[str]
    min_grade: int | None = None
    max_grade: int | None = None
    exceeds_size_constraint: bool = False
    exceeds_grade_constraint: bool = False
    placement_notes: str | None = None

    @property
    def member_count(self) -> int:
        return len(self.member_ids)

    @property
    def grade_spread(self) -> int:
        if self.min_grade is None or self.max_grade is None:
            return 0
        return self.max_grade - self.min_grade

    @property
    def can_be_placed_intact(self) -> bool:
        return not (self.exceeds_size_constraint or self.exceeds_grade_constraint)

    @staticmethod
    def make_id(member_ids: list[str]) -> str:
        """Stable id derived from the sorted member ids."""
        return stable_id("fg", member_ids)


# =============================================================================
# GROUPS
# =============================================================================


class CampGroup(BaseModel):
    """One bucket of campers for a camp session.

    Stats and violation flags are derived; they are refreshed by the
    constraint evaluator whenever membership changes.
    """

    id: str
    group_number: int
    group_name: str
    group_color: str
    camper_ids: list[str] = Field(default_factory=list)

    camper_count: int = 0
    min_grade: int | None = None
    max_grade: int | None = None
    grade_spread: int = 0

    size_violation: bool = False
    grade_violation: bool = False
    friend_violation: bool = False

    @field_validator("camper_ids")
    @classmethod
    def validate_unique_campers(cls, v: list[str]) -> list[str]:
        """A camper may appear in a group at most once."""
        if len(set(v)) != len(v):
            raise ValueError("camper_ids must not contain duplicates")
        return v

    @classmethod
    def create(cls, group_number: int, group_id: str | None = None) -> CampGroup:
        """Empty group with the default name and colour for its display number."""
        return cls(
            id=group_id or f"group-{group_number}",
            group_number=group_number,
            group_name=default_group_name(group_number),
            group_color=default_group_color(group_number),
        )


# =============================================================================
# VIOLATIONS AND AUDIT TRAIL
# =============================================================================


class ConstraintViolation(BaseModel):
    """A constraint breach found by evaluation.

    The ``id`` is derived from ``key`` (type, group and sorted campers), so the
    same underlying condition always yields the same id across recomputes.
    """

    id: str = ""
    violation_type: ViolationType
    severity: ViolationSeverity
    title: str
    description: str = ""
    affected_group_id: str | None = None
    affected_camper_ids: list[str] = Field(default_factory=list)
    affected_friend_group_id: str | None = None
    suggested_resolution: str = ""

    resolved: bool = False
    resolution_note: str | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None

    # False for resolved violations kept for audit after their condition went away
    is_active: bool = True

    @property
    def key(self) -> str:
        camper_part = ",".join(sorted(self.affected_camper_ids))
        return f"{self.violation_type.value}|{self.affected_group_id or ''}|{camper_part}"

    @property
    def is_blocking(self) -> bool:
        """Whether this violation prevents finalization."""
        return self.is_active and not self.resolved and self.severity == ViolationSeverity.HARD

    @model_validator(mode="after")
    def assign_stable_id(self) -> ConstraintViolation:
        if not self.id:
            self.id = stable_id("v", [self.key], length=16)
        return self


class GroupAssignmentRecord(BaseModel):
    """Audit entry for a camper being placed in, or moved between, groups."""

    camper_id: str
    from_group_id: str | None = None
    to_group_id: str | None = None
    assignment_type: AssignmentType
    reason: str | None = None
    caused_size_violation: bool = False
    caused_grade_violation: bool = False
    caused_friend_violation: bool = False
    override_acknowledged: bool = False
    override_note: str | None = None
    assigned_by: str | None = None
    assigned_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# =============================================================================
# MOVES
# =============================================================================


class MoveRequest(BaseModel):
    """A camper-to-group move. ``to_group_id=None`` moves the camper to ungrouped."""

    camper_id: str
    from_group_id: str | None = None
    to_group_id: str | None = None
    override_acknowledged: bool = False
    override_note: str | None = None


class NewGroupState(BaseModel):
    """Hypothetical stats of the target group after a move."""

    size: int
    grade_spread: int
    min_grade: int | None = None
    max_grade: int | None = None


class DropValidation(BaseModel):
    """Result of checking a proposed move without committing it."""

    allowed: bool
    violations: list[ViolationType] = Field(default_factory=list)
    new_group_state: NewGroupState | None = None
    reasons: list[str] = Field(default_factory=list)
    splits_friend_group: bool = False


# =============================================================================
# STATISTICS
# =============================================================================


class GroupingStats(BaseModel):
    """Summary statistics for a set of groups."""

    total_campers: int = 0
    placed_count: int = 0
    unplaced_count: int = 0
    group_count: int = 0
    group_sizes: list[int] = Field(default_factory=list)
    friend_groups_total: int = 0
    friend_groups_intact: int = 0
    friend_groups_split: int = 0
    hard_violations: int = 0
    warnings: int = 0
    unresolved_hard_violations: int = 0
    late_registrations: int = 0
    grade_discrepancies: int = 0


# =============================================================================
# SESSION STATE
# =============================================================================


class GroupingState(BaseModel):
    """Complete state of one camp's grouping session.

    Engine operations take a state and return a new one; nothing in the
    engine holds session state between calls.
    """

    camp_id: str
    status: GroupingStatus = GroupingStatus.PENDING
    config: GroupingConfig = Field(default_factory=GroupingConfig)
    campers: list[StandardizedCamper] = Field(default_factory=list)
    friend_groups: list[FriendGroup] = Field(default_factory=list)
    groups: list[CampGroup] = Field(default_factory=list)
    violations: list[ConstraintViolation] = Field(default_factory=list)
    assignment_log: list[GroupAssignmentRecord] = Field(default_factory=list)
    standardization_warnings: dict[str, list[str]] = Field(default_factory=dict)
    camp_start_date: date | None = None
    late_registration_cutoff: datetime | None = None

    version: int = 0
    run_at: datetime | None = None
    finalized_at: datetime | None = None
    finalized_by: str | None = None

    def camper_by_id(self) -> dict[str, StandardizedCamper]:
        return {c.athlete_id: c for c in self.campers}

    def get_camper(self, camper_id: str) -> StandardizedCamper | None:
        return next((c for c in self.campers if c.athlete_id == camper_id), None)

    def get_group(self, group_id: str) -> CampGroup | None:
        return next((g for g in self.groups if g.id == group_id), None)

    def get_violation(self, violation_id: str) -> ConstraintViolation | None:
        return next((v for v in self.violations if v.id == violation_id), None)

    def get_friend_group(self, friend_group_id: str) -> FriendGroup | None:
        return next((fg for fg in self.friend_groups if fg.id == friend_group_id), None)

    def group_of(self, camper_id: str) -> CampGroup | None:
        """The group currently holding a camper, or None when ungrouped."""
        return next((g for g in self.groups if camper_id in g.camper_ids), None)

    @property
    def ungrouped_camper_ids(self) -> list[str]:
        placed = {cid for g in self.groups for cid in g.camper_ids}
        return [c.athlete_id for c in self.campers if c.athlete_id not in placed]

    @property
    def active_violations(self) -> list[ConstraintViolation]:
        return [v for v in self.violations if v.is_active]
