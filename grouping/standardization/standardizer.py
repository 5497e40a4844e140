"""
Camper standardization.

Turns raw registration records into ``StandardizedCamper`` records:

1. Age at camp start and grade computed from date of birth
2. Parent-reported grade parsed and compared (discrepancy flag)
3. Late registration flag against a cutoff
4. Friend requests matched to the roster and clustered into friend groups
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta

from pydantic import BaseModel

from grouping.errors import ValidationError
from grouping.graph.friend_groups import resolve_friend_groups
from grouping.models import FriendGroup, GroupingConfig, StandardizedCamper

from .friend_requests import RosterEntry, match_friend_requests, parse_friend_requests
from .grades import (
    calculate_age_at_date,
    calculate_age_months_at_date,
    compute_grade_from_dob,
    describe_grade_discrepancy,
    detect_grade_discrepancy,
    format_grade,
    parse_grade,
)

logger = logging.getLogger(__name__)


class RawCamper(BaseModel):
    """Registration record as received from the roster collaborator."""

    athlete_id: str
    registration_id: str | None = None
    first_name: str
    last_name: str
    date_of_birth: date | None = None
    grade_from_registration: str | None = None
    friend_requests: str | list[str] | None = None  # Names as entered by the parent
    registered_at: datetime | None = None
    squad_id: str | None = None
    medical_notes: str | None = None
    allergies: str | None = None
    special_considerations: str | None = None
    leadership_potential: bool = False


class RawFriendRequest(BaseModel):
    """An explicit friend request between two known athletes."""

    requester_id: str
    requested_id: str


@dataclass
class StandardizationOptions:
    """Tunables for standardization (see ``grouping.config.schema``)."""

    school_year_cutoff_month: int = 9
    late_registration_days: int = 7
    grade_discrepancy_tolerance: int = 0
    require_mutual_requests: bool = False


@dataclass
class StandardizationResult:
    """Standardized campers plus friend groups and per-camper review warnings."""

    campers: list[StandardizedCamper]
    friend_groups: list[FriendGroup]
    warnings: dict[str, list[str]] = field(default_factory=dict)

    @property
    def solo_camper_ids(self) -> list[str]:
        return [c.athlete_id for c in self.campers if c.friend_group_id is None]


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)


def resolve_cutoff(
    cutoff_date: date | datetime | None,
    camp_start_date: date,
    late_registration_days: int,
) -> datetime:
    """Instant after which a registration counts as late.

    A datetime cutoff is used as-is. A plain date includes the whole day.
    Without a cutoff, registrations from ``late_registration_days`` before
    camp start onward are late.
    """
    if isinstance(cutoff_date, datetime):
        return _as_utc(cutoff_date)
    if isinstance(cutoff_date, date):
        return datetime.combine(cutoff_date, time.max, tzinfo=UTC)
    derived = camp_start_date - timedelta(days=late_registration_days)
    return datetime.combine(derived, time.min, tzinfo=UTC)


def _standardize_one(
    raw: RawCamper,
    registered_at: datetime | None,
    cutoff: datetime,
    camp_start_date: date,
    roster: Sequence[RosterEntry],
    options: StandardizationOptions,
) -> tuple[StandardizedCamper, list[str]]:
    warnings: list[str] = []

    grade_reported = parse_grade(raw.grade_from_registration)
    if raw.grade_from_registration and grade_reported is None:
        warnings.append(f"Could not parse reported grade '{raw.grade_from_registration}'")

    age_years: int | None = None
    age_months: int | None = None
    grade_computed: int | None = None
    if raw.date_of_birth is not None:
        age_years = calculate_age_at_date(raw.date_of_birth, camp_start_date)
        age_months = calculate_age_months_at_date(raw.date_of_birth, camp_start_date)
        grade_computed = compute_grade_from_dob(raw.date_of_birth, camp_start_date, options.school_year_cutoff_month)
    else:
        warnings.append("Missing date of birth; grade is unknown and excluded from grade-spread checks")

    discrepancy = detect_grade_discrepancy(grade_reported, grade_computed, options.grade_discrepancy_tolerance)
    if discrepancy:
        warnings.append(describe_grade_discrepancy(grade_reported, grade_computed, age_years))  # type: ignore[arg-type]

    friend_names = parse_friend_requests(raw.friend_requests)
    matched_ids, unmatched = match_friend_requests(friend_names, roster, raw.athlete_id)
    if unmatched:
        warnings.append(f"{len(unmatched)} friend request(s) could not be matched to registered campers")

    is_late = registered_at is not None and _as_utc(registered_at) > cutoff
    if is_late:
        warnings.append("Late registration")

    camper = StandardizedCamper(
        athlete_id=raw.athlete_id,
        registration_id=raw.registration_id,
        first_name=raw.first_name,
        last_name=raw.last_name,
        full_name=f"{raw.first_name} {raw.last_name}".strip(),
        date_of_birth=raw.date_of_birth,
        grade_from_registration=raw.grade_from_registration,
        grade_reported=grade_reported,
        grade_computed_from_dob=grade_computed,
        grade_validated=grade_computed,
        grade_display=format_grade(grade_computed),
        grade_discrepancy=discrepancy,
        age_at_camp_start=age_years,
        age_months_at_camp_start=age_months,
        friend_requests=friend_names,
        friend_request_athlete_ids=matched_ids,
        squad_id=raw.squad_id,
        registered_at=registered_at,
        is_late_registration=is_late,
        medical_notes=raw.medical_notes,
        allergies=raw.allergies,
        special_considerations=raw.special_considerations,
        leadership_potential=raw.leadership_potential,
    )
    return camper, warnings


def _record_explicit_requests(
    campers: list[StandardizedCamper],
    explicit_pairs: Iterable[tuple[str, str]],
) -> list[StandardizedCamper]:
    """Add explicit (requester, requested) pairs to the requester's matched ids.

    Keeping every request on the camper lets friend groups be rebuilt from
    the roster alone when campers are added or removed later.
    """
    known = {c.athlete_id for c in campers}
    extra: dict[str, list[str]] = {}
    for requester, requested in explicit_pairs:
        if requester == requested or requester not in known or requested not in known:
            logger.debug(f"Dropping friend request {requester} -> {requested}: camper not on roster")
            continue
        extra.setdefault(requester, []).append(requested)

    updated: list[StandardizedCamper] = []
    for camper in campers:
        additions = [a for a in extra.get(camper.athlete_id, []) if a not in camper.friend_request_athlete_ids]
        if additions:
            ids = list(dict.fromkeys([*camper.friend_request_athlete_ids, *additions]))
            camper = camper.model_copy(update={"friend_request_athlete_ids": ids})
        updated.append(camper)
    return updated


def standardize_roster(
    raw_campers: Sequence[RawCamper | Mapping[str, object]],
    raw_friend_requests: Iterable[RawFriendRequest | tuple[str, str]] | None,
    registration_dates: Mapping[str, datetime] | None,
    cutoff_date: date | datetime | None,
    camp_start_date: date,
    options: StandardizationOptions | None = None,
    config: GroupingConfig | None = None,
) -> StandardizationResult:
    """Standardize a full roster and resolve friend groups.

    Args:
        raw_campers: Registration records (models or dicts)
        raw_friend_requests: Explicit athlete-id friend requests, in addition
            to names typed on each registration
        registration_dates: athlete_id -> registration time, overriding ``registered_at``
        cutoff_date: Late-registration cutoff; derived from camp start when None
        camp_start_date: First day of camp
        options: Standardization tunables
        config: Optional grouping config used to flag unplaceable friend groups

    Returns:
        StandardizationResult

    Raises:
        ValidationError: If a record is malformed or an athlete id repeats
    """
    options = options or StandardizationOptions()
    registration_dates = registration_dates or {}

    try:
        parsed = [raw if isinstance(raw, RawCamper) else RawCamper.model_validate(raw) for raw in raw_campers]
    except ValueError as e:
        raise ValidationError(f"Malformed camper record: {e}") from e

    counts = Counter(r.athlete_id for r in parsed)
    duplicates = sorted(athlete_id for athlete_id, count in counts.items() if count > 1)
    if duplicates:
        raise ValidationError(f"Duplicate athlete ids in roster: {duplicates}", {"athlete_ids": duplicates})

    cutoff = resolve_cutoff(cutoff_date, camp_start_date, options.late_registration_days)
    roster = [RosterEntry(r.athlete_id, r.first_name, r.last_name) for r in parsed]

    campers: list[StandardizedCamper] = []
    warnings: dict[str, list[str]] = {}
    for raw in parsed:
        registered_at = registration_dates.get(raw.athlete_id, raw.registered_at)
        camper, camper_warnings = _standardize_one(raw, registered_at, cutoff, camp_start_date, roster, options)
        campers.append(camper)
        if camper_warnings:
            warnings[raw.athlete_id] = camper_warnings

    explicit_pairs = [
        (req.requester_id, req.requested_id) if isinstance(req, RawFriendRequest) else (req[0], req[1])
        for req in (raw_friend_requests or [])
    ]
    campers = _record_explicit_requests(campers, explicit_pairs)
    campers, friend_groups = resolve_friend_groups(
        campers,
        require_mutual=options.require_mutual_requests,
        config=config,
    )

    logger.info(
        f"Standardized {len(campers)} campers: {len(friend_groups)} friend groups, "
        f"{sum(c.grade_discrepancy for c in campers)} grade discrepancies, "
        f"{sum(c.is_late_registration for c in campers)} late registrations"
    )
    return StandardizationResult(campers=campers, friend_groups=friend_groups, warnings=warnings)


def standardize(
    raw_campers: Sequence[RawCamper | Mapping[str, object]],
    raw_friend_requests: Iterable[RawFriendRequest | tuple[str, str]] | None,
    registration_dates: Mapping[str, datetime] | None,
    cutoff_date: date | datetime | None,
    camp_start_date: date,
    options: StandardizationOptions | None = None,
) -> list[StandardizedCamper]:
    """Standardize a roster, returning only the campers (see ``standardize_roster``)."""
    return standardize_roster(
        raw_campers, raw_friend_requests, registration_dates, cutoff_date, camp_start_date, options
    ).campers


def standardize_addition(
    raw_camper: RawCamper | Mapping[str, object],
    existing: Sequence[StandardizedCamper],
    camp_start_date: date,
    cutoff_date: date | datetime | None = None,
    options: StandardizationOptions | None = None,
    now: datetime | None = None,
) -> tuple[list[StandardizedCamper], StandardizedCamper, list[str]]:
    """Standardize one registration arriving after the roster was loaded.

    The newcomer's friend requests are matched against the whole roster, and
    existing campers whose typed requests now match the newcomer gain that
    link. Without ``registered_at`` the registration counts as made ``now``.

    Args:
        raw_camper: The new registration record
        existing: Campers already in the session
        camp_start_date: First day of camp
        cutoff_date: Late-registration cutoff; derived from camp start when None
        options: Standardization tunables
        now: Registration time used when the record has none

    Returns:
        Tuple of (existing campers with new friend links, new camper, its warnings)

    Raises:
        ValidationError: If the record is malformed or the athlete is already registered
    """
    options = options or StandardizationOptions()
    try:
        parsed = raw_camper if isinstance(raw_camper, RawCamper) else RawCamper.model_validate(raw_camper)
    except ValueError as e:
        raise ValidationError(f"Malformed camper record: {e}") from e

    if any(c.athlete_id == parsed.athlete_id for c in existing):
        raise ValidationError(
            f"Athlete '{parsed.athlete_id}' is already in this session", {"athlete_ids": [parsed.athlete_id]}
        )

    roster = [RosterEntry(c.athlete_id, c.first_name, c.last_name) for c in existing]
    roster.append(RosterEntry(parsed.athlete_id, parsed.first_name, parsed.last_name))
    cutoff = resolve_cutoff(cutoff_date, camp_start_date, options.late_registration_days)
    registered_at = parsed.registered_at or now or datetime.now(UTC)

    camper, warnings = _standardize_one(parsed, registered_at, cutoff, camp_start_date, roster, options)

    updated: list[StandardizedCamper] = []
    for other in existing:
        matched, _ = match_friend_requests(other.friend_requests, roster, other.athlete_id)
        if parsed.athlete_id in matched and parsed.athlete_id not in other.friend_request_athlete_ids:
            other = other.model_copy(
                update={"friend_request_athlete_ids": [*other.friend_request_athlete_ids, parsed.athlete_id]}
            )
            logger.info(f"Friend request from {other.athlete_id} now matches new camper {parsed.athlete_id}")
        updated.append(other)

    return updated, camper, warnings
