"""Camper standardization: grades, late registration and friend requests."""

from __future__ import annotations

from .friend_requests import RosterEntry, match_friend_requests, normalize_friend_name, parse_friend_requests
from .grades import (
    compute_grade_from_dob,
    detect_grade_discrepancy,
    format_grade,
    format_grade_range,
    parse_grade,
)
from .standardizer import (
    RawCamper,
    RawFriendRequest,
    StandardizationOptions,
    StandardizationResult,
    standardize,
    standardize_addition,
    standardize_roster,
)

__all__ = [
    "RawCamper",
    "RawFriendRequest",
    "RosterEntry",
    "StandardizationOptions",
    "StandardizationResult",
    "compute_grade_from_dob",
    "detect_grade_discrepancy",
    "format_grade",
    "format_grade_range",
    "match_friend_requests",
    "normalize_friend_name",
    "parse_friend_requests",
    "parse_grade",
    "standardize",
    "standardize_addition",
    "standardize_roster",
]
