"""
Friend request parsing and name matching.

Parents type friend names free-form ("Emma Smith, sarah j."), so names are
normalized and matched against the registered roster in decreasing order of
confidence:

1. Exact full name
2. First + last name (middle names ignored)
3. First name only, when exactly one camper has it
4. Partial containment of one full name in the other, when unambiguous
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from typing import NamedTuple

logger = logging.getLogger(__name__)

_NON_LETTERS = re.compile(r"[^a-z\s]")
_WHITESPACE = re.compile(r"\s+")
_SEPARATORS = re.compile(r"[,;\n]+")


class RosterEntry(NamedTuple):
    """Minimal camper identity used for name matching."""

    athlete_id: str
    first_name: str
    last_name: str

    @property
    def normalized_full_name(self) -> str:
        return normalize_friend_name(f"{self.first_name} {self.last_name}")


def normalize_friend_name(name: str) -> str:
    """Lowercase, strip non-letters and collapse whitespace."""
    cleaned = _NON_LETTERS.sub("", name.lower().strip())
    return _WHITESPACE.sub(" ", cleaned).strip()


def parse_friend_requests(raw: str | Iterable[str] | None) -> list[str]:
    """Split and normalize raw friend request text.

    Accepts a single string separated by commas, semicolons or newlines, or a
    list of names (each of which may itself contain separators).
    """
    if not raw:
        return []

    chunks = [raw] if isinstance(raw, str) else list(raw)
    names: list[str] = []
    for chunk in chunks:
        for part in _SEPARATORS.split(chunk):
            normalized = normalize_friend_name(part)
            if normalized:
                names.append(normalized)
    return names


def find_best_match(friend_name: str, roster: Sequence[RosterEntry]) -> RosterEntry | None:
    """Find the roster entry that best matches a normalized friend name."""
    target = normalize_friend_name(friend_name)
    if not target:
        return None

    for entry in roster:
        if entry.normalized_full_name == target:
            return entry

    name_parts = target.split(" ")
    if len(name_parts) >= 2:
        first, last = name_parts[0], name_parts[-1]
        for entry in roster:
            if normalize_friend_name(entry.first_name) == first and normalize_friend_name(entry.last_name) == last:
                return entry
    else:
        first_name_matches = [e for e in roster if normalize_friend_name(e.first_name) == target]
        if len(first_name_matches) == 1:
            return first_name_matches[0]

    partial = []
    for entry in roster:
        full_name = entry.normalized_full_name
        if full_name and (target in full_name or full_name in target):
            partial.append(entry)
    return partial[0] if len(partial) == 1 else None


def match_friend_requests(
    friend_names: Sequence[str],
    roster: Sequence[RosterEntry],
    requester_id: str,
) -> tuple[list[str], list[str]]:
    """Match friend names to athlete ids.

    Args:
        friend_names: Normalized names requested by one camper
        roster: All campers registered for the session
        requester_id: The requesting camper (never matched to themselves)

    Returns:
        Tuple of (matched athlete ids in request order without duplicates, unmatched names)
    """
    candidates = [entry for entry in roster if entry.athlete_id != requester_id]
    matched: list[str] = []
    unmatched: list[str] = []

    for name in friend_names:
        entry = find_best_match(name, candidates)
        if entry is None:
            unmatched.append(name)
        elif entry.athlete_id not in matched:
            matched.append(entry.athlete_id)

    if unmatched:
        logger.debug(f"Camper {requester_id}: {len(unmatched)} friend request(s) unmatched: {unmatched}")

    return matched, unmatched
