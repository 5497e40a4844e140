"""Content hash utility for deriving stable identifiers.

Friend groups and constraint violations are recomputed from scratch after
every solve or move. Deriving their identifiers from their content (rather
than generating fresh ones) lets a recomputed record be matched with the
record it replaces, so user decisions such as a resolution note survive the
recompute."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable


def calculate_content_hash(content: str | None) -> str:
    """Calculate MD5 hash of content.

    Args:
        content: The content to hash. None is treated as empty string.

    Returns:
        32-character hexadecimal MD5 hash string.

    Example:
        >>> calculate_content_hash(None)
        'd41d8cd98f00b204e9800998ecf8427e'  # hash of empty string
    """
    if content is None:
        content = ""

    return hashlib.md5(content.encode("utf-8")).hexdigest()


def stable_id(prefix: str, parts: Iterable[str], length: int = 12) -> str:
    """Build an order-independent identifier from a collection of parts.

    Args:
        prefix: Short type prefix (e.g., "fg" for friend groups)
        parts: Identifying parts; sorted before hashing so input order is irrelevant
        length: Number of hash characters to keep

    Returns:
        Identifier like "fg-3f2a9c01b7de"

    Example:
        >>> stable_id("fg", ["b", "a"]) == stable_id("fg", ["a", "b"])
        True
    """
    digest = calculate_content_hash("|".join(sorted(parts)))
    return f"{prefix}-{digest[:length]}"
