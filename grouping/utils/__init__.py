"""Shared utilities for the grouping engine."""

from __future__ import annotations

from .content_hash import calculate_content_hash, stable_id

__all__ = ["calculate_content_hash", "stable_id"]
