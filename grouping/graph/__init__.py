"""Friend request graph analysis."""

from __future__ import annotations

from .friend_groups import (
    analyze_friend_group,
    build_request_graph,
    find_friend_components,
    resolve_friend_groups,
    split_friend_group,
)

__all__ = [
    "analyze_friend_group",
    "build_request_graph",
    "find_friend_components",
    "resolve_friend_groups",
    "split_friend_group",
]
