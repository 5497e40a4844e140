"""
Friend group clustering.

Friend requests form a directed graph (A -> B when A asked for B). Friend
groups are the connected components of its undirected projection, so
membership is symmetric and transitively closed. With
``require_mutual=True`` only reciprocated requests become edges.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

import networkx as nx

from grouping.models import FriendGroup, GroupingConfig, StandardizedCamper

logger = logging.getLogger(__name__)


def build_request_graph(
    campers: Sequence[StandardizedCamper],
    explicit_pairs: Iterable[tuple[str, str]] = (),
) -> nx.DiGraph:
    """Build the directed friend-request graph.

    Every camper is a node. Edges come from each camper's matched
    ``friend_request_athlete_ids`` plus any explicit (requester, requested)
    pairs. Self requests and requests for campers outside the roster are
    dropped.
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(c.athlete_id for c in campers)

    requests = [(c.athlete_id, target) for c in campers for target in c.friend_request_athlete_ids]
    requests.extend(explicit_pairs)

    for requester, requested in requests:
        if requester == requested:
            continue
        if requester not in graph or requested not in graph:
            logger.debug(f"Dropping friend request {requester} -> {requested}: camper not on roster")
            continue
        graph.add_edge(requester, requested)

    return graph


def find_friend_components(graph: nx.DiGraph, require_mutual: bool = False) -> list[list[str]]:
    """Connected components with two or more members, each sorted, in deterministic order."""
    undirected = graph.to_undirected(reciprocal=require_mutual)
    components = [sorted(component) for component in nx.connected_components(undirected) if len(component) >= 2]
    return sorted(components)


def analyze_friend_group(
    friend_group: FriendGroup,
    camper_by_id: dict[str, StandardizedCamper],
    config: GroupingConfig | None = None,
) -> FriendGroup:
    """Recompute grade range and placement flags for a friend group.

    Args:
        friend_group: The group to analyze
        camper_by_id: Camper lookup
        config: When given, size and grade-spread flags are evaluated against it

    Returns:
        Updated copy of the friend group
    """
    grades = [
        camper_by_id[mid].grade_validated
        for mid in friend_group.member_ids
        if mid in camper_by_id and camper_by_id[mid].grade_validated is not None
    ]
    min_grade = min(grades) if grades else None
    max_grade = max(grades) if grades else None
    spread = max(grades) - min(grades) if grades else 0

    exceeds_size = False
    exceeds_grade = False
    notes: list[str] = []
    if config is not None:
        exceeds_size = len(friend_group.member_ids) > config.max_group_size
        exceeds_grade = spread > config.max_grade_spread
        if exceeds_size:
            notes.append(
                f"Friend group has {len(friend_group.member_ids)} members, "
                f"more than the group size limit of {config.max_group_size}."
            )
        if exceeds_grade:
            notes.append(f"Friend group spans {spread} grades (limit {config.max_grade_spread}).")

    return friend_group.model_copy(
        update={
            "min_grade": min_grade,
            "max_grade": max_grade,
            "exceeds_size_constraint": exceeds_size,
            "exceeds_grade_constraint": exceeds_grade,
            "placement_notes": " ".join(notes) or None,
        }
    )


def resolve_friend_groups(
    campers: Sequence[StandardizedCamper],
    explicit_pairs: Iterable[tuple[str, str]] = (),
    require_mutual: bool = False,
    config: GroupingConfig | None = None,
) -> tuple[list[StandardizedCamper], list[FriendGroup]]:
    """Cluster campers into friend groups.

    Args:
        campers: Standardized campers with matched friend request ids
        explicit_pairs: Additional (requester, requested) athlete id pairs
        require_mutual: Only link reciprocated requests
        config: Optional config used to flag groups that cannot be placed intact

    Returns:
        Tuple of (campers with friend_group_id/number set, friend groups)
    """
    graph = build_request_graph(campers, explicit_pairs)
    components = find_friend_components(graph, require_mutual=require_mutual)
    camper_by_id = {c.athlete_id: c for c in campers}

    friend_groups: list[FriendGroup] = []
    membership: dict[str, FriendGroup] = {}
    for number, member_ids in enumerate(components, start=1):
        friend_group = analyze_friend_group(
            FriendGroup(id=FriendGroup.make_id(member_ids), group_number=number, member_ids=member_ids),
            camper_by_id,
            config,
        )
        friend_groups.append(friend_group)
        for member_id in member_ids:
            membership[member_id] = friend_group

    updated = [
        camper.model_copy(
            update={
                "friend_group_id": membership[camper.athlete_id].id if camper.athlete_id in membership else None,
                "friend_group_number": (
                    membership[camper.athlete_id].group_number if camper.athlete_id in membership else None
                ),
            }
        )
        for camper in campers
    ]

    logger.info(
        f"Resolved {len(friend_groups)} friend groups covering {len(membership)} of {len(campers)} campers "
        f"({'mutual' if require_mutual else 'one-directional'} requests)"
    )
    return updated, friend_groups


def _grade_sort_key(camper_id: str, camper_by_id: dict[str, StandardizedCamper]) -> tuple[int, int, str]:
    grade = camper_by_id[camper_id].grade_validated if camper_id in camper_by_id else None
    return (1 if grade is None else 0, grade or 0, camper_id)


def split_friend_group(
    member_ids: Sequence[str],
    camper_by_id: dict[str, StandardizedCamper],
    config: GroupingConfig,
) -> list[list[str]]:
    """Split a friend group into grade-ordered chunks that each fit a group.

    Members are sorted by grade and cut whenever a chunk would exceed
    ``max_group_size`` or ``max_grade_spread``, which keeps grade-mates
    together as long as possible. Campers without a grade go last.
    """
    chunks: list[list[str]] = []
    current: list[str] = []
    current_min: int | None = None

    for camper_id in sorted(member_ids, key=lambda cid: _grade_sort_key(cid, camper_by_id)):
        grade = camper_by_id[camper_id].grade_validated if camper_id in camper_by_id else None
        too_big = len(current) >= config.max_group_size
        too_wide = grade is not None and current_min is not None and grade - current_min > config.max_grade_spread
        if current and (too_big or too_wide):
            chunks.append(current)
            current, current_min = [], None
        current.append(camper_id)
        if grade is not None and current_min is None:
            current_min = grade

    if current:
        chunks.append(current)
    return chunks
