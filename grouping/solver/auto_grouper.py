"""
Auto-grouping solver.

Greedy constructive placement followed by a local repair pass:

1. Campers are partitioned into placement units (friend groups or solo
   campers) and placed largest first, then by grade, then by id.
2. Each unit goes to a group that keeps the grade spread within limits.
   Candidates are ranked by: stays under ``max_group_size``, stays under the
   balanced quota (``ceil(campers / groups)``), already has campers (so grade
   bands fill contiguously instead of smearing across every group), tightest
   resulting grade spread, fewest campers, display order.
3. A friend group that cannot be placed intact (too big, too wide, or no
   compatible group) is split into grade-ordered chunks, each placed by the
   same rule or, failing that, into the least-violating group.
4. Repair moves solo campers out of groups with hard violations into groups
   that stay clean.
5. If hard violations remain, the units are laid out again as contiguous
   grade bands, one per group, choosing band boundaries that minimize total
   violation and then size imbalance. The band layout replaces the greedy
   one only when it is strictly better.

The solver never fails: oversize and over-spread groups are allowed and
reported as hard violations. Output is deterministic for a given camper set
and config regardless of input order.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from grouping.graph.friend_groups import analyze_friend_group, split_friend_group
from grouping.models import (
    AssignmentType,
    CampGroup,
    ConstraintViolation,
    FriendGroup,
    GroupAssignmentRecord,
    GroupingConfig,
    GroupingStats,
    StandardizedCamper,
    ViolationSeverity,
    ViolationType,
)

from .constraints.base import ConstraintContext
from .constraints.evaluator import evaluate_constraints
from .constraints.grade_spread import grade_spread
from .feasibility import check_feasibility
from .logging import ConstraintLogger
from .solution import analyze_solution

logger = logging.getLogger(__name__)

AUTO_ASSIGNED_BY = "auto"


@dataclass
class PlacementUnit:
    """A set of campers placed together: a friend group, a chunk of one, or a solo camper."""

    member_ids: list[str]
    grades: list[int]
    friend_group: FriendGroup | None = None

    @property
    def size(self) -> int:
        return len(self.member_ids)

    def sort_key(self) -> tuple[int, int, int, str]:
        low = min(self.grades) if self.grades else None
        return (-self.size, 1 if low is None else 0, low or 0, self.member_ids[0])


@dataclass
class _WorkingGroup:
    group: CampGroup
    camper_ids: list[str] = field(default_factory=list)
    grades: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.camper_ids)


@dataclass
class SolveResult:
    """Output of one solver run."""

    groups: list[CampGroup]
    violations: list[ConstraintViolation]
    assignments: list[GroupAssignmentRecord]
    friend_groups: list[FriendGroup]
    stats: GroupingStats
    warnings: list[str] = field(default_factory=list)
    log_summary: dict[str, Any] = field(default_factory=dict)


class AutoGrouper:
    """Greedy grouping solver for one camp session."""

    def __init__(
        self,
        campers: list[StandardizedCamper],
        config: GroupingConfig,
        friend_groups: list[FriendGroup] | None = None,
        groups: list[CampGroup] | None = None,
        constraint_logger: ConstraintLogger | None = None,
    ) -> None:
        """
        Initialize the solver.

        Args:
            campers: Standardized campers to place
            config: Grouping configuration
            friend_groups: Friend groups; derived from ``friend_group_id`` on campers when None
            groups: Existing groups to refill (names and colours are kept);
                ``config.resolve_num_groups`` default groups are created when None
            constraint_logger: Collects placement decisions and warnings
        """
        self.config = config
        self.campers = sorted(campers, key=lambda c: c.athlete_id)
        self.camper_by_id = {c.athlete_id: c for c in self.campers}
        self.constraint_logger = constraint_logger or ConstraintLogger()
        self.friend_groups = self._prepare_friend_groups(friend_groups)
        self.template_groups = self._prepare_groups(groups)
        self.quota = max(1, math.ceil(len(self.campers) / len(self.template_groups)))
        self._reasons: dict[str, str] = {}

    # =========================================================================
    # Setup
    # =========================================================================

    def _prepare_friend_groups(self, friend_groups: list[FriendGroup] | None) -> list[FriendGroup]:
        if friend_groups is None:
            friend_groups = self._derive_friend_groups()

        prepared: list[FriendGroup] = []
        for friend_group in friend_groups:
            members = sorted(mid for mid in friend_group.member_ids if mid in self.camper_by_id)
            if len(members) < 2:
                continue
            trimmed = friend_group.model_copy(update={"member_ids": members})
            prepared.append(analyze_friend_group(trimmed, self.camper_by_id, self.config))
        return sorted(prepared, key=lambda fg: (fg.group_number, fg.id))

    def _derive_friend_groups(self) -> list[FriendGroup]:
        members_by_group: dict[str, list[str]] = {}
        numbers: dict[str, int] = {}
        for camper in self.campers:
            if camper.friend_group_id is None:
                continue
            members_by_group.setdefault(camper.friend_group_id, []).append(camper.athlete_id)
            if camper.friend_group_number is not None:
                numbers[camper.friend_group_id] = camper.friend_group_number

        return [
            FriendGroup(id=fg_id, group_number=numbers.get(fg_id, index), member_ids=member_ids)
            for index, (fg_id, member_ids) in enumerate(sorted(members_by_group.items()), start=1)
        ]

    def _prepare_groups(self, groups: list[CampGroup] | None) -> list[CampGroup]:
        if groups:
            return [g.model_copy(update={"camper_ids": []}) for g in sorted(groups, key=lambda g: g.group_number)]
        count = self.config.resolve_num_groups(len(self.campers))
        return [CampGroup.create(number) for number in range(1, count + 1)]

    def _grades(self, camper_ids: list[str]) -> list[int]:
        grades = (self.camper_by_id[cid].grade_validated for cid in camper_ids)
        return [g for g in grades if g is not None]

    def _build_units(self) -> list[PlacementUnit]:
        units: list[PlacementUnit] = []
        in_friend_group: set[str] = set()
        for friend_group in self.friend_groups:
            units.append(PlacementUnit(friend_group.member_ids, self._grades(friend_group.member_ids), friend_group))
            in_friend_group.update(friend_group.member_ids)

        for camper in self.campers:
            if camper.athlete_id not in in_friend_group:
                units.append(PlacementUnit([camper.athlete_id], self._grades([camper.athlete_id])))

        return sorted(units, key=PlacementUnit.sort_key)

    # =========================================================================
    # Placement
    # =========================================================================

    def _violation_score(self, count: int, grades: list[int]) -> int:
        size_excess = max(0, count - self.config.max_group_size)
        spread_excess = max(0, grade_spread(grades) - self.config.max_grade_spread)
        return size_excess + spread_excess

    def _rank(self, target: _WorkingGroup, size: int, grades: list[int]) -> tuple[bool, bool, bool, int, int, int]:
        projected = target.count + size
        return (
            projected > self.config.max_group_size,
            projected > self.quota,
            target.count == 0,
            grade_spread(target.grades + grades),
            target.count,
            target.group.group_number,
        )

    def _best_fit(self, size: int, grades: list[int], working: list[_WorkingGroup]) -> _WorkingGroup | None:
        """Best grade-compatible group, or None when every group would exceed the spread limit."""
        candidates = [w for w in working if grade_spread(w.grades + grades) <= self.config.max_grade_spread]
        if not candidates:
            return None
        return min(candidates, key=lambda w: self._rank(w, size, grades))

    def _least_violating(self, size: int, grades: list[int], working: list[_WorkingGroup]) -> _WorkingGroup:
        return min(
            working,
            key=lambda w: (
                max(0, grade_spread(w.grades + grades) - self.config.max_grade_spread),
                w.count + size > self.config.max_group_size,
                w.count,
                w.group.group_number,
            ),
        )

    def _assign(self, target: _WorkingGroup, camper_ids: list[str], reason: str) -> None:
        target.camper_ids.extend(camper_ids)
        target.grades.extend(self._grades(camper_ids))
        for camper_id in camper_ids:
            self._reasons[camper_id] = reason

    def _place_unit(self, unit: PlacementUnit, working: list[_WorkingGroup]) -> None:
        friend_group = unit.friend_group
        if friend_group is not None and not friend_group.can_be_placed_intact:
            self._place_split(friend_group, working, friend_group.placement_notes or "cannot be placed intact")
            return

        target = self._best_fit(unit.size, unit.grades, working)
        if target is not None:
            if friend_group is not None:
                self._assign(target, unit.member_ids, f"Friend group #{friend_group.group_number} placed together")
                self.constraint_logger.log_placement(
                    "intact", f"Friend group #{friend_group.group_number} ({unit.size}) -> {target.group.group_name}"
                )
            else:
                self._assign(target, unit.member_ids, "Best grade fit")
                self.constraint_logger.log_placement("solo", f"{unit.member_ids[0]} -> {target.group.group_name}")
            return

        if friend_group is not None:
            self._place_split(friend_group, working, "no group can take it within the grade spread")
            return

        target = self._least_violating(unit.size, unit.grades, working)
        self._assign(target, unit.member_ids, "No group within grade spread; least-violating group")
        self.constraint_logger.log_placement("forced", f"{unit.member_ids[0]} -> {target.group.group_name}")

    def _place_split(self, friend_group: FriendGroup, working: list[_WorkingGroup], reason: str) -> None:
        chunks = split_friend_group(friend_group.member_ids, self.camper_by_id, self.config)
        for chunk in chunks:
            grades = self._grades(chunk)
            target = self._best_fit(len(chunk), grades, working)
            if target is None:
                target = self._least_violating(len(chunk), grades, working)
            self._assign(target, chunk, f"Friend group #{friend_group.group_number} split: {reason}")
        self.constraint_logger.log_placement(
            "split", f"Friend group #{friend_group.group_number} placed as {len(chunks)} chunk(s): {reason}"
        )

    # =========================================================================
    # Repair
    # =========================================================================

    def _repair_candidates(self, source: _WorkingGroup) -> list[str]:
        """Solo campers in the group, furthest from the group's median grade first."""
        solo = [cid for cid in source.camper_ids if self.camper_by_id[cid].friend_group_id is None]
        grades = sorted(source.grades)
        median = grades[len(grades) // 2] if grades else 0

        def distance(camper_id: str) -> int:
            grade = self.camper_by_id[camper_id].grade_validated
            return 0 if grade is None else abs(grade - median)

        return sorted(solo, key=lambda cid: (-distance(cid), cid))

    def _repair(self, working: list[_WorkingGroup]) -> int:
        """Move solo campers out of violating groups while it strictly reduces violations."""
        moves = 0
        improved = True
        while improved:
            improved = False
            for source in sorted(working, key=lambda w: w.group.group_number):
                before = self._violation_score(source.count, source.grades)
                if before == 0:
                    continue
                for camper_id in self._repair_candidates(source):
                    remaining = [cid for cid in source.camper_ids if cid != camper_id]
                    if self._violation_score(len(remaining), self._grades(remaining)) >= before:
                        continue
                    grades = self._grades([camper_id])
                    targets = [
                        w
                        for w in working
                        if w is not source and self._violation_score(w.count + 1, w.grades + grades) == 0
                    ]
                    if not targets:
                        continue
                    target = min(targets, key=lambda w: self._rank(w, 1, grades))
                    source.camper_ids = remaining
                    source.grades = self._grades(remaining)
                    self._assign(target, [camper_id], f"Moved from {source.group.group_name} to fix a violation")
                    self.constraint_logger.log_placement(
                        "repair", f"{camper_id}: {source.group.group_name} -> {target.group.group_name}"
                    )
                    moves += 1
                    improved = True
                    break
                if improved:
                    break
        return moves

    # =========================================================================
    # Grade bands
    # =========================================================================

    def _total_score(self, working: list[_WorkingGroup]) -> int:
        return sum(self._violation_score(w.count, w.grades) for w in working)

    def _band_units(self, units: list[PlacementUnit]) -> list[PlacementUnit]:
        """Units for the band layout; friend groups that cannot stay intact become their chunks."""
        expanded: list[PlacementUnit] = []
        for unit in units:
            friend_group = unit.friend_group
            if friend_group is not None and not friend_group.can_be_placed_intact:
                for chunk in split_friend_group(friend_group.member_ids, self.camper_by_id, self.config):
                    expanded.append(PlacementUnit(chunk, self._grades(chunk), friend_group))
            else:
                expanded.append(unit)
        return expanded

    def _band_boundaries(self, graded: list[PlacementUnit], group_count: int) -> list[int]:
        """Cut points splitting grade-ordered units into ``group_count`` contiguous bands.

        Dynamic program over (bands used, units covered). A band's cost is its
        violation score; ties go to the smaller sum of squared band sizes.
        """
        n = len(graded)
        best: list[list[tuple[int, int] | None]] = [[None] * (n + 1) for _ in range(group_count + 1)]
        cut = [[0] * (n + 1) for _ in range(group_count + 1)]
        best[0][0] = (0, 0)

        for bands in range(1, group_count + 1):
            for end in range(n + 1):
                size = 0
                high: int | None = None
                for start in range(end, -1, -1):
                    if start < end:
                        unit = graded[start]
                        size += unit.size
                        high = max(unit.grades) if high is None else max(high, max(unit.grades))
                    previous = best[bands - 1][start]
                    if previous is None:
                        continue
                    band_score = 0
                    if start < end and high is not None:
                        band_score = self._violation_score(size, [min(graded[start].grades), high])
                    candidate = (previous[0] + band_score, previous[1] + size * size)
                    current = best[bands][end]
                    if current is None or candidate < current:
                        best[bands][end] = candidate
                        cut[bands][end] = start

        boundaries = [n]
        end = n
        for bands in range(group_count, 0, -1):
            end = cut[bands][end]
            boundaries.append(end)
        return list(reversed(boundaries))

    def _band_layout(self, units: list[PlacementUnit], working: list[_WorkingGroup]) -> None:
        band_units = self._band_units(units)
        graded = sorted(
            (u for u in band_units if u.grades),
            key=lambda u: (min(u.grades), max(u.grades), u.member_ids[0]),
        )
        ordered = sorted(working, key=lambda w: w.group.group_number)
        boundaries = self._band_boundaries(graded, len(ordered))

        for target, start, end in zip(ordered, boundaries, boundaries[1:], strict=False):
            for unit in graded[start:end]:
                if unit.friend_group is not None:
                    reason = f"Friend group #{unit.friend_group.group_number} placed in grade band"
                else:
                    reason = "Grade band layout"
                self._assign(target, unit.member_ids, reason)
            if end > start:
                self.constraint_logger.log_placement(
                    "band", f"{target.group.group_name}: {end - start} unit(s), {target.count} camper(s)"
                )

        # Campers without a grade only affect size
        for unit in band_units:
            if not unit.grades:
                target = self._best_fit(unit.size, [], working) or self._least_violating(unit.size, [], working)
                self._assign(target, unit.member_ids, "No grade; smallest fitting group")

    def _try_band_layout(self, units: list[PlacementUnit], working: list[_WorkingGroup]) -> list[_WorkingGroup]:
        """Return the band layout when it has fewer violations than ``working``, else ``working``."""
        greedy_score = self._total_score(working)
        if greedy_score == 0:
            return working

        greedy_reasons = dict(self._reasons)
        main_logger = self.constraint_logger
        self.constraint_logger = ConstraintLogger(debug_mode=main_logger.debug_mode)
        try:
            banded = [_WorkingGroup(w.group) for w in working]
            self._band_layout(units, banded)
            self._repair(banded)
            banded_score = self._total_score(banded)
        finally:
            attempt_logger = self.constraint_logger
            self.constraint_logger = main_logger

        if banded_score < greedy_score:
            for strategy, entries in attempt_logger.placements.items():
                main_logger.placements[strategy].extend(entries)
            self.constraint_logger.log_progress(
                f"Grade band layout lowered the violation score from {greedy_score} to {banded_score}"
            )
            return banded

        self._reasons = greedy_reasons
        self.constraint_logger.log_progress(f"Grade band layout kept greedy placement (score {greedy_score})")
        return working

    # =========================================================================
    # Incremental placement
    # =========================================================================

    def place_camper(self, camper_id: str, groups: list[CampGroup]) -> CampGroup | None:
        """Best existing group for one more camper, leaving everyone else where they are.

        A group already holding the camper's friends wins when it stays free
        of hard violations. Otherwise the clean group with the best solver
        ranking is used, and failing that the least-violating group.

        Args:
            camper_id: Camper to place (must be among the solver's campers)
            groups: Current groups with their members

        Returns:
            The chosen group, or None when there are no groups
        """
        if not groups:
            return None

        working = [
            _WorkingGroup(g, list(g.camper_ids), self._grades(g.camper_ids))
            for g in sorted(groups, key=lambda g: g.group_number)
        ]
        grades = self._grades([camper_id])

        def clean(w: _WorkingGroup) -> bool:
            return self._violation_score(w.count + 1, w.grades + grades) == 0

        friend_group_id = self.camper_by_id[camper_id].friend_group_id
        if friend_group_id is not None:
            with_friends = [
                w
                for w in working
                if clean(w) and any(self.camper_by_id[cid].friend_group_id == friend_group_id for cid in w.camper_ids)
            ]
            if with_friends:
                return min(with_friends, key=lambda w: self._rank(w, 1, grades)).group

        candidates = [w for w in working if clean(w)]
        if candidates:
            return min(candidates, key=lambda w: self._rank(w, 1, grades)).group
        return self._least_violating(1, grades, working).group

    # =========================================================================
    # Solve
    # =========================================================================

    def _display_order(self, camper_ids: list[str]) -> list[str]:
        def key(camper_id: str) -> tuple[int, int, str, str, str]:
            camper = self.camper_by_id[camper_id]
            grade = camper.grade_validated
            return (1 if grade is None else 0, grade or 0, camper.last_name.lower(), camper.first_name.lower(), camper_id)

        return sorted(camper_ids, key=key)

    def _assignment_records(
        self, groups: list[CampGroup], violations: list[ConstraintViolation]
    ) -> list[GroupAssignmentRecord]:
        split_campers = {
            cid for v in violations if v.violation_type == ViolationType.FRIEND_GROUP_SPLIT for cid in v.affected_camper_ids
        }
        records: list[GroupAssignmentRecord] = []
        for group in groups:
            for camper_id in group.camper_ids:
                records.append(
                    GroupAssignmentRecord(
                        camper_id=camper_id,
                        to_group_id=group.id,
                        assignment_type=AssignmentType.AUTO,
                        reason=self._reasons.get(camper_id),
                        caused_size_violation=group.size_violation,
                        caused_grade_violation=group.grade_violation,
                        caused_friend_violation=camper_id in split_campers,
                        assigned_by=AUTO_ASSIGNED_BY,
                    )
                )
        return records

    def solve(self) -> SolveResult:
        """Place every camper and evaluate the result."""
        logger.info(
            f"Auto-grouping {len(self.campers)} campers into {len(self.template_groups)} groups "
            f"(max size {self.config.max_group_size}, max grade spread {self.config.max_grade_spread})"
        )
        warnings: list[str] = []
        working = [_WorkingGroup(group) for group in self.template_groups]

        if self.campers:
            warnings.extend(
                check_feasibility(
                    self.campers,
                    self.friend_groups,
                    self.config,
                    len(self.template_groups),
                    self.constraint_logger,
                )
            )
            units = self._build_units()
            self.constraint_logger.log_progress(
                f"Placing {len(units)} units ({len(self.friend_groups)} friend groups), quota {self.quota}"
            )
            for unit in units:
                self._place_unit(unit, working)
            moves = self._repair(working)
            self.constraint_logger.log_progress(f"Repair pass made {moves} move(s)")
            working = self._try_band_layout(units, working)

        groups = [w.group.model_copy(update={"camper_ids": self._display_order(w.camper_ids)}) for w in working]
        ctx = ConstraintContext.build(self.campers, self.config, self.friend_groups, self.constraint_logger)
        groups, violations = evaluate_constraints(groups, self.campers, self.friend_groups, self.config, ctx)

        warnings.extend(f"{v.title}: {v.description}" for v in violations if v.severity == ViolationSeverity.WARNING)
        stats = analyze_solution(groups, self.campers, self.friend_groups, violations)

        logger.info(
            f"Auto-grouping complete: {stats.hard_violations} hard violations, {stats.warnings} warnings, "
            f"{stats.friend_groups_intact}/{stats.friend_groups_total} friend groups intact"
        )
        return SolveResult(
            groups=groups,
            violations=violations,
            assignments=self._assignment_records(groups, violations),
            friend_groups=self.friend_groups,
            stats=stats,
            warnings=warnings,
            log_summary=self.constraint_logger.get_summary(),
        )


def solve(
    campers: list[StandardizedCamper],
    config: GroupingConfig,
    friend_groups: list[FriendGroup] | None = None,
    groups: list[CampGroup] | None = None,
    constraint_logger: ConstraintLogger | None = None,
) -> SolveResult:
    """Assign campers to groups, minimizing constraint violations.

    Args:
        campers: Standardized campers
        config: Grouping configuration
        friend_groups: Friend groups (derived from campers when None)
        groups: Existing groups to refill, keeping their ids, names and colours
        constraint_logger: Optional logger for placement decisions

    Returns:
        SolveResult with groups, violations, audit records, stats and warnings
    """
    return AutoGrouper(campers, config, friend_groups, groups, constraint_logger).solve()
