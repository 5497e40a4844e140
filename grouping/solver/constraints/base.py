"""
Base types and context for constraint checks.

Provides the ConstraintContext dataclass that holds all state needed by constraint modules.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from grouping.models import FriendGroup, GroupingConfig, StandardizedCamper

if TYPE_CHECKING:
    from grouping.solver.logging import ConstraintLogger


@dataclass
class ConstraintContext:
    """
    Shared context passed to all constraint checks.

    Constraint modules only read from it; evaluation never mutates groups.
    """

    config: GroupingConfig
    camper_by_id: dict[str, StandardizedCamper]
    friend_groups: list[FriendGroup] = field(default_factory=list)
    constraint_logger: ConstraintLogger | None = None

    @classmethod
    def build(
        cls,
        campers: list[StandardizedCamper],
        config: GroupingConfig,
        friend_groups: list[FriendGroup] | None = None,
        constraint_logger: ConstraintLogger | None = None,
    ) -> ConstraintContext:
        return cls(
            config=config,
            camper_by_id={c.athlete_id: c for c in campers},
            friend_groups=list(friend_groups or []),
            constraint_logger=constraint_logger,
        )

    def grade_of(self, camper_id: str) -> int | None:
        camper = self.camper_by_id.get(camper_id)
        return camper.grade_validated if camper else None

    def grades_of(self, camper_ids: list[str]) -> list[int]:
        """Non-null grades of the given campers."""
        return [g for g in (self.grade_of(cid) for cid in camper_ids) if g is not None]

    def friend_group_of(self, camper_id: str) -> FriendGroup | None:
        camper = self.camper_by_id.get(camper_id)
        if camper is None or camper.friend_group_id is None:
            return None
        return next((fg for fg in self.friend_groups if fg.id == camper.friend_group_id), None)
