"""
Grouping session persistence and per-camp serialization.

Engine operations are pure functions over ``GroupingState``. This module owns
where that state lives between requests and makes sure two mutations for the
same camp never interleave:

- ``GroupingSessionManager.mutate`` takes a per-camp ``asyncio.Lock``, loads
  the state, applies the operation and saves with an optimistic ``version``
  check. Reads take no lock.
- ``PocketBaseGroupingStore`` keeps one record per camp in the
  ``grouping_sessions`` collection with the state serialized as JSON.
- ``InMemoryGroupingStore`` holds JSON snapshots in a dict, for tests and
  local development.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, Protocol, TypeVar

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError  # type: ignore[attr-defined]

from grouping.errors import ConflictError, NotFoundError, StoreUnavailableError, ValidationError
from grouping.models import CAMP_ID_PATTERN, GroupingState

logger = logging.getLogger(__name__)

T = TypeVar("T")

SESSIONS_COLLECTION = "grouping_sessions"


class GroupingStateStore(Protocol):
    """Storage backend for grouping sessions."""

    async def load(self, camp_id: str) -> GroupingState | None: ...

    async def save(self, state: GroupingState, expected_version: int) -> GroupingState: ...


def camp_filter(camp_id: str) -> str:
    """PocketBase filter selecting one camp's record.

    Raises:
        ValidationError: If the camp id contains anything but letters, digits, ``_`` or ``-``
    """
    if not re.fullmatch(CAMP_ID_PATTERN, camp_id):
        raise ValidationError(f"Invalid camp id '{camp_id}'", {"camp_id": camp_id})
    return f'camp_id = "{camp_id}"'


def _version_conflict(camp_id: str, expected: int, actual: int) -> ConflictError:
    return ConflictError(
        f"Grouping for camp '{camp_id}' was modified concurrently; reload and try again",
        details={"expected_version": expected, "actual_version": actual},
    )


# =============================================================================
# In-memory store
# =============================================================================


class InMemoryGroupingStore:
    """Dict-backed store. Snapshots are JSON so callers never share model instances."""

    def __init__(self) -> None:
        self._snapshots: dict[str, str] = {}

    async def load(self, camp_id: str) -> GroupingState | None:
        snapshot = self._snapshots.get(camp_id)
        if snapshot is None:
            return None
        return GroupingState.model_validate_json(snapshot)

    async def save(self, state: GroupingState, expected_version: int) -> GroupingState:
        current = self._snapshots.get(state.camp_id)
        current_version = GroupingState.model_validate_json(current).version if current else 0
        if current_version != expected_version:
            raise _version_conflict(state.camp_id, expected_version, current_version)

        saved = state.model_copy(update={"version": expected_version + 1})
        self._snapshots[state.camp_id] = saved.model_dump_json()
        return saved

    def clear(self) -> None:
        self._snapshots.clear()


# =============================================================================
# PocketBase store
# =============================================================================


class PocketBaseGroupingStore:
    """Stores one ``grouping_sessions`` record per camp.

    Record fields: ``camp_id``, ``status``, ``version`` and ``state`` (JSON).
    """

    def __init__(self, pb_client: PocketBase, collection: str = SESSIONS_COLLECTION) -> None:
        self.pb = pb_client
        self.collection = collection

    async def _find_record(self, camp_id: str) -> Any | None:
        try:
            return await asyncio.to_thread(
                self.pb.collection(self.collection).get_first_list_item,
                camp_filter(camp_id),
            )
        except ClientResponseError as e:
            if e.status == 404:
                return None
            logger.error(f"Failed to load grouping session for camp {camp_id}: {e}")
            raise StoreUnavailableError(f"Grouping store unavailable: {e}") from e

    @staticmethod
    def _state_from_record(record: Any) -> GroupingState:
        raw = getattr(record, "state", None)
        if isinstance(raw, str):
            raw = json.loads(raw)
        state = GroupingState.model_validate(raw)
        return state.model_copy(update={"version": int(getattr(record, "version", state.version) or 0)})

    async def load(self, camp_id: str) -> GroupingState | None:
        record = await self._find_record(camp_id)
        if record is None:
            return None
        return self._state_from_record(record)

    async def save(self, state: GroupingState, expected_version: int) -> GroupingState:
        record = await self._find_record(state.camp_id)
        current_version = int(getattr(record, "version", 0) or 0) if record is not None else 0
        if current_version != expected_version:
            raise _version_conflict(state.camp_id, expected_version, current_version)

        saved = state.model_copy(update={"version": expected_version + 1})
        data = {
            "camp_id": saved.camp_id,
            "status": saved.status.value,
            "version": saved.version,
            "state": saved.model_dump(mode="json"),
        }
        try:
            if record is None:
                await asyncio.to_thread(self.pb.collection(self.collection).create, data)
            else:
                await asyncio.to_thread(self.pb.collection(self.collection).update, record.id, data)
        except ClientResponseError as e:
            logger.error(
                f"PocketBase error saving grouping session for camp {state.camp_id}: "
                f"status={e.status}, data={getattr(e, 'data', None)}"
            )
            raise StoreUnavailableError(f"Failed to save grouping session: {e}") from e

        logger.debug(f"Saved grouping session for camp {saved.camp_id} at version {saved.version}")
        return saved


# =============================================================================
# Session manager
# =============================================================================


class GroupingSessionManager:
    """Serializes mutations per camp on top of a ``GroupingStateStore``."""

    def __init__(self, store: GroupingStateStore) -> None:
        self.store = store
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _camp_lock(self, camp_id: str) -> AsyncIterator[None]:
        """Hold the camp's lock; the lock is dropped once no task holds or awaits it."""
        lock = self._locks.get(camp_id)
        if lock is None:
            lock = self._locks[camp_id] = asyncio.Lock()
        self._lock_users[camp_id] = self._lock_users.get(camp_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[camp_id] -= 1
            if self._lock_users[camp_id] == 0:
                del self._lock_users[camp_id]
                del self._locks[camp_id]

    async def load(self, camp_id: str) -> GroupingState:
        """Current state for a camp.

        Raises:
            NotFoundError: If no session exists for the camp
        """
        state = await self.store.load(camp_id)
        if state is None:
            raise NotFoundError(f"No grouping session for camp '{camp_id}'", {"camp_id": camp_id})
        return state

    async def mutate_with(
        self,
        camp_id: str,
        fn: Callable[[GroupingState], tuple[GroupingState, T]],
    ) -> tuple[GroupingState, T]:
        """Apply ``fn`` to the camp's state under the camp lock and save it.

        ``fn`` returns the new state plus any extra value the caller wants
        back. Nothing is saved when ``fn`` raises.
        """
        async with self._camp_lock(camp_id):
            state = await self.load(camp_id)
            new_state, extra = fn(state)
            saved = await self.store.save(new_state, expected_version=state.version)
            return saved, extra

    async def mutate(self, camp_id: str, fn: Callable[[GroupingState], GroupingState]) -> GroupingState:
        saved, _ = await self.mutate_with(camp_id, lambda state: (fn(state), None))
        return saved

    async def replace(
        self,
        camp_id: str,
        fn: Callable[[GroupingState | None], GroupingState],
    ) -> GroupingState:
        """Create or replace the camp's session; ``fn`` receives the existing state or None."""
        async with self._camp_lock(camp_id):
            existing = await self.store.load(camp_id)
            new_state = fn(existing)
            expected = existing.version if existing is not None else 0
            return await self.store.save(new_state, expected_version=expected)
