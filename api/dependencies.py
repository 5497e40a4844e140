"""
Shared dependencies for the Huddle API.

This module provides:
- PocketBase client management (global instance)
- Authentication helpers
- The grouping service wired to the configured session store
"""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache

from pocketbase import PocketBase

from grouping.config import ConfigLoader
from grouping.service import GroupingService
from grouping.store import (
    GroupingSessionManager,
    GroupingStateStore,
    InMemoryGroupingStore,
    PocketBaseGroupingStore,
)

from .settings import get_settings

logger = logging.getLogger(__name__)

# ========================================
# PocketBase Client
# ========================================

# The API authenticates once as admin on startup and shares one client.
_settings = get_settings()
pb_url = _settings.pocketbase_url
pb = PocketBase(pb_url)


async def authenticate_pb() -> None:
    """Authenticate with PocketBase as admin."""
    settings = get_settings()
    try:
        await asyncio.to_thread(
            pb.collection("_superusers").auth_with_password,
            settings.pocketbase_admin_email,
            settings.pocketbase_admin_password,
        )
        logger.info("Successfully authenticated with PocketBase")
    except Exception as e:
        logger.error(f"Failed to authenticate with PocketBase: {e}")
        raise


# ========================================
# Grouping Service
# ========================================


def create_grouping_store() -> GroupingStateStore:
    """Session store for the configured backend."""
    backend = get_settings().grouping_store
    if backend == "memory":
        logger.warning("Using in-memory grouping store; sessions are lost on restart")
        return InMemoryGroupingStore()
    return PocketBaseGroupingStore(pb)


@lru_cache
def get_grouping_service() -> GroupingService:
    """FastAPI dependency returning the process-wide grouping service.

    One instance per process so the per-camp locks in the session manager
    are shared by every request.
    """
    store = create_grouping_store()
    loader = ConfigLoader.initialize(pb if get_settings().grouping_store == "pocketbase" else None)
    return GroupingService(GroupingSessionManager(store), loader)


__all__ = [
    "pb",
    "pb_url",
    "authenticate_pb",
    "create_grouping_store",
    "get_grouping_service",
]
