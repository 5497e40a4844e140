#!/usr/bin/env python3
"""
Huddle API - HTTP API layer for the Huddle camp grouping engine.

This is the FastAPI application behind the director's grouping board. It
exposes session setup, auto-grouping, move validation, violation review and
finalization for each camp session.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from grouping.logging_config import configure_logging, get_logger

from .dependencies import authenticate_pb
from .settings import get_settings

# Configure unified logging format
# Format: 2026-01-06T14:05:52Z [api] LEVEL message
configure_logging(source="api")
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle - startup and shutdown."""
    settings = get_settings()

    if settings.skip_pb_auth or settings.grouping_store == "memory":
        logger.warning("Skipping PocketBase authentication (SKIP_PB_AUTH=true or in-memory store)")
    else:
        await authenticate_pb()

    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="Huddle API", description="Camp grouping API", lifespan=lifespan)

    settings = get_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    from .routers import grouping

    app.include_router(grouping.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "huddle-api"}

    return app


# Create app instance for uvicorn
app = create_app()
