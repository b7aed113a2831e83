"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import structlog
from fastapi import FastAPI

from sharesniffer.infrastructure.composition import build_engine
from sharesniffer.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the check engine on startup and release its clients on shutdown.

    The browser is launched lazily by the first heavy check, so startup
    stays fast even with browser checkers enabled.
    """
    state = cast(AppState, app.state)
    state.engine = build_engine(state.config)
    log.info("app_startup_complete", checkers=state.engine.registry.names)

    try:
        yield
    finally:
        await state.engine.aclose()
        log.info("app_shutdown_complete")
