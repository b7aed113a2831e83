"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.datastructures import State

from sharesniffer.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from sharesniffer.infrastructure.composition import CheckEngine


class AppState(State):
    """FastAPI application state.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Checkers, adapter and batch use case
    engine: CheckEngine
