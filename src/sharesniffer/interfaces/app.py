"""FastAPI application factory (create_app)."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from starlette.responses import Response

from sharesniffer.infrastructure.config import AppConfig
from sharesniffer.infrastructure.config.defaults import APP_VERSION
from sharesniffer.interfaces.app_state import AppState
from sharesniffer.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def create_app(config: AppConfig) -> FastAPI:
    """Create the FastAPI app. Configuration only; resources are built in lifespan()."""
    app = FastAPI(
        title="sharesniffer",
        description="Share-link liveness checker",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from sharesniffer.interfaces.api.check.router import router as check_router

    app.include_router(check_router, prefix="/api/v1")

    @app.get("/api/v1/healthz")
    async def healthz() -> dict[str, str | list[str]]:
        """Liveness probe; returns 200 as long as the process is running."""
        engine = getattr(app.state, "engine", None)
        return {
            "status": "ok",
            "checkers": engine.registry.names if engine else [],
        }

    @app.get("/api/v1/version")
    async def version() -> dict[str, str]:
        return {"version": APP_VERSION}

    @app.middleware("http")
    async def log_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ):
        start = time.perf_counter()
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            status_code = getattr(locals().get("response", None), "status_code", 500)

            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
