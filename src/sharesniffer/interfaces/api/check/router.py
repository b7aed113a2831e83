from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from sharesniffer.interfaces.api.check.presenter import (
    present_report,
    present_result,
    present_support,
)
from sharesniffer.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["check"])


class CheckRequest(BaseModel):
    url: str = Field(min_length=1, description="Share link to check.")


class BatchRequest(BaseModel):
    urls: list[str] = Field(description="Share links to check, in order.")


@router.get("/support")
async def support(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    return JSONResponse(content=present_support(state.engine.registry.support_table()))


@router.post("/check")
async def check(request: Request, body: CheckRequest) -> JSONResponse:
    state = cast(AppState, request.app.state)
    result = await state.engine.adapter.adapt(body.url)
    log.info(
        "api_check_done",
        url=body.url,
        outcome=result.outcome.label,
        elapsed_ms=result.elapsed_ms,
    )
    return JSONResponse(content=present_result(result))


@router.post("/batch")
async def batch(request: Request, body: BatchRequest) -> JSONResponse:
    state = cast(AppState, request.app.state)
    limit = state.config.api_max_batch_urls
    if len(body.urls) > limit:
        return JSONResponse(
            status_code=413,
            content={"error": "too_many_urls", "limit": limit, "received": len(body.urls)},
        )

    report = await state.engine.batch.execute(body.urls)
    return JSONResponse(content=present_report(report))
