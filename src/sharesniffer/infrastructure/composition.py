"""Composition root shared by the CLI and the HTTP API."""

from __future__ import annotations

import functools
from dataclasses import dataclass

import structlog

from sharesniffer.application.use_cases.batch_check import BatchCheckUseCase
from sharesniffer.domain.ports import LinkCheckerPort
from sharesniffer.infrastructure.checkers import (
    AliPanChecker,
    BrowserSessionFactory,
    CheckerRegistry,
    LinkAdapter,
    QuarkChecker,
    UcChecker,
    XunleiChecker,
    YdChecker,
)
from sharesniffer.infrastructure.config.schema import AppConfig, CheckConfig
from sharesniffer.infrastructure.http.client import RetryingHttpClient
from sharesniffer.infrastructure.workerpool import WorkerPool

log = structlog.get_logger(__name__)


@dataclass
class CheckEngine:
    """Everything a front end needs to check links."""

    http: RetryingHttpClient
    sessions: BrowserSessionFactory | None
    registry: CheckerRegistry
    adapter: LinkAdapter
    batch: BatchCheckUseCase

    async def aclose(self) -> None:
        if self.sessions is not None:
            await self.sessions.cleanup()
            log.info("browser_closed")
        await self.http.aclose()
        log.info("http_client_closed")


def build_checkers(
    config: AppConfig,
    http: RetryingHttpClient,
    sessions: BrowserSessionFactory | None,
) -> list[LinkCheckerPort]:
    """Instantiate every checker; browser checkers only when a session factory exists."""
    checkers: list[LinkCheckerPort] = [
        QuarkChecker(http),
        UcChecker(http),
        AliPanChecker(http),
    ]
    if sessions is not None:
        browser_kwargs = {
            "long_timeout": config.check.long_timeout_seconds,
            "name_timeout": config.check.name_timeout_seconds,
        }
        checkers.append(XunleiChecker(sessions, **browser_kwargs))
        checkers.append(YdChecker(sessions, **browser_kwargs))
    return checkers


def pool_factory(config: CheckConfig) -> WorkerPool:
    return WorkerPool.from_config(config)


def build_engine(config: AppConfig) -> CheckEngine:
    """Wire the http client, optional browser, registry, adapter and batch use case.

    Nothing here opens a connection or launches a browser; both happen
    lazily on first use.
    """
    http = RetryingHttpClient.from_config(config)
    log.info(
        "http_client_initialized",
        retry_count=config.http_retry_count,
        timeout=config.http_timeout_seconds,
    )

    sessions: BrowserSessionFactory | None = None
    if config.playwright_enabled:
        sessions = BrowserSessionFactory(
            headless=config.playwright_headless,
            user_agent=config.http_user_agent,
        )
        log.info("browser_session_factory_configured", headless=config.playwright_headless)
    else:
        log.info("browser_checkers_disabled")

    registry = CheckerRegistry(build_checkers(config, http, sessions))
    log.info("checker_registry_initialized", checkers=registry.names)

    adapter = LinkAdapter(
        registry,
        default_timeout=config.check.default_timeout_seconds,
        heavy_timeout=config.check.heavy_timeout_seconds,
    )
    batch = BatchCheckUseCase(
        adapter,
        functools.partial(pool_factory, config.check),
        chunk_size=config.batch.chunk_size,
        chunk_pause=config.batch.chunk_pause_seconds,
        submit_attempts=config.batch.submit_attempts,
        submit_backoff=config.batch.submit_backoff_seconds,
        drain_timeout=config.batch.drain_timeout_seconds,
    )
    return CheckEngine(
        http=http,
        sessions=sessions,
        registry=registry,
        adapter=adapter,
        batch=batch,
    )
