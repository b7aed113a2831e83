"""Single entry point for checking one URL."""

from __future__ import annotations

import asyncio
import dataclasses
import time

import structlog

from sharesniffer.domain.entities.check import CheckResult
from sharesniffer.domain.ports.concurrency import Weight
from sharesniffer.infrastructure.checkers.registry import CheckerRegistry

log = structlog.get_logger(__name__)


class LinkAdapter:
    """Dispatches a URL to its checker and owns the common result fields.

    Whatever the checker returns, ``url``, ``elapsed_ms`` and the
    stripped ``name`` are overwritten here. Heavy checkers get the longer
    deadline; a missed deadline becomes TIMEOUT and any unexpected
    exception becomes FATAL, so ``adapt`` only ever raises
    ``CancelledError``.
    """

    def __init__(
        self,
        registry: CheckerRegistry,
        *,
        default_timeout: float = 15.0,
        heavy_timeout: float = 30.0,
    ) -> None:
        self._registry = registry
        self._default_timeout = default_timeout
        self._heavy_timeout = heavy_timeout

    @property
    def registry(self) -> CheckerRegistry:
        return self._registry

    def weight_for(self, url: str) -> Weight:
        return Weight.HEAVY if self._registry.is_heavy(url) else Weight.NORMAL

    async def adapt(self, url: str) -> CheckResult:
        if not url or not url.strip():
            return CheckResult.malformed(url, "empty link")

        checker = self._registry.get(url)
        if checker is None:
            log.info("share_link_unsupported", url=url)
            return CheckResult.malformed(url, "unsupported link")

        deadline = self._heavy_timeout if checker.heavy else self._default_timeout
        start = time.perf_counter()
        try:
            async with asyncio.timeout(deadline):
                result = await checker.check(url)
        except TimeoutError:
            log.info("share_check_deadline", checker=checker.name, url=url, deadline=deadline)
            result = CheckResult.timeout()
        except Exception as exc:  # noqa: BLE001
            log.exception("share_check_crashed", checker=checker.name, url=url)
            result = CheckResult.fatal(f"failed: {exc}")

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        return dataclasses.replace(
            result,
            url=url,
            elapsed_ms=elapsed_ms,
            name=result.name.strip(),
        )
