"""Shared test fixtures for the sharesniffer test suite."""

from __future__ import annotations

import asyncio
import os
from typing import Callable

import pytest

from sharesniffer.domain.entities import CheckResult
from sharesniffer.infrastructure.checkers import CheckerRegistry, LinkAdapter
from sharesniffer.infrastructure.config import AppConfig

# ---------------------------------------------------------------------------
# Fake checkers
# ---------------------------------------------------------------------------


class FakeChecker:
    """In-memory checker satisfying LinkCheckerPort.

    ``outcome`` is returned as-is, raised when it is an exception, or
    called with the URL when it is a callable. ``delay`` simulates a slow
    provider.
    """

    def __init__(
        self,
        name: str = "fake",
        prefixes: tuple[str, ...] = ("https://fake.example/s/",),
        *,
        heavy: bool = False,
        outcome: CheckResult | BaseException | Callable[[str], CheckResult] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.prefixes = prefixes
        self.heavy = heavy
        self._outcome = outcome if outcome is not None else CheckResult.valid("file.mkv")
        self._delay = delay
        self.calls: list[str] = []
        self.active = 0
        self.peak = 0

    async def check(self, url: str) -> CheckResult:
        self.calls.append(url)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self._delay:
                await asyncio.sleep(self._delay)
            if isinstance(self._outcome, BaseException):
                raise self._outcome
            if callable(self._outcome):
                return self._outcome(url)
            return self._outcome
        finally:
            self.active -= 1


@pytest.fixture()
def make_checker() -> type[FakeChecker]:
    """The FakeChecker class, for tests that need custom behaviour."""
    return FakeChecker


@pytest.fixture()
def fake_checker() -> FakeChecker:
    """Fast, always-valid checker for https://fake.example/s/."""
    return FakeChecker()


@pytest.fixture()
def heavy_checker() -> FakeChecker:
    """Slow, heavy checker for https://heavy.example/s/."""
    return FakeChecker(
        name="heavy",
        prefixes=("https://heavy.example/s/",),
        heavy=True,
        delay=0.05,
    )


@pytest.fixture()
def registry(fake_checker: FakeChecker, heavy_checker: FakeChecker) -> CheckerRegistry:
    return CheckerRegistry([fake_checker, heavy_checker])


@pytest.fixture()
def adapter(registry: CheckerRegistry) -> LinkAdapter:
    return LinkAdapter(registry, default_timeout=2.0, heavy_timeout=2.0)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def app_config() -> AppConfig:
    """AppConfig with browser checkers disabled and small pools."""
    return AppConfig(
        environment="test",
        playwright_enabled=False,
        http_retry_count=0,
        http_backoff_seconds=0.0,
    )


@pytest.fixture(autouse=True)
def _clear_sharesniffer_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep SHARESNIFFER_* variables from the host out of config tests."""
    for key in list(os.environ):
        if key.startswith("SHARESNIFFER_"):
            monkeypatch.delenv(key, raising=False)
