"""Port for the single entry point that checks any supported link."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sharesniffer.domain.entities.check import CheckResult

from .concurrency import Weight


@runtime_checkable
class LinkAdapterPort(Protocol):
    """Routes a URL to its checker and enforces the per-check deadline."""

    def weight_for(self, url: str) -> Weight:
        """Admission weight a check of *url* needs."""
        ...

    async def adapt(self, url: str) -> CheckResult:
        """Check *url*; unsupported or empty links come back MALFORMED."""
        ...
