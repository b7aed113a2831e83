"""Port for provider-specific share-link checkers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sharesniffer.domain.entities.check import CheckResult


@runtime_checkable
class LinkCheckerPort(Protocol):
    """Decides whether a share link issued by one provider is still live.

    Implementations either call the provider's internal API (fast) or
    render the share page in a headless browser (heavy).
    """

    @property
    def name(self) -> str:
        """Provider name this checker handles (e.g. 'quark', 'xunlei')."""
        ...

    @property
    def prefixes(self) -> tuple[str, ...]:
        """URL prefixes owned by this checker."""
        ...

    @property
    def heavy(self) -> bool:
        """True when a check needs an out-of-process browser."""
        ...

    async def check(self, url: str) -> CheckResult:
        """Check *url* and classify it.

        Never raises for provider-side conditions; those become an
        ``Outcome`` on the returned result.
        """
        ...
