"""Registry that maps share-URL prefixes to checkers."""

from __future__ import annotations

import structlog

from sharesniffer.domain.exceptions import OverlappingPrefixError
from sharesniffer.domain.ports.link_checker import LinkCheckerPort

log = structlog.get_logger(__name__)


class CheckerRegistry:
    """Ordered prefix table dispatching URLs to checkers.

    Built once at startup and read-only afterwards. Prefixes from
    different checkers must be disjoint: a prefix that equals, extends
    or is extended by another checker's prefix is rejected at
    registration, so lookup order never decides the winner.
    """

    def __init__(self, checkers: list[LinkCheckerPort] | None = None) -> None:
        self._entries: list[tuple[str, LinkCheckerPort]] = []
        self._checkers: dict[str, LinkCheckerPort] = {}
        for checker in checkers or []:
            self.register(checker)

    def register(self, checker: LinkCheckerPort) -> None:
        """Register *checker* for every prefix it owns.

        Raises ``OverlappingPrefixError`` when a prefix collides with one
        owned by a different checker; the registry is left unchanged.
        """
        added: list[str] = []
        for prefix in checker.prefixes:
            for existing, owner in self._entries:
                if owner is checker and existing == prefix:
                    break
                if owner is not checker and (
                    prefix.startswith(existing) or existing.startswith(prefix)
                ):
                    raise OverlappingPrefixError(prefix, checker.name, existing, owner.name)
            else:
                if prefix not in added:
                    added.append(prefix)
        self._entries.extend((prefix, checker) for prefix in added)
        self._checkers[checker.name] = checker
        log.debug("checker_registered", checker=checker.name, prefixes=list(checker.prefixes))

    def get(self, url: str) -> LinkCheckerPort | None:
        """Return the checker whose prefix *url* starts with, if any."""
        for prefix, checker in self._entries:
            if url.startswith(prefix):
                return checker
        return None

    def is_heavy(self, url: str) -> bool:
        checker = self.get(url)
        return bool(checker is not None and checker.heavy)

    @property
    def prefixes(self) -> list[str]:
        """All registered prefixes in registration order."""
        return [prefix for prefix, _ in self._entries]

    @property
    def heavy_prefixes(self) -> list[str]:
        return [prefix for prefix, checker in self._entries if checker.heavy]

    @property
    def names(self) -> list[str]:
        return list(self._checkers.keys())

    def support_table(self) -> dict[str, list[str]]:
        """Checker name → prefixes, for the ``support`` listings."""
        table: dict[str, list[str]] = {}
        for prefix, checker in self._entries:
            table.setdefault(checker.name, []).append(prefix)
        return table

