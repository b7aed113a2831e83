"""Domain entities for share-link checks.

Pure value objects — no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

MESSAGE_MAX_LEN = 48
_ELLIPSIS = "..."


class Outcome(IntEnum):
    """Closed set of terminal classifications for one checked URL."""

    VALID = 0
    UNKNOWN = 10
    INVALID = 11  # expired / deleted / blocked
    MALFORMED = 12  # bad input or unsupported provider
    TIMEOUT = 13
    FATAL = 14  # transport or parse failure
    STOPPED = 15  # operator halted the run
    CANCELLED = 16  # caller scope cancelled

    @property
    def default_message(self) -> str:
        return self.name.lower()

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_terminal_stop(self) -> bool:
        """Stopped/Cancelled results are never overwritten once recorded."""
        return self in (Outcome.STOPPED, Outcome.CANCELLED)


_LABELS: dict[Outcome, str] = {
    Outcome.VALID: "Valid",
    Outcome.UNKNOWN: "Unknown",
    Outcome.INVALID: "Expired",
    Outcome.MALFORMED: "Malformed",
    Outcome.TIMEOUT: "Timed out",
    Outcome.FATAL: "Failed",
    Outcome.STOPPED: "Stopped",
    Outcome.CANCELLED: "Cancelled",
}


def truncate_message(text: str, limit: int = MESSAGE_MAX_LEN, strip_prefix: str = "") -> str:
    """Cut *text* to *limit* characters, appending ``...`` when shortened.

    Counts code points, not bytes, so CJK provider messages are cut at
    character boundaries. *strip_prefix* removes its first occurrence
    before measuring.
    """
    if strip_prefix:
        text = text.replace(strip_prefix, "", 1)
    if len(text) <= limit:
        return text
    return text[:limit] + _ELLIPSIS


@dataclass(frozen=True)
class CheckResult:
    """Outcome and payload for one checked share link.

    ``url``, ``elapsed_ms`` and the trimmed ``name`` are stamped by the
    adapter after the checker returns; checkers only fill outcome,
    message and name.
    """

    outcome: Outcome
    message: str
    url: str = ""
    name: str = ""
    elapsed_ms: int = 0

    @property
    def is_valid(self) -> bool:
        return self.outcome is Outcome.VALID

    @classmethod
    def of(cls, outcome: Outcome, message: str = "", *, url: str = "", name: str = "") -> CheckResult:
        msg = truncate_message(message) if message else outcome.default_message
        return cls(outcome=outcome, message=msg, url=url, name=name)

    @classmethod
    def valid(cls, name: str = "") -> CheckResult:
        return cls.of(Outcome.VALID, name=name)

    @classmethod
    def invalid(cls, message: str = "") -> CheckResult:
        return cls.of(Outcome.INVALID, message)

    @classmethod
    def malformed(cls, url: str = "", message: str = "") -> CheckResult:
        return cls.of(Outcome.MALFORMED, message, url=url)

    @classmethod
    def timeout(cls, message: str = "") -> CheckResult:
        return cls.of(Outcome.TIMEOUT, message)

    @classmethod
    def fatal(cls, message: str = "") -> CheckResult:
        return cls.of(Outcome.FATAL, message)

    @classmethod
    def unknown(cls, message: str = "") -> CheckResult:
        return cls.of(Outcome.UNKNOWN, message)

    @classmethod
    def stopped(cls, url: str = "") -> CheckResult:
        return cls.of(Outcome.STOPPED, url=url)

    @classmethod
    def cancelled(cls, url: str = "") -> CheckResult:
        return cls.of(Outcome.CANCELLED, url=url)
