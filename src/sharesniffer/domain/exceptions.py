"""Check pipeline exceptions.

Every ``CheckError`` knows which ``Outcome`` it collapses to, so
checkers translate failures at a single boundary.
"""

from __future__ import annotations

from sharesniffer.domain.entities.check import Outcome


class CheckError(Exception):
    """Base class for all check-related errors."""

    outcome: Outcome = Outcome.FATAL


class MalformedLinkError(CheckError):
    """Raised when a URL does not have the shape its provider issues."""

    outcome = Outcome.MALFORMED


class RequestError(CheckError):
    """Raised when a request could not be completed after all retries."""


class RequestTimeoutError(RequestError):
    """Raised when the request or the caller's deadline timed out."""

    outcome = Outcome.TIMEOUT


class NetworkError(RequestError):
    """Raised on connection-level failures (DNS, refused, reset)."""


class ServerError(RequestError):
    """Raised when the provider answered with a 5xx status."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"server error: HTTP {status_code}")
        self.status_code = status_code


class StatusCodeError(CheckError):
    """Raised when the provider's status code confirms the share is gone."""

    outcome = Outcome.INVALID

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code


class ResponseParseError(CheckError):
    """Raised when a provider response cannot be decoded."""


class RegistryError(Exception):
    """Base class for checker registration errors."""


class OverlappingPrefixError(RegistryError):
    """Raised when two checkers claim prefixes that can match the same URL."""

    def __init__(self, prefix: str, owner: str, existing: str, existing_owner: str) -> None:
        super().__init__(
            f"prefix {prefix!r} of {owner!r} overlaps {existing!r} of {existing_owner!r}"
        )
        self.prefix = prefix
        self.owner = owner
        self.existing = existing
        self.existing_owner = existing_owner
