"""Shared template for checkers that query a provider's web API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Mapping

import httpx
import structlog

from sharesniffer.domain.entities.check import CheckResult, Outcome
from sharesniffer.domain.exceptions import (
    CheckError,
    MalformedLinkError,
    RequestError,
    StatusCodeError,
)
from sharesniffer.infrastructure.http.client import RetryingHttpClient, read_json

log = structlog.get_logger(__name__)

# Provider answers that mean "this share is gone"
_GONE_STATUS_CODES = frozenset({400, 404})


@dataclass(frozen=True)
class ShareLink:
    """Identifying parameters parsed out of a share URL."""

    share_id: str
    passcode: str = ""


class ApiChecker:
    """Template for fast, API-based checkers.

    Subclasses set ``name``/``prefixes`` and implement :meth:`parse_link`
    and :meth:`query`. Parsing runs before any network call; failures
    raised by ``query`` are collapsed into an ``Outcome`` here so no
    provider-specific error shape leaves the checker.
    """

    name: ClassVar[str] = ""
    prefixes: ClassVar[tuple[str, ...]] = ()
    heavy: ClassVar[bool] = False

    # Message used when the provider's status code says the share is gone
    gone_message: ClassVar[str] = "share link expired"

    def __init__(self, http: RetryingHttpClient) -> None:
        self._http = http

    def parse_link(self, url: str) -> ShareLink:
        raise NotImplementedError

    async def query(self, link: ShareLink) -> CheckResult:
        raise NotImplementedError

    async def check(self, url: str) -> CheckResult:
        try:
            link = self.parse_link(url)
        except MalformedLinkError as exc:
            log.info("share_link_malformed", checker=self.name, url=url, reason=str(exc))
            return CheckResult.malformed(url, "invalid link format")

        try:
            return await self.query(link)
        except CheckError as exc:
            return self._result_for_error(exc, url)

    def _result_for_error(self, exc: CheckError, url: str) -> CheckResult:
        if exc.outcome is Outcome.TIMEOUT:
            log.info("share_check_timeout", checker=self.name, url=url)
            return CheckResult.timeout()
        if exc.outcome is Outcome.INVALID:
            log.info("share_link_gone", checker=self.name, url=url, reason=str(exc))
            return CheckResult.invalid(self.gone_message)
        log.info(
            "share_check_failed",
            checker=self.name,
            url=url,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return CheckResult.fatal(f"failed: {exc}")

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    async def _post_json(
        self,
        url: str,
        body: Any,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        gone_on_status: bool = True,
    ) -> Any:
        """POST *body* as JSON and decode the JSON answer.

        With *gone_on_status*, 400/404 raise ``StatusCodeError`` and any
        other non-200 raises ``RequestError``. Without it the body is
        decoded whatever the status.
        """
        response = await self._http.request(
            "POST", url, headers=headers, params=params, json=body
        )
        return self._decode(response, gone_on_status=gone_on_status)

    def _decode(self, response: httpx.Response, *, gone_on_status: bool) -> Any:
        if gone_on_status:
            if response.status_code in _GONE_STATUS_CODES:
                raise StatusCodeError(response.status_code, response.text[:100])
            if response.status_code != 200:
                raise RequestError(f"HTTP {response.status_code}")
        return read_json(response)
