"""Shared httpx clients with linear-backoff retry and error classification."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import httpx
import structlog

from sharesniffer.domain.exceptions import (
    NetworkError,
    RequestError,
    RequestTimeoutError,
    ResponseParseError,
    ServerError,
)
from sharesniffer.infrastructure.config.schema import DEFAULT_USER_AGENT, AppConfig

log = structlog.get_logger(__name__)

DEFAULT_HEADERS: dict[str, str] = {
    "Accept": "application/json;charset=UTF-8",
    "Accept-Language": "en,zh-CN;q=0.9,zh;q=0.8",
    "User-Agent": DEFAULT_USER_AGENT,
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


def merge_default_headers(
    headers: Mapping[str, str] | httpx.Headers | None,
    defaults: Mapping[str, str] = DEFAULT_HEADERS,
) -> httpx.Headers:
    """Add *defaults* to *headers* without overwriting caller values.

    Header names compare case-insensitively.
    """
    merged = httpx.Headers(headers or {})
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = value
    return merged


def build_http_clients(config: AppConfig) -> tuple[httpx.AsyncClient, httpx.AsyncClient]:
    """Create the redirect-following and the non-following client.

    Both share the same pool limits and timeout; the second lets
    checkers inspect a redirect target before deciding to follow it.
    """
    limits = httpx.Limits(
        max_connections=config.http_max_connections,
        max_keepalive_connections=config.http_max_keepalive_connections,
        keepalive_expiry=config.http_keepalive_expiry_seconds,
    )
    timeout = httpx.Timeout(config.http_timeout_seconds)
    follow = httpx.AsyncClient(limits=limits, timeout=timeout, follow_redirects=True)
    no_follow = httpx.AsyncClient(limits=limits, timeout=timeout, follow_redirects=False)
    return follow, no_follow


def _classify(error: Exception | None) -> RequestError:
    """Map the last failure of a retry loop onto the check error taxonomy."""
    if isinstance(error, RequestError):
        return error
    if isinstance(error, httpx.TimeoutException):
        return RequestTimeoutError(f"request timed out: {error}")
    if isinstance(error, httpx.TransportError):
        return NetworkError(f"network error: {error}")
    return RequestError(f"request failed: {error}")


def read_json(response: httpx.Response) -> Any:
    """Decode a JSON body or raise ``ResponseParseError``."""
    try:
        return response.json()
    except ValueError as exc:
        raise ResponseParseError(f"invalid JSON from {response.url.host}") from exc


class RetryingHttpClient:
    """Sends requests through shared pooled clients, retrying transient failures.

    Attempt *n* (n > 0) waits ``backoff_seconds * n`` first. 5xx
    responses and transport errors are retried; 4xx responses are
    returned to the caller untouched. Cancelling the calling task aborts
    a pending backoff immediately.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        no_redirect_client: httpx.AsyncClient | None = None,
        *,
        retry_count: int = 1,
        backoff_seconds: float = 1.0,
        default_headers: Mapping[str, str] = DEFAULT_HEADERS,
    ) -> None:
        self._client = client
        self._no_redirect = no_redirect_client or client
        self._retry_count = retry_count
        self._backoff = backoff_seconds
        self._default_headers = dict(default_headers)

    @classmethod
    def from_config(cls, config: AppConfig) -> RetryingHttpClient:
        follow, no_follow = build_http_clients(config)
        headers = dict(DEFAULT_HEADERS)
        headers["User-Agent"] = config.http_user_agent
        return cls(
            follow,
            no_follow,
            retry_count=config.http_retry_count,
            backoff_seconds=config.http_backoff_seconds,
            default_headers=headers,
        )

    @property
    def retry_count(self) -> int:
        return self._retry_count

    async def send(
        self,
        request: httpx.Request,
        *,
        max_retries: int | None = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        """Send *request*, retrying up to *max_retries* times.

        ``None`` or a non-positive value uses the configured retry count.
        Raises a ``RequestError`` subclass once every attempt failed.
        """
        retries = max_retries if max_retries and max_retries > 0 else self._retry_count
        client = self._client if follow_redirects else self._no_redirect
        last_error: Exception | None = None

        for attempt in range(retries + 1):
            if attempt > 0:
                delay = self._backoff * attempt
                log.info(
                    "http_retry",
                    url=str(request.url),
                    attempt=attempt,
                    delay=round(delay, 2),
                    error=str(last_error),
                )
                await asyncio.sleep(delay)

            try:
                response = await client.send(request)
            except httpx.TransportError as exc:
                last_error = exc
                log.warning(
                    "http_request_failed",
                    url=str(request.url),
                    attempt=attempt,
                    error_type=type(exc).__name__,
                )
                continue

            if response.status_code >= 500:
                # Drain + close so the connection goes back to the pool
                await response.aread()
                await response.aclose()
                last_error = ServerError(response.status_code)
                log.warning(
                    "http_server_error",
                    url=str(request.url),
                    status=response.status_code,
                    attempt=attempt,
                )
                continue

            return response

        log.warning(
            "http_retries_exhausted",
            url=str(request.url),
            attempts=retries + 1,
            error=str(last_error),
        )
        error = _classify(last_error)
        if error is last_error:
            raise error
        raise error from last_error

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        content: str | bytes | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        """Build a request with merged default headers and send it."""
        client = self._client if follow_redirects else self._no_redirect
        request = client.build_request(
            method,
            url,
            headers=merge_default_headers(headers, self._default_headers),
            params=params,
            json=json,
            content=content,
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )
        return await self.send(
            request, max_retries=max_retries, follow_redirects=follow_redirects
        )

    async def aclose(self) -> None:
        """Close both underlying clients."""
        await self._client.aclose()
        if self._no_redirect is not self._client:
            await self._no_redirect.aclose()
