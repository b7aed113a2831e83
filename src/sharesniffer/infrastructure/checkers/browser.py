"""Browser-based checking for providers that only render state client-side.

A single Chromium process is shared; every check gets its own
``BrowserContext`` (isolated cookies/storage) that is closed on every
exit path. Checks run in two stages: navigation + markup capture under
a long deadline, then best-effort name extraction under a short one.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, ClassVar
from urllib.parse import urlparse

import structlog
from playwright.async_api import (
    Browser,
    Page,
    Playwright,
    Route,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sharesniffer.domain.entities.check import CheckResult
from sharesniffer.domain.exceptions import MalformedLinkError
from sharesniffer.infrastructure.config.schema import DEFAULT_USER_AGENT

log = structlog.get_logger(__name__)

_BLOCKED_RESOURCE_TYPES = frozenset({"image", "font", "media", "texttrack"})

_LAUNCH_ARGS: tuple[str, ...] = (
    "--disable-gpu",
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-blink-features=AutomationControlled",
)

_VIEWPORT = {"width": 1280, "height": 800}


async def _block_resources(route: Route) -> None:
    """Abort requests for heavy resource types."""
    if route.request.resource_type in _BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class BrowserSessionFactory:
    """Lazily launched Chromium handing out one isolated page per session.

    Usage::

        sessions = BrowserSessionFactory(headless=True)
        async with sessions.session() as page:
            await page.goto(url)
        await sessions.cleanup()
    """

    def __init__(self, *, headless: bool = True, user_agent: str = DEFAULT_USER_AGENT) -> None:
        self._headless = headless
        self._user_agent = user_agent
        self._pw: Playwright | None = None
        self._browser: Browser | None = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def _ensure_browser(self) -> Browser:
        if self._browser is not None and self._browser.is_connected():
            return self._browser

        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            # Browser crashed: drop the stale driver before relaunching
            if self._pw is not None:
                try:
                    await self._pw.stop()
                except Exception:  # noqa: BLE001
                    log.debug("browser_stale_pw_stop_error", exc_info=True)
                self._pw = None
                self._browser = None

            self._pw = await async_playwright().start()
            self._browser = await self._pw.chromium.launch(
                headless=self._headless,
                args=list(_LAUNCH_ARGS),
            )
            log.info("browser_launched", headless=self._headless)
            return self._browser

    @asynccontextmanager
    async def session(self) -> AsyncIterator[Page]:
        """Yield a fresh page in its own context; the context always closes."""
        browser = await self._ensure_browser()
        context = await browser.new_context(
            user_agent=self._user_agent,
            viewport=_VIEWPORT,
        )
        try:
            await context.route("**/*", _block_resources)
            page = await context.new_page()
            yield page
        finally:
            try:
                await context.close()
            except Exception:  # noqa: BLE001
                log.warning("browser_context_close_error", exc_info=True)

    async def cleanup(self) -> None:
        """Close the browser and Playwright driver. Idempotent."""
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception:  # noqa: BLE001
                log.warning("browser_close_error", exc_info=True)
            self._browser = None
        if self._pw is not None:
            try:
                await self._pw.stop()
            except Exception:  # noqa: BLE001
                log.warning("browser_pw_stop_error", exc_info=True)
            self._pw = None
        log.info("browser_cleaned_up")


# ---------------------------------------------------------------------------
# Keyword classification
# ---------------------------------------------------------------------------


def count_keywords(content: str, keywords: tuple[str, ...]) -> int:
    """Number of distinct *keywords* present in *content* (case-insensitive)."""
    lowered = content.lower()
    return sum(1 for keyword in keywords if keyword.lower() in lowered)


@dataclass(frozen=True)
class KeywordRule:
    """Classifies a page as gone when enough keywords appear in its markup.

    Ambiguous categories use ``min_matches >= 2`` so one incidental
    word on an otherwise healthy page does not condemn it.
    """

    keywords: tuple[str, ...]
    message: str
    min_matches: int = 1

    def matches(self, content: str) -> bool:
        return count_keywords(content, self.keywords) >= self.min_matches


def first_matching(rules: tuple[KeywordRule, ...], content: str) -> KeywordRule | None:
    for rule in rules:
        if rule.matches(content):
            return rule
    return None


def dedupe_repeated_name(name: str) -> str:
    """Collapse names that some share pages render twice back to back."""
    name = name.strip()
    half, odd = divmod(len(name), 2)
    if half and not odd and name[:half] == name[half:]:
        return name[:half]
    return name


# ---------------------------------------------------------------------------
# Checker template
# ---------------------------------------------------------------------------


class BrowserChecker:
    """Template for heavy, browser-based checkers.

    Subclasses provide ``hosts``, ``early_rules`` (evaluated on the raw
    markup before name extraction), :meth:`find_name` and
    :meth:`classify`.
    """

    name: ClassVar[str] = ""
    prefixes: ClassVar[tuple[str, ...]] = ()
    heavy: ClassVar[bool] = True

    hosts: ClassVar[tuple[str, ...]] = ()
    early_rules: ClassVar[tuple[KeywordRule, ...]] = ()
    capture_attempts: ClassVar[int] = 1
    settle_seconds: ClassVar[float] = 0.5

    def __init__(
        self,
        sessions: BrowserSessionFactory,
        *,
        long_timeout: float = 10.0,
        name_timeout: float = 3.0,
    ) -> None:
        self._sessions = sessions
        self._long_timeout = long_timeout
        self._name_timeout = name_timeout

    def validate_url(self, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise MalformedLinkError(f"not an absolute url: {url}")
        host = parsed.hostname or ""
        if not any(allowed in host for allowed in self.hosts):
            raise MalformedLinkError(f"unexpected host {host!r}")

    async def find_name(self, page: Page) -> str:
        raise NotImplementedError

    def classify(self, html: str, name: str) -> CheckResult:
        raise NotImplementedError

    async def check(self, url: str) -> CheckResult:
        try:
            self.validate_url(url)
        except MalformedLinkError as exc:
            log.info("share_link_malformed", checker=self.name, url=url, reason=str(exc))
            return CheckResult.malformed(url, "invalid link format")

        last_error: Exception | None = None
        for attempt in range(self.capture_attempts):
            if attempt > 0:
                log.info("browser_capture_retry", checker=self.name, url=url, attempt=attempt)
            try:
                async with self._sessions.session() as page:
                    html = await self._capture(page, url, attempt)
                    early = first_matching(self.early_rules, html)
                    if early is not None:
                        log.info("share_link_gone", checker=self.name, url=url, reason=early.message)
                        return CheckResult.invalid(early.message)
                    name = await self._extract_name(page)
                    return self.classify(html, name)
            except (TimeoutError, PlaywrightTimeoutError) as exc:
                last_error = exc
            except PlaywrightError as exc:
                last_error = exc

        if isinstance(last_error, (TimeoutError, PlaywrightTimeoutError)):
            log.info("share_check_timeout", checker=self.name, url=url)
            return CheckResult.timeout()
        log.info("share_check_failed", checker=self.name, url=url, error=str(last_error))
        return CheckResult.fatal(f"failed: {last_error}")

    async def _capture(self, page: Page, url: str, attempt: int) -> str:
        """Stage 1: navigate and return the rendered markup."""
        async with asyncio.timeout(self._long_timeout):
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=int(self._long_timeout * 1000),
            )
            await page.wait_for_selector("body", state="attached")
            # Later attempts give client-side rendering more time
            await asyncio.sleep(self.settle_seconds * (attempt + 1))
            return await page.content()

    async def _extract_name(self, page: Page) -> str:
        """Stage 2: best effort, failure yields an empty name."""
        try:
            async with asyncio.timeout(self._name_timeout):
                return (await self.find_name(page)).strip()
        except (TimeoutError, PlaywrightError):
            log.debug("share_name_not_found", checker=self.name)
            return ""
