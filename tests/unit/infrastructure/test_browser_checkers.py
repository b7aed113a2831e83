"""Tests for BrowserSessionFactory and the browser-based checkers (Xunlei, Yd)."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sharesniffer.domain.entities import Outcome
from sharesniffer.infrastructure.checkers.browser import (
    _BLOCKED_RESOURCE_TYPES,
    _LAUNCH_ARGS,
    BrowserSessionFactory,
    KeywordRule,
    _block_resources,
    count_keywords,
    dedupe_repeated_name,
    first_matching,
)
from sharesniffer.infrastructure.checkers.xunlei import XunleiChecker
from sharesniffer.infrastructure.checkers.yd import YdChecker

_PATCH_PW = "sharesniffer.infrastructure.checkers.browser.async_playwright"

_XUNLEI_URL = "https://pan.xunlei.com/s/VNabcdefgh?pwd=ab12"
_YD_URL = "https://yun.139.com/shareweb/#/w/i/0a5CJ4m7vQ9Ik"


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _mock_playwright_stack() -> tuple[AsyncMock, AsyncMock, AsyncMock]:
    """Return (playwright, browser, context) mocks wired together."""
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=AsyncMock())
    context.route = AsyncMock()
    context.close = AsyncMock()

    browser = AsyncMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    browser.is_connected = MagicMock(return_value=True)

    playwright = AsyncMock()
    playwright.chromium = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()

    return playwright, browser, context


def _mock_page(
    *,
    html: str = "<html><body></body></html>",
    names: list[str] | None = None,
    goto_error: Exception | None = None,
) -> MagicMock:
    """Mock Page: goto/wait_for_selector/content/evaluate/locator."""
    page = MagicMock()
    page.goto = AsyncMock(side_effect=goto_error)
    page.wait_for_selector = AsyncMock()
    page.content = AsyncMock(return_value=html)
    page.evaluate = AsyncMock(return_value=names or [])
    locator = MagicMock()
    locator.first.inner_text = AsyncMock(
        side_effect=PlaywrightError("no element") if not names else None,
        return_value=names[0] if names else "",
    )
    page.locator = MagicMock(return_value=locator)
    return page


class _FakeSessions:
    """Hands out the given pages in order, one per session."""

    def __init__(self, *pages: MagicMock) -> None:
        self._pages = list(pages)
        self.opened = 0
        self.closed = 0

    @asynccontextmanager
    async def session(self) -> AsyncIterator[MagicMock]:
        page = self._pages[min(self.opened, len(self._pages) - 1)]
        self.opened += 1
        try:
            yield page
        finally:
            self.closed += 1


@pytest.fixture(autouse=True)
def _no_settle_delay(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(XunleiChecker, "settle_seconds", 0.0)
    monkeypatch.setattr(YdChecker, "settle_seconds", 0.0)


# ------------------------------------------------------------------
# _block_resources
# ------------------------------------------------------------------


class TestBlockResources:
    @pytest.mark.parametrize("rtype", sorted(_BLOCKED_RESOURCE_TYPES))
    async def test_blocks_heavy_resource(self, rtype: str) -> None:
        route = AsyncMock()
        route.request = MagicMock()
        route.request.resource_type = rtype
        await _block_resources(route)
        route.abort.assert_awaited_once()
        route.continue_.assert_not_awaited()

    @pytest.mark.parametrize("rtype", ["document", "script", "xhr", "fetch"])
    async def test_allows_essential_resources(self, rtype: str) -> None:
        route = AsyncMock()
        route.request = MagicMock()
        route.request.resource_type = rtype
        await _block_resources(route)
        route.continue_.assert_awaited_once()
        route.abort.assert_not_awaited()


# ------------------------------------------------------------------
# BrowserSessionFactory lifecycle
# ------------------------------------------------------------------


class TestBrowserSessionFactory:
    @patch(_PATCH_PW)
    async def test_launches_once_and_reuses_browser(self, mock_ap: MagicMock) -> None:
        pw, browser, _ = _mock_playwright_stack()
        mock_ap.return_value.start = AsyncMock(return_value=pw)

        sessions = BrowserSessionFactory(headless=True)
        async with sessions.session():
            pass
        async with sessions.session():
            pass

        pw.chromium.launch.assert_awaited_once_with(headless=True, args=list(_LAUNCH_ARGS))
        assert browser.new_context.await_count == 2
        assert sessions.is_running

    @patch(_PATCH_PW)
    async def test_session_blocks_resources_and_closes_context(self, mock_ap: MagicMock) -> None:
        pw, _, context = _mock_playwright_stack()
        mock_ap.return_value.start = AsyncMock(return_value=pw)

        sessions = BrowserSessionFactory()
        async with sessions.session() as page:
            assert page is context.new_page.return_value

        context.route.assert_awaited_once_with("**/*", _block_resources)
        context.close.assert_awaited_once()

    @patch(_PATCH_PW)
    async def test_context_closed_when_body_raises(self, mock_ap: MagicMock) -> None:
        pw, _, context = _mock_playwright_stack()
        mock_ap.return_value.start = AsyncMock(return_value=pw)

        sessions = BrowserSessionFactory()
        with pytest.raises(RuntimeError):
            async with sessions.session():
                raise RuntimeError("boom")

        context.close.assert_awaited_once()

    @patch(_PATCH_PW)
    async def test_relaunches_after_disconnect(self, mock_ap: MagicMock) -> None:
        pw, browser, _ = _mock_playwright_stack()
        mock_ap.return_value.start = AsyncMock(return_value=pw)

        sessions = BrowserSessionFactory()
        async with sessions.session():
            pass
        browser.is_connected.return_value = False
        async with sessions.session():
            pass

        assert pw.chromium.launch.await_count == 2
        pw.stop.assert_awaited_once()

    @patch(_PATCH_PW)
    async def test_cleanup_is_idempotent(self, mock_ap: MagicMock) -> None:
        pw, browser, _ = _mock_playwright_stack()
        mock_ap.return_value.start = AsyncMock(return_value=pw)

        sessions = BrowserSessionFactory()
        async with sessions.session():
            pass
        await sessions.cleanup()
        await sessions.cleanup()

        browser.close.assert_awaited_once()
        pw.stop.assert_awaited_once()
        assert not sessions.is_running

    async def test_cleanup_without_launch_is_noop(self) -> None:
        sessions = BrowserSessionFactory()
        await sessions.cleanup()
        assert not sessions.is_running


# ------------------------------------------------------------------
# Keyword helpers
# ------------------------------------------------------------------


class TestKeywordHelpers:
    def test_count_keywords_distinct_case_insensitive(self) -> None:
        assert count_keywords("Not Found ... not found ... 404", ("not found", "404", "x")) == 2

    def test_rule_threshold(self) -> None:
        rule = KeywordRule(("a", "b", "c"), "gone", min_matches=2)
        assert not rule.matches("only a here")
        assert rule.matches("a and b")

    def test_first_matching_respects_order(self) -> None:
        first = KeywordRule(("x",), "first")
        second = KeywordRule(("x",), "second")
        assert first_matching((first, second), "x") is first
        assert first_matching((first, second), "y") is None

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("movie.mkvmovie.mkv", "movie.mkv"),
            ("  abab  ", "ab"),
            ("movie.mkv", "movie.mkv"),
            ("abcab", "abcab"),
            ("", ""),
        ],
    )
    def test_dedupe_repeated_name(self, raw: str, expected: str) -> None:
        assert dedupe_repeated_name(raw) == expected


# ------------------------------------------------------------------
# XunleiChecker
# ------------------------------------------------------------------


class TestXunleiChecker:
    def test_metadata(self) -> None:
        checker = XunleiChecker(_FakeSessions(_mock_page()))
        assert checker.heavy is True
        assert checker.prefixes == ("https://pan.xunlei.com/s/",)

    async def test_valid_share_with_name(self) -> None:
        page = _mock_page(html="<div>file list</div>", names=["Season 1Season 1"])
        sessions = _FakeSessions(page)

        result = await XunleiChecker(sessions).check(_XUNLEI_URL)

        assert result.outcome is Outcome.VALID
        assert result.name == "Season 1"
        page.goto.assert_awaited_once()
        assert page.goto.await_args.kwargs["wait_until"] == "domcontentloaded"
        assert sessions.closed == 1

    async def test_deleted_share_detected_before_name_lookup(self) -> None:
        page = _mock_page(html="<p>该分享已被作者删除</p>")

        result = await XunleiChecker(_FakeSessions(page)).check(_XUNLEI_URL)

        assert result.outcome is Outcome.INVALID
        assert result.message == "share deleted by its owner"
        page.locator.assert_not_called()

    async def test_single_violation_keyword_is_not_enough(self) -> None:
        page = _mock_page(html="<p>色情</p>", names=["clip.mp4"])
        result = await XunleiChecker(_FakeSessions(page)).check(_XUNLEI_URL)
        assert result.outcome is Outcome.VALID

    async def test_two_violation_keywords_invalidate(self) -> None:
        page = _mock_page(html="<p>涉及侵权 无法访问</p>", names=["clip.mp4"])
        result = await XunleiChecker(_FakeSessions(page)).check(_XUNLEI_URL)
        assert result.outcome is Outcome.INVALID

    async def test_embedded_404_state_is_invalid(self) -> None:
        page = _mock_page(html="<script>{statusCode:404}</script>", names=["x.mkv"])
        result = await XunleiChecker(_FakeSessions(page)).check(_XUNLEI_URL)
        assert result.outcome is Outcome.INVALID

    async def test_embedded_share_root_path_is_invalid(self) -> None:
        page = _mock_page(html=r'<script>{route:{path:"/s/VNabc"}}</script>', names=["x.mkv"])
        result = await XunleiChecker(_FakeSessions(page)).check(_XUNLEI_URL)
        assert result.outcome is Outcome.INVALID
        assert result.message == "share missing or expired"

    async def test_missing_name_is_invalid(self) -> None:
        page = _mock_page(html="<div>loading</div>")
        result = await XunleiChecker(_FakeSessions(page)).check(_XUNLEI_URL)
        assert result.outcome is Outcome.INVALID
        assert result.message == "unable to get share info"

    async def test_navigation_timeout_is_timeout(self) -> None:
        page = _mock_page(goto_error=PlaywrightTimeoutError("Timeout 10000ms exceeded"))
        sessions = _FakeSessions(page)

        result = await XunleiChecker(sessions).check(_XUNLEI_URL)

        assert result.outcome is Outcome.TIMEOUT
        assert sessions.closed == 1

    async def test_browser_error_is_fatal(self) -> None:
        page = _mock_page(goto_error=PlaywrightError("net::ERR_CONNECTION_RESET"))
        result = await XunleiChecker(_FakeSessions(page)).check(_XUNLEI_URL)
        assert result.outcome is Outcome.FATAL

    async def test_wrong_host_is_malformed_without_session(self) -> None:
        sessions = _FakeSessions(_mock_page())
        result = await XunleiChecker(sessions).check("https://pan.xunlei.evil.com.example/s/x")
        assert result.outcome is Outcome.MALFORMED
        assert sessions.opened == 0


# ------------------------------------------------------------------
# YdChecker
# ------------------------------------------------------------------


class TestYdChecker:
    async def test_valid_share_uses_first_ranked_name(self) -> None:
        page = _mock_page(html="<div>分享文件</div>", names=["movie.mp4", "readme.txt"])
        result = await YdChecker(_FakeSessions(page)).check(_YD_URL)
        assert result.outcome is Outcome.VALID
        assert result.name == "movie.mp4"

    async def test_valid_features_without_name(self) -> None:
        page = _mock_page(html="<div>文件列表 下载</div>")
        result = await YdChecker(_FakeSessions(page)).check(_YD_URL)
        assert result.outcome is Outcome.VALID
        assert result.name == ""

    async def test_cancelled_share(self) -> None:
        page = _mock_page(html="<div>分享已取消</div>")
        result = await YdChecker(_FakeSessions(page)).check(_YD_URL)
        assert result.outcome is Outcome.INVALID
        assert result.message == "share cancelled by its owner"

    async def test_login_wall_without_name_is_invalid(self) -> None:
        page = _mock_page(html="<div>请先登录</div>")
        result = await YdChecker(_FakeSessions(page)).check(_YD_URL)
        assert result.outcome is Outcome.INVALID
        assert result.message == "login required to view this share"

    async def test_login_banner_ignored_when_name_visible(self) -> None:
        page = _mock_page(html="<div>请先登录</div>", names=["album.zip"])
        result = await YdChecker(_FakeSessions(page)).check(_YD_URL)
        assert result.outcome is Outcome.VALID
        assert result.name == "album.zip"

    async def test_not_found_page(self) -> None:
        page = _mock_page(html="<h1>404</h1><p>页面不存在</p>")
        result = await YdChecker(_FakeSessions(page)).check(_YD_URL)
        assert result.outcome is Outcome.INVALID

    async def test_nothing_recognisable_is_invalid(self) -> None:
        page = _mock_page(html="<div></div>")
        result = await YdChecker(_FakeSessions(page)).check(_YD_URL)
        assert result.outcome is Outcome.INVALID
        assert result.message == "unable to get share info"

    async def test_capture_retried_in_fresh_session(self) -> None:
        failing = _mock_page(goto_error=PlaywrightError("Target closed"))
        healthy = _mock_page(html="<div>分享文件</div>", names=["a.mkv"])
        sessions = _FakeSessions(failing, healthy)

        result = await YdChecker(sessions).check(_YD_URL)

        assert result.outcome is Outcome.VALID
        assert sessions.opened == 2
        assert sessions.closed == 2

    async def test_name_lookup_failure_degrades_to_empty_name(self) -> None:
        page = _mock_page(html="<div>分享文件</div>")
        page.evaluate = AsyncMock(side_effect=PlaywrightError("Execution context destroyed"))
        result = await YdChecker(_FakeSessions(page)).check(_YD_URL)
        assert result.outcome is Outcome.VALID
        assert result.name == ""
