"""Xunlei (Thunder) cloud checker.

Share pages are rendered client-side; deleted, expired and blocked
shares are recognised by the text the page renders, the display name
by the file list markup.
"""

from __future__ import annotations

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from sharesniffer.domain.entities.check import CheckResult
from sharesniffer.infrastructure.checkers.browser import (
    BrowserChecker,
    KeywordRule,
    dedupe_repeated_name,
    first_matching,
)

log = structlog.get_logger(__name__)

_DELETED = "share deleted by its owner"
_EXPIRED = "share missing or expired"
_VIOLATION = "share may contain prohibited content"

_VIOLATION_KEYWORDS = ("涉及侵权", "色情", "反动", "低俗", "无法访问")

# Evaluated on the markup before name extraction
_EARLY_RULES = (
    KeywordRule(("作者删除", "分享已删除"), _DELETED),
    KeywordRule(("分享不存在", "已过期", "页面不存在"), _EXPIRED),
    KeywordRule(_VIOLATION_KEYWORDS, _VIOLATION, min_matches=2),
)

_FINAL_RULES = (
    KeywordRule(("该分享已被作者删除", "分享已删除", "share has been deleted"), _DELETED),
    KeywordRule(_VIOLATION_KEYWORDS, _VIOLATION, min_matches=2),
    KeywordRule(("暂无文件",), "share has no files"),
    KeywordRule(("分享不存在", "已过期", "页面不存在", "not found", "404"), _EXPIRED, min_matches=2),
)

# Raw (case-sensitive) markers from the page's embedded state
_NOT_FOUND_STATE_MARKERS = ("statusCode:404", 'path:"\\u002Fs')

_NAME_SELECTORS: tuple[str, ...] = (
    ".SourceListItem__name--y6dVw a span.highlight-text",
    ".SourceListItem__name--y6dVw a",
    ".SourceListItem__name--y6dVw",
    ".highlight-text",
    ".SourceListItem__title--fq2DG",
)
_SELECTOR_TIMEOUT_MS = 300


class XunleiChecker(BrowserChecker):
    name = "xunlei"
    prefixes = ("https://pan.xunlei.com/s/",)
    hosts = ("pan.xunlei.com", "lixian.vip.xunlei.com")
    early_rules = _EARLY_RULES

    async def find_name(self, page: Page) -> str:
        for selector in _NAME_SELECTORS:
            try:
                text = await page.locator(selector).first.inner_text(
                    timeout=_SELECTOR_TIMEOUT_MS
                )
            except PlaywrightError:
                continue
            if text.strip():
                return text.strip()
        return ""

    def classify(self, html: str, name: str) -> CheckResult:
        rule = first_matching(_FINAL_RULES, html)
        if rule is not None:
            return CheckResult.invalid(rule.message)
        if any(marker in html for marker in _NOT_FOUND_STATE_MARKERS):
            return CheckResult.invalid(_EXPIRED)
        if name:
            return CheckResult.valid(dedupe_repeated_name(name))
        log.info("xunlei_name_missing")
        return CheckResult.invalid("unable to get share info")
