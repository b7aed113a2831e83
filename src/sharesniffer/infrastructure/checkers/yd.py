"""China Mobile cloud (yun.139.com) checker."""

from __future__ import annotations

import structlog
from playwright.async_api import Page

from sharesniffer.domain.entities.check import CheckResult
from sharesniffer.infrastructure.checkers.browser import (
    BrowserChecker,
    KeywordRule,
    count_keywords,
    dedupe_repeated_name,
    first_matching,
)

log = structlog.get_logger(__name__)

_CANCELED = KeywordRule(("share has been canceled", "分享已取消"), "share cancelled by its owner")
_LOGIN = KeywordRule(
    ("必须登录才能访问", "请先登录", "登录后才能查看", "login to access", "require login"),
    "login required to view this share",
)
_WRONG_PASSWORD = KeywordRule(("密码错误", "wrong password", "提取码错误"), "wrong passcode")
_MISSING = KeywordRule(
    ("分享不存在", "该分享不存在", "分享已过期", "分享已删除", "share expired", "not found"),
    "share missing or expired",
)
# Any one of these pairs (or the standalone marker) means a 404 page
_NOT_FOUND_PAIRS = (("404", "页面不存在"), ("404", "not found"))
_NOT_FOUND_MARKER = "找不到页面"

# Page chrome only present on a rendered share
_VALID_FEATURES = (
    "yun.139.com",
    "分享文件",
    "shared files",
    "分享信息",
    "share info",
    "文件列表",
    "file list",
    "下载",
    "download",
)

_FILE_NAMES_JS = r"""
() => {
  const selectors = [
    '.name-box', '.share-title', '.file-name', '.name', '.title', 'h1',
    '.list-item-name', '.file-list-item-name', '.cloud-file-name',
    '.file-info-name', '.share-file-name', '.shared-file-title',
    '.folder-name', '.folder-title', '[class*="name"]', '[class*="title"]',
    '.share-info h3', '.file-detail h2', '.file-list .name'
  ];
  const minLength = 4;
  const irrelevant = /(login|登录|password|密码|扫码|手机|账号|验证码|短信验证|分享：|文件名|给你分享了文件|修改账号登录密码|为保证您的账户安全|举报|选择原因|提交|\*\*\*)/i;
  const videoExt = ['.mp4', '.mkv', '.avi', '.mov', '.wmv', '.flv', '.webm', '.mpeg', '.mpg', '.m4v', '.ts'];
  const keep = (t) => t && t.length >= minLength && !irrelevant.test(t);
  const rank = (names) => {
    const videos = names.filter((n) => videoExt.some((e) => n.toLowerCase().endsWith(e)));
    return (videos.length ? videos : names).sort((a, b) => b.length - a.length);
  };

  const structured = [];
  for (const item of document.querySelectorAll('.file-list-item, .list-item')) {
    const el = item.querySelector('.name, .file-name');
    const text = el ? el.textContent.trim() : '';
    if (keep(text)) structured.push(text);
  }
  if (structured.length) return rank(structured);

  const names = new Set();
  for (const selector of selectors) {
    try {
      for (const el of document.querySelectorAll(selector)) {
        const text = el.textContent.trim();
        if (keep(text)) names.add(text);
      }
    } catch (e) {}
  }
  return rank(Array.from(names));
}
"""


def _is_not_found_page(html: str) -> bool:
    lowered = html.lower()
    if _NOT_FOUND_MARKER in lowered:
        return True
    return any(count_keywords(lowered, pair) == len(pair) for pair in _NOT_FOUND_PAIRS)


class YdChecker(BrowserChecker):
    """Checks yun.139.com shares.

    The first navigation often returns before the SPA mounts, so capture
    is retried once in a fresh session with a longer settle delay.
    """

    name = "yd"
    prefixes = ("https://yun.139.com/shareweb/",)
    hosts = ("yun.139.com",)
    # Login banners are judged after name extraction
    early_rules = (_CANCELED, _WRONG_PASSWORD, _MISSING)
    capture_attempts = 2

    async def find_name(self, page: Page) -> str:
        names = await page.evaluate(_FILE_NAMES_JS)
        if isinstance(names, list) and names:
            return str(names[0])
        return ""

    def classify(self, html: str, name: str) -> CheckResult:
        rules = (_CANCELED, _WRONG_PASSWORD, _MISSING)
        if not name:
            # A visible file name wins over a login banner
            rules = (_CANCELED, _LOGIN, _WRONG_PASSWORD, _MISSING)
        rule = first_matching(rules, html)
        if rule is not None:
            return CheckResult.invalid(rule.message)
        if _is_not_found_page(html):
            return CheckResult.invalid(_MISSING.message)

        name = dedupe_repeated_name(name)
        if name or count_keywords(html, _VALID_FEATURES) > 0:
            return CheckResult.valid(name)
        log.info("yd_share_info_missing")
        return CheckResult.invalid("unable to get share info")
