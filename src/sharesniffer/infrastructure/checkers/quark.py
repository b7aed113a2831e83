"""Quark Drive checker — validates share links via the share token API.

Share URLs follow the pattern:
    https://pan.quark.cn/s/{pwd_id}[?pwd={passcode}]

Availability is checked via:
    POST https://drive-h.quark.cn/1/clouddrive/share/sharepage/token
    {"pwd_id": ..., "passcode": ..., "support_visit_limit_private_share": true}
    → {"status": 200, "code": 0, "data": {"title": "..."}}
"""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

import structlog

from sharesniffer.domain.entities.check import CheckResult
from sharesniffer.domain.exceptions import MalformedLinkError
from sharesniffer.infrastructure.checkers.base import ApiChecker, ShareLink

log = structlog.get_logger(__name__)

_URL_RE = re.compile(r"^https://pan\.quark\.cn/s/[a-zA-Z0-9]+(?:\?pwd=[a-zA-Z0-9]*)?$")

_TOKEN_API = "https://drive-h.quark.cn/1/clouddrive/share/sharepage/token"

_HEADERS = {
    "Content-Type": "application/json",
    "Origin": "https://pan.quark.cn",
    "Referer": "https://pan.quark.cn/",
}


def extract_share_params(url: str) -> ShareLink:
    """Extract ``pwd_id`` and optional ``pwd`` from a Quark share URL."""
    if not _URL_RE.match(url):
        raise MalformedLinkError(f"not a quark share url: {url}")
    parsed = urlparse(url)
    share_id = parsed.path.rsplit("/", 1)[-1].strip()
    if not 8 <= len(share_id) <= 100:
        raise MalformedLinkError(f"share id length {len(share_id)} outside 8-100")
    passcode = parse_qs(parsed.query).get("pwd", [""])[0].strip()
    if passcode and not 2 <= len(passcode) <= 50:
        raise MalformedLinkError(f"passcode length {len(passcode)} outside 2-50")
    return ShareLink(share_id=share_id, passcode=passcode)


class QuarkChecker(ApiChecker):
    """Checks Quark Drive share links."""

    name = "quark"
    prefixes = ("https://pan.quark.cn/s/",)

    def parse_link(self, url: str) -> ShareLink:
        return extract_share_params(url)

    async def query(self, link: ShareLink) -> CheckResult:
        data = await self._post_json(
            _TOKEN_API,
            {
                "pwd_id": link.share_id,
                "passcode": link.passcode,
                "support_visit_limit_private_share": True,
            },
            headers=_HEADERS,
        )
        if data.get("status") != 200 or data.get("code") != 0:
            log.info(
                "quark_share_invalid",
                share_id=link.share_id,
                status=data.get("status"),
                code=data.get("code"),
            )
            return CheckResult.invalid("share link expired or missing")

        title = (data.get("data") or {}).get("title", "")
        log.debug("quark_share_valid", share_id=link.share_id, title=title)
        return CheckResult.valid(title)
