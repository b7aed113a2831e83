"""Alipan (Aliyun Drive) checker — anonymous share lookup."""

from __future__ import annotations

from urllib.parse import urlparse

from sharesniffer.domain.entities.check import CheckResult
from sharesniffer.domain.exceptions import MalformedLinkError
from sharesniffer.infrastructure.checkers.base import ApiChecker, ShareLink

_SHARE_API = "https://api.aliyundrive.com/adrive/v3/share_link/get_share_by_anonymous"

_HEADERS = {
    "Authorization": "",
    "Content-Type": "application/json",
    "Origin": "https://www.alipan.com",
    "Referer": "https://www.alipan.com/",
    "X-Canary": "client=web,app=share,version=v2.3.1",
}


def extract_share_id(url: str) -> ShareLink:
    """Return the last path segment of an Alipan share URL."""
    parts = urlparse(url).path.strip("/").split("/")
    share_id = parts[-1] if parts else ""
    if not share_id or share_id == "s":
        raise MalformedLinkError("missing share id")
    return ShareLink(share_id=share_id)


class AliPanChecker(ApiChecker):
    name = "alipan"
    prefixes = ("https://www.alipan.com/s/",)

    def parse_link(self, url: str) -> ShareLink:
        return extract_share_id(url)

    async def query(self, link: ShareLink) -> CheckResult:
        data = await self._post_json(
            _SHARE_API,
            {"share_id": link.share_id},
            headers=_HEADERS,
            params={"share_id": link.share_id},
        )
        title = (
            data.get("share_title")
            or data.get("share_name")
            or data.get("display_name")
            or ""
        )
        return CheckResult.valid(title)
