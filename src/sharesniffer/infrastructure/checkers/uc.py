"""UC Drive checker — validates share links via the share detail API."""

from __future__ import annotations

import re
from urllib.parse import urlparse

import structlog

from sharesniffer.domain.entities.check import CheckResult
from sharesniffer.domain.exceptions import MalformedLinkError
from sharesniffer.infrastructure.checkers.base import ApiChecker, ShareLink

log = structlog.get_logger(__name__)

_URL_RE = re.compile(
    r"^https://drive\.uc\.cn/s/[a-zA-Z0-9]+(?:\?[a-zA-Z0-9=&]+)?(?:#[a-zA-Z0-9_/]+)?$"
)

_DETAIL_API = "https://pc-api.uc.cn/1/clouddrive/share/sharepage/v2/detail"

_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Content-Type": "application/json;charset=UTF-8",
    "Origin": "https://drive.uc.cn",
    "Referer": "https://drive.uc.cn/",
}


def extract_share_code(url: str) -> ShareLink:
    if not _URL_RE.match(url):
        raise MalformedLinkError(f"not a uc share url: {url}")
    code = urlparse(url).path.rsplit("/", 1)[-1].strip()
    if not code:
        raise MalformedLinkError("missing share code")
    return ShareLink(share_id=code)


class UcChecker(ApiChecker):
    """Checks UC Drive share links.

    The detail API answers with a JSON envelope even for dead shares,
    so the HTTP status is not inspected.
    """

    name = "uc"
    prefixes = ("https://drive.uc.cn/s/",)

    def parse_link(self, url: str) -> ShareLink:
        return extract_share_code(url)

    async def query(self, link: ShareLink) -> CheckResult:
        data = await self._post_json(
            _DETAIL_API,
            {
                "pwd_id": link.share_id,
                "passcode": "",
                "force": 0,
                "page": 1,
                "size": 50,
                "fetch_banner": 1,
                "fetch_share": 1,
                "fetch_total": 1,
                "sort": "file_type:asc,file_name:asc",
                "banner_platform": "other",
                "web_platform": "windows",
                "fetch_error_background": 1,
            },
            headers=_HEADERS,
            params={"pr": "UCBrowser", "fr": "pc"},
            gone_on_status=False,
        )
        if data.get("status") == 200 and data.get("code") == 0:
            share = ((data.get("data") or {}).get("detail_info") or {}).get("share") or {}
            return CheckResult.valid(share.get("title", ""))

        log.info(
            "uc_share_invalid",
            share_id=link.share_id,
            status=data.get("status"),
            code=data.get("code"),
        )
        return CheckResult.invalid(data.get("message", ""))
