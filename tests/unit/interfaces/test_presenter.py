"""Tests for the JSON presenter shared by CLI and API."""

from __future__ import annotations

import json

from sharesniffer.application.use_cases.batch_check import BatchReport
from sharesniffer.domain.entities import CheckResult, Outcome
from sharesniffer.interfaces.api.check.presenter import (
    present_report,
    present_result,
    present_support,
)


class TestPresentResult:
    def test_shape(self) -> None:
        result = CheckResult(
            outcome=Outcome.VALID,
            message="valid",
            url="https://pan.quark.cn/s/abcdef123456",
            name="Movie Pack",
            elapsed_ms=321,
        )
        assert present_result(result) == {
            "error": 0,
            "msg": "valid",
            "data": {
                "url": "https://pan.quark.cn/s/abcdef123456",
                "name": "Movie Pack",
                "elapsed": 321,
            },
        }

    def test_error_is_plain_int(self) -> None:
        payload = present_result(CheckResult.timeout())
        assert payload["error"] == 13
        assert type(payload["error"]) is int

    def test_serializes_non_ascii_names(self) -> None:
        payload = present_result(CheckResult.valid("电影合集"))
        text = json.dumps(payload, ensure_ascii=False)
        assert "电影合集" in text


class TestPresentReport:
    def test_report_contains_summary_and_ordered_results(self) -> None:
        report = BatchReport(
            results=[CheckResult.valid("a"), CheckResult.malformed("x", "unsupported link")],
            elapsed_ms=5,
        )
        payload = present_report(report)
        assert payload["summary"]["total"] == 2
        assert [r["error"] for r in payload["results"]] == [0, 12]


class TestPresentSupport:
    def test_flattens_prefixes(self) -> None:
        payload = present_support({"quark": ["https://pan.quark.cn/s/"], "uc": ["https://drive.uc.cn/s/"]})
        assert payload["prefixes"] == ["https://pan.quark.cn/s/", "https://drive.uc.cn/s/"]
        assert payload["checkers"]["uc"] == ["https://drive.uc.cn/s/"]
