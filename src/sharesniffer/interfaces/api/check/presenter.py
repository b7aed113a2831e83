"""JSON presentation of check results, shared by the CLI and the HTTP API."""

from __future__ import annotations

from typing import Any

from sharesniffer.application.use_cases.batch_check import BatchReport
from sharesniffer.domain.entities import CheckResult


def present_result(result: CheckResult) -> dict[str, Any]:
    """Render one result as ``{"error", "msg", "data": {"url", "name", "elapsed"}}``."""
    return {
        "error": int(result.outcome),
        "msg": result.message,
        "data": {
            "url": result.url,
            "name": result.name,
            "elapsed": result.elapsed_ms,
        },
    }


def present_report(report: BatchReport) -> dict[str, Any]:
    return {
        "summary": report.summary(),
        "results": [present_result(r) for r in report.results],
    }


def present_support(table: dict[str, list[str]]) -> dict[str, Any]:
    prefixes = [prefix for group in table.values() for prefix in group]
    return {"checkers": table, "prefixes": prefixes}
