"""Tests for CheckerRegistry prefix dispatch and LinkAdapter."""

from __future__ import annotations

import asyncio

import pytest

from sharesniffer.domain.entities import CheckResult, Outcome
from sharesniffer.domain.exceptions import OverlappingPrefixError
from sharesniffer.domain.ports import LinkAdapterPort, LinkCheckerPort, Weight
from sharesniffer.infrastructure.checkers import CheckerRegistry, LinkAdapter

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestCheckerRegistry:
    def test_fake_checker_satisfies_port(self, fake_checker) -> None:
        assert isinstance(fake_checker, LinkCheckerPort)

    def test_lookup_by_prefix(self, registry: CheckerRegistry, fake_checker, heavy_checker) -> None:
        assert registry.get("https://fake.example/s/abc") is fake_checker
        assert registry.get("https://heavy.example/s/abc") is heavy_checker

    def test_unknown_url_returns_none(self, registry: CheckerRegistry) -> None:
        assert registry.get("https://unknown.example/s/abc") is None
        assert registry.get("") is None

    def test_heavy_classification(self, registry: CheckerRegistry) -> None:
        assert registry.is_heavy("https://heavy.example/s/1")
        assert not registry.is_heavy("https://fake.example/s/1")
        assert not registry.is_heavy("https://unknown.example/")
        assert registry.heavy_prefixes == ["https://heavy.example/s/"]

    def test_prefixes_in_registration_order(self, registry: CheckerRegistry) -> None:
        assert registry.prefixes == ["https://fake.example/s/", "https://heavy.example/s/"]
        assert registry.names == ["fake", "heavy"]

    def test_multiple_prefixes_per_checker(self, make_checker) -> None:
        checker = make_checker(prefixes=("https://a.example/s/", "https://b.example/s/"))
        reg = CheckerRegistry([checker])
        assert reg.get("https://b.example/s/x") is checker
        assert reg.support_table() == {"fake": ["https://a.example/s/", "https://b.example/s/"]}

    def test_reregistering_same_checker_is_noop(self, fake_checker) -> None:
        reg = CheckerRegistry([fake_checker])
        reg.register(fake_checker)
        assert reg.prefixes == ["https://fake.example/s/"]

    @pytest.mark.parametrize(
        "prefix",
        [
            "https://fake.example/s/",  # identical
            "https://fake.example/s/special/",  # extends existing
            "https://fake.example/",  # is extended by existing
        ],
    )
    def test_overlapping_prefix_rejected(self, fake_checker, make_checker, prefix: str) -> None:
        reg = CheckerRegistry([fake_checker])
        other = make_checker(name="other", prefixes=(prefix,))
        with pytest.raises(OverlappingPrefixError) as exc_info:
            reg.register(other)
        assert exc_info.value.existing_owner == "fake"
        assert reg.get("https://fake.example/s/special/1") is fake_checker

    def test_rejected_registration_leaves_registry_unchanged(self, fake_checker, make_checker) -> None:
        reg = CheckerRegistry([fake_checker])
        other = make_checker(name="other", prefixes=("https://other.example/s/", "https://fake.example/"))
        with pytest.raises(OverlappingPrefixError):
            reg.register(other)
        assert reg.get("https://other.example/s/1") is None
        assert reg.prefixes == ["https://fake.example/s/"]
        assert reg.names == ["fake"]


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class TestLinkAdapter:
    def test_satisfies_link_adapter_port(self, adapter: LinkAdapter) -> None:
        assert isinstance(adapter, LinkAdapterPort)

    async def test_stamps_url_elapsed_and_trims_name(self, make_checker) -> None:
        checker = make_checker(outcome=CheckResult.of(Outcome.VALID, url="wrong", name="  movie.mkv \n"))
        adapter = LinkAdapter(CheckerRegistry([checker]))
        url = "https://fake.example/s/abc"

        result = await adapter.adapt(url)

        assert result.outcome is Outcome.VALID
        assert result.url == url
        assert result.name == "movie.mkv"
        assert result.elapsed_ms >= 0

    async def test_empty_url_is_malformed(self, adapter: LinkAdapter, fake_checker) -> None:
        result = await adapter.adapt("")
        assert result.outcome is Outcome.MALFORMED
        assert result.message == "empty link"
        assert fake_checker.calls == []

    async def test_whitespace_url_is_malformed(self, adapter: LinkAdapter) -> None:
        result = await adapter.adapt("   ")
        assert result.outcome is Outcome.MALFORMED
        assert result.url == "   "

    async def test_unsupported_url_is_malformed(self, adapter: LinkAdapter) -> None:
        url = "https://unknown.example/s/abc"
        result = await adapter.adapt(url)
        assert result.outcome is Outcome.MALFORMED
        assert result.message == "unsupported link"
        assert result.url == url

    async def test_deadline_becomes_timeout(self, make_checker) -> None:
        slow = make_checker(delay=1.0)
        adapter = LinkAdapter(CheckerRegistry([slow]), default_timeout=0.05)

        result = await adapter.adapt("https://fake.example/s/slow")

        assert result.outcome is Outcome.TIMEOUT
        assert result.url == "https://fake.example/s/slow"

    async def test_heavy_checkers_get_heavy_deadline(self, make_checker) -> None:
        heavy = make_checker(heavy=True, delay=0.1)
        adapter = LinkAdapter(CheckerRegistry([heavy]), default_timeout=0.01, heavy_timeout=2.0)
        result = await adapter.adapt("https://fake.example/s/x")
        assert result.outcome is Outcome.VALID

    async def test_unexpected_exception_becomes_fatal(self, make_checker) -> None:
        broken = make_checker(outcome=KeyError("title"))
        adapter = LinkAdapter(CheckerRegistry([broken]))

        result = await adapter.adapt("https://fake.example/s/x")

        assert result.outcome is Outcome.FATAL
        assert "title" in result.message

    async def test_cancellation_propagates(self, make_checker) -> None:
        slow = make_checker(delay=5.0)
        adapter = LinkAdapter(CheckerRegistry([slow]), default_timeout=10.0)

        task = asyncio.create_task(adapter.adapt("https://fake.example/s/x"))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    def test_weight_for(self, adapter: LinkAdapter) -> None:
        assert adapter.weight_for("https://heavy.example/s/1") is Weight.HEAVY
        assert adapter.weight_for("https://fake.example/s/1") is Weight.NORMAL
        assert adapter.weight_for("https://nope/") is Weight.NORMAL
