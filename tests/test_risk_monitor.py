"""Tests for the navigation risk monitor.

Covers: both detection rules, malformed input, host filter, one-way
disable, idempotency, both navigation hooks, audit trail.
"""

from unittest.mock import patch

import pytest

from task_relay.core.audit_log import AuditLogger
from task_relay.core.config_store import MISSING, MemoryConfigStore
from task_relay.core.settings import RelaySettings
from task_relay.guardian.risk_monitor import (
    NavigationEvent,
    NavigationPhase,
    RiskMonitor,
    is_risk_url,
)


class TestIsRiskUrl:
    def test_bare_item_root_is_risky(self):
        assert is_risk_url("https://item.jd.com/") is True

    def test_bare_item_host_without_slash_is_risky(self):
        assert is_risk_url("https://item.jd.com") is True

    def test_item_page_is_safe(self):
        assert is_risk_url("https://item.jd.com/123456.html") is False

    def test_obfuscator_param_any_host(self):
        assert is_risk_url("https://example.com/p?isvObfuscator=1") is True

    def test_obfuscator_param_on_item_page(self):
        assert is_risk_url("https://item.jd.com/1.html?isvObfuscator=1") is True

    def test_obfuscator_other_value(self):
        assert is_risk_url("https://item.jd.com/1.html?isvObfuscator=0") is False

    def test_obfuscator_first_value_wins(self):
        assert is_risk_url("https://a.jd.com/?isvObfuscator=1&isvObfuscator=0") is True
        assert is_risk_url("https://a.jd.com/x?isvObfuscator=0&isvObfuscator=1") is False

    @pytest.mark.parametrize("url", ["file:///x?isvObfuscator=1", "mailto:?isvObfuscator=1"])
    def test_obfuscator_param_without_host(self, url):
        assert is_risk_url(url) is True

    def test_hostless_url_without_param_is_safe(self):
        assert is_risk_url("file:///") is False

    def test_not_a_url(self):
        assert is_risk_url("not a url") is False

    @pytest.mark.parametrize("url", ["", None, "/relative?isvObfuscator=1", "https://", "http://item.jd.com:notaport/"])
    def test_malformed_never_raises(self, url):
        assert is_risk_url(url) is False

    def test_other_jd_root_is_safe(self):
        assert is_risk_url("https://www.jd.com/") is False

    def test_host_compare_case_insensitive(self):
        assert is_risk_url("https://ITEM.JD.COM/") is True

    def test_item_root_with_query_still_risky(self):
        assert is_risk_url("https://item.jd.com/?from=search") is True

    def test_custom_settings(self):
        s = RelaySettings(risk_host="item.example.com", risk_param="flag", risk_value="yes")
        assert is_risk_url("https://item.example.com/", s) is True
        assert is_risk_url("https://x.com/?flag=yes", s) is True
        assert is_risk_url("https://item.jd.com/", s) is False


@pytest.fixture
def store():
    return MemoryConfigStore({"enabled": True})


@pytest.fixture
def monitor(store):
    return RiskMonitor(RelaySettings(), store)


class TestRiskMonitor:
    def test_filter_requires_marketplace_host(self, monitor):
        assert monitor.matches_filter("https://item.jd.com/1.html") is True
        assert monitor.matches_filter("https://passport.jd.com/login") is True
        assert monitor.matches_filter("https://example.com/?isvObfuscator=1") is False
        assert monitor.matches_filter("not a url") is False

    @pytest.mark.asyncio
    async def test_risky_navigation_disables(self, monitor, store):
        assert await monitor.on_completed("https://item.jd.com/") is True
        assert store.snapshot()["enabled"] is False

    @pytest.mark.asyncio
    async def test_before_navigate_hook(self, monitor, store):
        assert await monitor.on_before_navigate("https://cart.jd.com/?isvObfuscator=1") is True
        assert store.snapshot()["enabled"] is False

    @pytest.mark.asyncio
    async def test_safe_navigation_leaves_flag(self, monitor, store):
        assert await monitor.on_completed("https://item.jd.com/100012043978.html") is False
        assert store.snapshot()["enabled"] is True

    @pytest.mark.asyncio
    async def test_off_marketplace_ignored(self, monitor, store):
        assert await monitor.on_completed("https://example.com/p?isvObfuscator=1") is False
        assert store.snapshot()["enabled"] is True

    @pytest.mark.asyncio
    async def test_malformed_url_ignored(self, monitor, store):
        assert await monitor.on_completed("not a url") is False
        assert store.snapshot() == {"enabled": True}

    @pytest.mark.asyncio
    async def test_idempotent(self, monitor, store):
        await monitor.on_completed("https://item.jd.com/")
        await monitor.on_before_navigate("https://item.jd.com/")
        assert monitor.detections == 2
        assert store.snapshot()["enabled"] is False

    @pytest.mark.asyncio
    async def test_one_way_never_reenables(self, monitor, store):
        await monitor.on_completed("https://item.jd.com/")
        for url in (
            "https://item.jd.com/1.html",
            "https://www.jd.com/",
            "https://search.jd.com/Search?keyword=x",
        ):
            await monitor.on_completed(url)
        assert store.snapshot()["enabled"] is False

    @pytest.mark.asyncio
    async def test_sets_flag_when_previously_unset(self):
        store = MemoryConfigStore()
        monitor = RiskMonitor(RelaySettings(), store)
        assert (await store.get(["enabled"]))["enabled"] is MISSING
        await monitor.on_navigation(NavigationEvent("https://item.jd.com/"))
        assert store.snapshot() == {"enabled": False}

    @pytest.mark.asyncio
    async def test_detection_audited(self, monitor, audit_lines):
        await monitor.on_navigation(
            NavigationEvent("https://item.jd.com/", NavigationPhase.BEFORE_NAVIGATE)
        )
        events = [e for e in audit_lines() if e.get("event_type") == "relay.disabled"]
        assert len(events) == 1
        assert events[0]["severity"] == "alert"
        assert events[0]["details"]["phase"] == "before_navigate"
        detected = [e for e in audit_lines() if e.get("event_type") == "risk.detected"]
        assert len(detected) == 1
        assert detected[0]["severity"] == "investigate"
        assert detected[0]["details"]["url"] == "https://item.jd.com/"

    @pytest.mark.asyncio
    async def test_audit_write_failure_still_disables(self, monitor, store):
        with patch.object(
            AuditLogger, "log_event", side_effect=OSError("No space left on device")
        ):
            assert await monitor.on_completed("https://item.jd.com/") is True
        assert store.snapshot()["enabled"] is False

    @pytest.mark.asyncio
    async def test_hostless_risk_url_outside_filter(self, monitor, store):
        assert monitor.is_risk("file:///x?isvObfuscator=1") is True
        assert await monitor.on_completed("file:///x?isvObfuscator=1") is False
        assert store.snapshot()["enabled"] is True
