"""Tests for click recording, client IP resolution and user-agent classification."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from shortlink.core.exceptions import DatabaseError
from shortlink.db.models import Link, utcnow
from shortlink.services.click_recorder import (
    RequestMetadata,
    build_click_event,
    extract_client_ip,
)
from shortlink.services.user_agent import classify_user_agent

IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)
IPAD = (
    "Mozilla/5.0 (iPad; CPU OS 13_2 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/13.0.3 Mobile/15E148 Safari/604.1"
)
CHROME_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
GOOGLEBOT = "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)"


class TestClientIP:

    def test_forwarded_for_wins(self):
        metadata = RequestMetadata(
            client_host="10.0.0.1",
            forwarded_for="203.0.113.7, 70.41.3.18",
            real_ip="198.51.100.2",
        )
        assert extract_client_ip(metadata) == "203.0.113.7"

    def test_real_ip_then_socket(self):
        assert extract_client_ip(RequestMetadata(client_host="10.0.0.1", real_ip="198.51.100.2")) == "198.51.100.2"
        assert extract_client_ip(RequestMetadata(client_host="10.0.0.1")) == "10.0.0.1"

    def test_unknown(self):
        assert extract_client_ip(RequestMetadata()) == "unknown"


class TestUserAgent:

    @pytest.mark.parametrize("user_agent, device", [
        (IPHONE, "mobile"),
        (IPAD, "tablet"),
        (CHROME_WINDOWS, "desktop"),
        (GOOGLEBOT, "bot"),
    ])
    def test_device(self, user_agent, device):
        assert classify_user_agent(user_agent).device == device

    def test_browser_and_os(self):
        info = classify_user_agent(CHROME_WINDOWS)
        assert info.browser == "Chrome"
        assert info.os == "Windows"

    @pytest.mark.parametrize("user_agent", [None, "", "definitely-not-a-browser"])
    def test_unrecognised(self, user_agent):
        info = classify_user_agent(user_agent)
        assert info.device == "desktop"
        assert info.browser == "Unknown"
        assert info.os == "Unknown"


def test_build_click_event_defaults():
    event = build_click_event("abc", RequestMetadata(country="us"))

    assert event.code == "abc"
    assert event.ip == "unknown"
    assert event.user_agent == "Unknown"
    assert event.referrer == "Direct"
    assert event.device == "desktop"
    assert event.country == "US"


class TestRecorder:

    async def test_record_appends_event_and_counts(self, store, recorder):
        await store.insert_unique(Link(code="rec1", destination_url="https://example.com"))

        await recorder.record("rec1", RequestMetadata(user_agent=IPHONE, referrer="https://t.co/x"))

        stored = await store.find_by_code("rec1")
        assert stored.clicks == 1
        events = await store.list_click_events("rec1", utcnow() - timedelta(minutes=1))
        assert [(e.device, e.referrer) for e in events] == [("mobile", "https://t.co/x")]

    async def test_record_never_raises(self, store, recorder, caplog):
        with patch.object(store, "append_click_event", side_effect=DatabaseError("disk full")):
            await recorder.record("rec1", RequestMetadata())

        assert "Failed to record click for rec1" in caplog.text
