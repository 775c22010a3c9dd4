"""Tests for link statistics, rolling summaries and the overview."""

from datetime import datetime, timedelta, timezone

import pytest

from shortlink.core.exceptions import ShortCodeNotFoundError
from shortlink.db.models import ClickEvent, Link
from shortlink.services.stats_service import referrer_host

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def at(day: int, hour: int) -> datetime:
    return datetime(2026, 3, day, hour, 0, tzinfo=timezone.utc)


def event(timestamp: datetime, **fields) -> ClickEvent:
    return ClickEvent(code="", timestamp=timestamp, ip="127.0.0.1", **fields)


@pytest.fixture
async def link(store) -> Link:
    return await store.insert_unique(Link(code="stats1", destination_url="https://example.com"))


async def add_events(store, code, events):
    for item in events:
        await store.append_click_event(code, item)


class TestSummarize:

    async def test_daily_buckets(self, store, stats_service, link):
        await add_events(store, link.code, [
            event(at(8, 13)),
            event(at(9, 13)),
            event(at(9, 14)),
            event(at(10, 8)),
        ])

        summary = await stats_service.summarize(link.code, window_days=2, now=NOW)

        assert summary["clicks_by_date"] == [
            {"date": "2026-03-09", "count": 2},
            {"date": "2026-03-10", "count": 1},
        ]
        # The 03-08 afternoon click is inside the 48h window but before the first bucket
        assert summary["total_clicks"] == 4

    async def test_events_before_window_are_ignored(self, store, stats_service, link):
        await add_events(store, link.code, [event(at(1, 12)), event(at(10, 9))])

        summary = await stats_service.summarize(link.code, window_days=7, now=NOW)

        assert summary["total_clicks"] == 1

    async def test_events_after_now_are_ignored(self, store, stats_service, link):
        await add_events(store, link.code, [
            event(at(10, 9), browser="Chrome"),
            event(at(10, 15), browser="Firefox"),
        ])

        summary = await stats_service.summarize(link.code, window_days=2, now=NOW)

        assert summary["total_clicks"] == 1
        assert summary["clicks_by_date"][-1] == {"date": "2026-03-10", "count": 1}
        assert summary["top_browsers"] == [{"name": "Chrome", "count": 1}]

    async def test_zero_count_days(self, stats_service, link):
        summary = await stats_service.summarize(link.code, window_days=7, now=NOW)

        assert summary["total_clicks"] == 0
        assert len(summary["clicks_by_date"]) == 7
        assert summary["clicks_by_date"][0]["date"] == "2026-03-04"
        assert summary["clicks_by_date"][-1]["date"] == "2026-03-10"
        assert all(day["count"] == 0 for day in summary["clicks_by_date"])
        assert summary["top_browsers"] == []
        assert summary["top_referrers"] == []

    async def test_rankings(self, store, stats_service, link):
        browsers = ["Chrome"] * 4 + ["Firefox"] * 3 + ["Safari", "Edge", "Opera", "Brave", "Vivaldi"]
        await add_events(store, link.code, [
            event(at(10, 1) + timedelta(minutes=index), browser=name, device="desktop")
            for index, name in enumerate(browsers)
        ])

        summary = await stats_service.summarize(link.code, now=NOW)

        assert summary["top_browsers"] == [
            {"name": "Chrome", "count": 4},
            {"name": "Firefox", "count": 3},
            {"name": "Safari", "count": 1},
            {"name": "Edge", "count": 1},
            {"name": "Opera", "count": 1},
        ]
        assert summary["top_devices"] == [{"name": "desktop", "count": 12}]

    async def test_referrers_and_countries(self, store, stats_service, link):
        await add_events(store, link.code, [
            event(at(10, 1), referrer="https://www.google.com/search?q=a", country="US"),
            event(at(10, 2), referrer="https://www.google.com/other", country="US"),
            event(at(10, 3), referrer="Direct", country="DE"),
            event(at(10, 4), referrer="not a url"),
        ])

        summary = await stats_service.summarize(link.code, now=NOW)

        assert summary["top_referrers"] == [
            {"name": "www.google.com", "count": 2},
            {"name": "Other", "count": 1},
        ]
        assert summary["top_countries"] == [
            {"name": "US", "count": 2},
            {"name": "DE", "count": 1},
        ]

    @pytest.mark.parametrize("days", [0, 366, -1])
    async def test_window_bounds(self, stats_service, link, days):
        with pytest.raises(ValueError):
            await stats_service.summarize(link.code, window_days=days, now=NOW)

    async def test_unknown_code(self, stats_service):
        with pytest.raises(ShortCodeNotFoundError):
            await stats_service.summarize("missing", now=NOW)


def test_referrer_host():
    assert referrer_host("Direct") is None
    assert referrer_host(None) is None
    assert referrer_host("https://t.co/abc") == "t.co"
    assert referrer_host("android-app://com.google") == "com.google"
    assert referrer_host("garbage") == "Other"


class TestLinkStats:

    async def test_counters(self, store, stats_service, link):
        await store.increment_clicks(link.code)
        await store.increment_clicks(link.code)

        stats = await stats_service.link_stats(link.code)

        assert stats["clicks"] == 2
        assert stats["last_accessed_at"] is not None
        assert stats["is_custom_alias"] is False
        assert stats["active"] is True

    async def test_unknown(self, stats_service):
        with pytest.raises(ShortCodeNotFoundError):
            await stats_service.link_stats("missing")


class TestOverview:

    async def test_empty(self, stats_service):
        overview = await stats_service.overview()
        assert overview == {
            "total_links": 0,
            "active_links": 0,
            "total_clicks": 0,
            "avg_clicks_per_link": 0,
            "top_links": [],
            "recent_links": [],
        }

    async def test_totals_and_rankings(self, store, stats_service):
        for code, clicks, day in [("ccc", 3, 1), ("aaa", 5, 2), ("bbb", 3, 3)]:
            await store.insert_unique(Link(
                code=code,
                destination_url=f"https://{code}.example.com",
                created_at=at(day, 0),
            ))
            for _ in range(clicks):
                await store.increment_clicks(code)
        await store.insert_unique(Link(code="zzz", destination_url="https://z.example.com", active=False))

        overview = await stats_service.overview()

        assert overview["total_links"] == 3
        assert overview["active_links"] == 3
        assert overview["total_clicks"] == 11
        assert overview["avg_clicks_per_link"] == 3.67
        assert [item["code"] for item in overview["top_links"]] == ["aaa", "bbb", "ccc"]
        assert [item["code"] for item in overview["recent_links"]] == ["bbb", "aaa", "ccc"]
