"""
Statistics Service

This service turns stored links and click events into reports:
- link_stats: the denormalized counters of a single link
- summarize: a rolling-window breakdown of one link's clicks
- overview: totals and rankings across active links

Design Decisions:
- Aggregation is done in Python over the events of the window. Events are
  read oldest first, so rankings break ties by first appearance.
- Daily buckets are UTC calendar dates ending today. Events older than the
  earliest bucket but inside the window still count toward the totals.
  The window is [now - days, now]; later events are skipped.
- Referrers are collapsed to their hostname; "Direct" is left out, and
  values without a hostname land in an "Other" bucket.
- Country breakdown only reflects countries supplied by an upstream proxy.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional, Sequence
from urllib.parse import urlparse

from shortlink.core.exceptions import ShortCodeNotFoundError, store_unavailable_on_error
from shortlink.core.validators import sanitize_short_code
from shortlink.db.interface import LinkStore
from shortlink.db.models import ClickEvent, Link, as_utc, utcnow

logger = logging.getLogger(__name__)

MIN_WINDOW_DAYS = 1
MAX_WINDOW_DAYS = 365
TOP_BROWSERS = 5
TOP_REFERRERS = 5
TOP_COUNTRIES = 10
TOP_LINKS = 10
OTHER_REFERRER = "Other"


def _ranked(counter: Counter, limit: Optional[int] = None) -> list[dict[str, Any]]:
    return [{"name": name, "count": count} for name, count in counter.most_common(limit)]


def referrer_host(referrer: Optional[str]) -> Optional[str]:
    """Hostname of a referrer, OTHER_REFERRER if it has none, None for direct traffic."""
    if not referrer or referrer == "Direct":
        return None
    try:
        host = urlparse(referrer).hostname
    except ValueError:
        host = None
    return host or OTHER_REFERRER


def _link_summary(link: Link) -> dict[str, Any]:
    return {
        "code": link.code,
        "destination_url": link.destination_url,
        "clicks": link.clicks,
        "created_at": as_utc(link.created_at).isoformat(),
    }


class StatsService:
    """Read-only analytics over the durable store."""

    def __init__(self, store: LinkStore):
        self.store = store

    async def _get_link(self, code: str) -> Link:
        sanitized = sanitize_short_code(code)
        if sanitized is None:
            raise ShortCodeNotFoundError(code)
        with store_unavailable_on_error("stats lookup"):
            link = await self.store.find_by_code(sanitized)
        if link is None:
            raise ShortCodeNotFoundError(code)
        return link

    async def link_stats(self, code: str) -> dict[str, Any]:
        """
        Counters for a single link, whatever its state.

        Raises:
            ShortCodeNotFoundError: Unknown code
        """
        link = await self._get_link(code)
        last_accessed = as_utc(link.last_accessed_at)
        expires_at = as_utc(link.expires_at)
        return {
            "code": link.code,
            "destination_url": link.destination_url,
            "custom_domain": link.custom_domain,
            "clicks": link.clicks,
            "created_at": as_utc(link.created_at).isoformat(),
            "last_accessed_at": last_accessed.isoformat() if last_accessed else None,
            "expires_at": expires_at.isoformat() if expires_at else None,
            "is_custom_alias": link.is_custom_alias,
            "active": link.is_live(),
            "tags": list(link.tags or []),
        }

    async def summarize(
        self,
        code: str,
        window_days: int = 7,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """
        Rolling summary of a link's clicks over the last ``window_days`` days.

        Returns:
            Dictionary with:
            - total_clicks: events in the window
            - clicks_by_date: window_days entries, oldest first
            - top_browsers (5), top_devices (all), top_referrers (5),
              top_countries (10): [{"name", "count"}] by descending count

        Raises:
            ValueError: window_days outside 1..365
            ShortCodeNotFoundError: Unknown code
        """
        if not MIN_WINDOW_DAYS <= window_days <= MAX_WINDOW_DAYS:
            raise ValueError(
                f"window_days must be between {MIN_WINDOW_DAYS} and {MAX_WINDOW_DAYS}"
            )

        link = await self._get_link(code)
        now = now or utcnow()
        since = now - timedelta(days=window_days)
        with store_unavailable_on_error("stats events"):
            events = await self.store.list_click_events(link.code, since)

        summary = self.aggregate(events, window_days, now)
        summary["code"] = link.code
        summary["window_days"] = window_days
        return summary

    def aggregate(
        self,
        events: Iterable[ClickEvent],
        window_days: int,
        now: datetime,
    ) -> dict[str, Any]:
        """
        Aggregate already-fetched events (oldest first) into a summary.

        Events stamped after ``now`` fall outside the window and are skipped.
        """
        now = as_utc(now)
        today = now.date()
        by_date = {
            (today - timedelta(days=offset)).isoformat(): 0
            for offset in range(window_days - 1, -1, -1)
        }
        browsers: Counter = Counter()
        devices: Counter = Counter()
        referrers: Counter = Counter()
        countries: Counter = Counter()
        total = 0

        for event in events:
            timestamp = as_utc(event.timestamp)
            if timestamp > now:
                continue
            total += 1
            day = timestamp.date().isoformat()
            if day in by_date:
                by_date[day] += 1
            if event.browser:
                browsers[event.browser] += 1
            if event.device:
                devices[event.device] += 1
            host = referrer_host(event.referrer)
            if host:
                referrers[host] += 1
            if event.country:
                countries[event.country] += 1

        return {
            "total_clicks": total,
            "clicks_by_date": [{"date": day, "count": count} for day, count in by_date.items()],
            "top_browsers": _ranked(browsers, TOP_BROWSERS),
            "top_devices": _ranked(devices),
            "top_referrers": _ranked(referrers, TOP_REFERRERS),
            "top_countries": _ranked(countries, TOP_COUNTRIES),
        }

    async def overview(self, links: Optional[Sequence[Link]] = None) -> dict[str, Any]:
        """
        Totals and rankings across links (all active links by default).

        top_links ranks by clicks, recent_links by creation time; both break
        ties by code.
        """
        if links is None:
            with store_unavailable_on_error("overview"):
                links = await self.store.list_all_active()

        total_links = len(links)
        total_clicks = sum(link.clicks for link in links)
        active_links = sum(1 for link in links if link.is_live())
        average = round(total_clicks / total_links, 2) if total_links else 0

        by_code = sorted(links, key=lambda link: link.code)
        top_links = sorted(by_code, key=lambda link: link.clicks, reverse=True)[:TOP_LINKS]
        recent_links = sorted(
            by_code, key=lambda link: as_utc(link.created_at), reverse=True
        )[:TOP_LINKS]

        return {
            "total_links": total_links,
            "active_links": active_links,
            "total_clicks": total_clicks,
            "avg_clicks_per_link": average,
            "top_links": [_link_summary(link) for link in top_links],
            "recent_links": [_link_summary(link) for link in recent_links],
        }
