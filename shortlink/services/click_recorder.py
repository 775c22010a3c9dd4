"""
Click Recording Service

Records one click per successful redirect: an immutable ClickEvent plus an
increment of the link's click counter.

Design Decisions:
- Recording is best-effort. Any failure is logged with its traceback and
  swallowed, so analytics can never fail or slow down a redirect beyond the
  store calls themselves.
- Request metadata is captured into a plain value object at request time;
  the recorder may run after the request has finished.
- No geo-IP lookup: country is only stored when a fronting proxy supplies
  it as a header.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from shortlink.db.interface import LinkStore
from shortlink.db.models import ClickEvent, utcnow
from shortlink.services.user_agent import classify_user_agent

logger = logging.getLogger(__name__)

DIRECT_REFERRER = "Direct"
UNKNOWN_IP = "unknown"


@dataclass(frozen=True)
class RequestMetadata:
    """Raw request attributes needed to build a click event."""
    client_host: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    forwarded_for: Optional[str] = None
    real_ip: Optional[str] = None
    country: Optional[str] = None


def extract_client_ip(metadata: RequestMetadata) -> str:
    """
    Resolve the client IP.

    Order: first X-Forwarded-For entry, X-Real-IP, socket address.
    """
    if metadata.forwarded_for:
        first = metadata.forwarded_for.split(",")[0].strip()
        if first:
            return first
    if metadata.real_ip and metadata.real_ip.strip():
        return metadata.real_ip.strip()
    if metadata.client_host:
        return metadata.client_host
    return UNKNOWN_IP


def build_click_event(code: str, metadata: RequestMetadata) -> ClickEvent:
    agent = classify_user_agent(metadata.user_agent)
    country = metadata.country.strip().upper()[:2] if metadata.country else None
    return ClickEvent(
        code=code,
        timestamp=utcnow(),
        ip=extract_client_ip(metadata)[:45],
        user_agent=(metadata.user_agent or "Unknown")[:500],
        referrer=(metadata.referrer or DIRECT_REFERRER)[:2048],
        device=agent.device,
        browser=agent.browser[:100],
        os=agent.os[:100],
        country=country or None,
    )


class ClickRecorder:
    """Appends click events and bumps click counters in the durable store."""

    def __init__(self, store: LinkStore):
        self.store = store

    async def record(self, code: str, metadata: RequestMetadata) -> None:
        """
        Record a single click for ``code``.

        Never raises; failures are logged.
        """
        try:
            event = build_click_event(code, metadata)
            await self.store.append_click_event(code, event)
            await self.store.increment_clicks(code)
        except Exception as e:
            logger.error(f"Failed to record click for {code}: {e}", exc_info=True)
