"""
Redirect Service

Resolves a short code to its destination with a cache-aside read path.

Flow:
1. Malformed codes are NotFound without touching the store.
2. Cache hit (payload decodes and is not past expiresAt): hand the click to
   the AnalyticsDispatcher and return immediately.
3. Cache miss: read the link from the durable store.
   - unknown or inactive -> ShortCodeNotFoundError
   - past expiry -> clear the active flag (best effort), LinkExpiredError
   - otherwise refill the cache, record the click inline, return.

Design Decisions:
- A corrupt cache payload is treated as a miss rather than an error.
- The hit path never waits on analytics; the miss path records inline
  because it already paid for a store round trip.
- Cache failures degrade to the miss path (the cache logs and absorbs them).
"""

import json
import logging
from datetime import datetime
from typing import Optional

from shortlink.cache.interface import Cache
from shortlink.core.exceptions import (
    DatabaseError,
    LinkExpiredError,
    ShortCodeNotFoundError,
    store_unavailable_on_error,
)
from shortlink.core.validators import sanitize_short_code
from shortlink.db.interface import LinkStore
from shortlink.db.models import as_utc, utcnow
from shortlink.services.background_tasks import AnalyticsDispatcher
from shortlink.services.click_recorder import ClickRecorder, RequestMetadata
from shortlink.services.url_service import build_cache_payload, cache_key, cache_ttl_for

logger = logging.getLogger(__name__)


def _decode_payload(raw: bytes, code: str) -> Optional[dict]:
    try:
        payload = json.loads(raw)
        destination = payload["destinationURL"]
        expires_at = payload.get("expiresAt")
        if expires_at is not None:
            payload["expiresAt"] = as_utc(datetime.fromisoformat(expires_at))
    except (ValueError, TypeError, KeyError) as e:
        logger.warning(f"Ignoring undecodable cache entry for {code}: {e}")
        return None
    if not isinstance(destination, str) or not destination:
        logger.warning(f"Ignoring cache entry for {code} without a destination")
        return None
    return payload


class RedirectService:
    """
    Service for handling redirects.

    Reads go cache first, durable store second; every successful resolve
    produces exactly one click (recorded inline or in the background).
    """

    def __init__(
        self,
        store: LinkStore,
        cache: Cache,
        recorder: ClickRecorder,
        dispatcher: AnalyticsDispatcher,
        cache_ttl_seconds: int = 3600,
    ):
        self.store = store
        self.cache = cache
        self.recorder = recorder
        self.dispatcher = dispatcher
        self.cache_ttl_seconds = cache_ttl_seconds

    async def resolve(self, code: str, metadata: Optional[RequestMetadata] = None) -> str:
        """
        Resolve ``code`` to its destination URL.

        Raises:
            ShortCodeNotFoundError: Unknown, malformed or soft-deleted code
            LinkExpiredError: The link's expiry has passed
            ServiceUnavailableError: Cache miss and the durable store failed
        """
        metadata = metadata or RequestMetadata()
        sanitized = sanitize_short_code(code)
        if sanitized is None:
            raise ShortCodeNotFoundError(code)

        now = utcnow()
        raw = await self.cache.get(cache_key(sanitized))
        if raw is not None:
            payload = _decode_payload(raw, sanitized)
            if payload is not None:
                expires_at = payload.get("expiresAt")
                if expires_at is None or now < expires_at:
                    self.dispatcher.submit(sanitized, metadata)
                    return payload["destinationURL"]
                logger.debug(f"Cached entry for {sanitized} is past expiry")

        return await self._resolve_from_store(sanitized, metadata, now)

    async def _resolve_from_store(self, code: str, metadata: RequestMetadata, now: datetime) -> str:
        with store_unavailable_on_error("redirect lookup"):
            link = await self.store.find_by_code(code)
        if link is None or not link.active:
            raise ShortCodeNotFoundError(code)

        if link.is_expired(now):
            try:
                await self.store.update_active_flag(code, False)
            except DatabaseError:
                logger.error(f"Failed to deactivate expired short code {code}", exc_info=True)
            else:
                logger.info(f"Short code {code} expired, deactivated")
            await self.cache.delete(cache_key(code))
            raise LinkExpiredError(code)

        ttl = cache_ttl_for(link, self.cache_ttl_seconds, now)
        if ttl > 0:
            await self.cache.set_with_ttl(cache_key(code), build_cache_payload(link), ttl)

        await self.recorder.record(code, metadata)
        return link.destination_url
