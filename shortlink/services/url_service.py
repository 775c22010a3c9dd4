"""
URL Shortening Service

This service handles the link lifecycle:
- Validating destinations and custom domains
- Delegating code assignment to the CodeAllocator
- Populating and invalidating the redirect cache
- Updating tags / custom domain, soft deleting, listing

Design Decisions:
- Cache-aside: the cache entry for a code is written when the link is
  created and refreshed on update, and deleted on soft delete. Cache
  failures are logged by the cache and never fail the operation.
- The cached payload carries expiresAt, and its TTL never outlives the
  link's expiry, so a cache hit cannot serve an expired link.
- Links are never physically deleted; soft delete clears the active flag.
- Durable store failures surface as ServiceUnavailableError.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from shortlink.cache.interface import Cache
from shortlink.core.exceptions import (
    InvalidBatchError,
    InvalidURLError,
    LinkExpiredError,
    ShortCodeNotFoundError,
    URLShortenerException,
    store_unavailable_on_error,
)
from shortlink.core.validators import is_valid_domain, is_valid_url, sanitize_short_code
from shortlink.db.interface import LinkQuery, LinkStore
from shortlink.db.models import Link, as_utc, utcnow
from shortlink.services.code_allocator import CodeAllocator

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 50
MAX_TAGS = 20
MAX_TAG_LENGTH = 50


def cache_key(code: str) -> str:
    return f"url:{code}"


def build_cache_payload(link: Link) -> bytes:
    expires_at = as_utc(link.expires_at)
    return json.dumps({
        "code": link.code,
        "destinationURL": link.destination_url,
        "customDomain": link.custom_domain,
        "expiresAt": expires_at.isoformat() if expires_at else None,
    }).encode("utf-8")


def cache_ttl_for(link: Link, default_ttl: int, now: Optional[datetime] = None) -> int:
    """TTL for a link's cache entry: the default, capped at the time left before expiry."""
    expires_at = as_utc(link.expires_at)
    if expires_at is None:
        return default_ttl
    remaining = (expires_at - (now or utcnow())).total_seconds()
    return max(0, min(default_ttl, math.ceil(remaining)))


def normalize_tags(tags: Optional[Sequence[str]]) -> list[str]:
    """Strip, drop empties and duplicates, keep first-seen order."""
    normalized: list[str] = []
    for tag in tags or []:
        tag = str(tag).strip()[:MAX_TAG_LENGTH]
        if tag and tag not in normalized:
            normalized.append(tag)
    return normalized[:MAX_TAGS]


@dataclass
class BatchResult:
    created: list[Link] = field(default_factory=list)
    failed: list[dict[str, Any]] = field(default_factory=list)


class URLShorteningService:
    """
    Core business logic for creating and managing links.

    Separated from the API layer for testability; the store, cache and
    allocator are injected.
    """

    def __init__(
        self,
        store: LinkStore,
        cache: Cache,
        allocator: CodeAllocator,
        cache_ttl_seconds: int = 3600,
    ):
        self.store = store
        self.cache = cache
        self.allocator = allocator
        self.cache_ttl_seconds = cache_ttl_seconds

    async def create_short_url(
        self,
        destination_url: str,
        custom_alias: Optional[str] = None,
        custom_domain: Optional[str] = None,
        expires_in_hours: Optional[float] = None,
        tags: Optional[Sequence[str]] = None,
    ) -> Link:
        """
        Create a new link.

        Args:
            destination_url: The long URL to shorten
            custom_alias: Requested code, if any
            custom_domain: Optional vanity domain
            expires_in_hours: Lifetime of the link, None for no expiry
            tags: Free-form labels

        Returns:
            The stored Link

        Raises:
            InvalidURLError: Bad destination, domain or expiry
            AliasInvalidError / AliasTakenError: Rejected alias
            AllocationExhaustedError: No free code found
            ServiceUnavailableError: Durable store failure
        """
        destination_url = (destination_url or "").strip()
        if not is_valid_url(destination_url):
            raise InvalidURLError(
                destination_url,
                reason="Invalid URL format. URL must use http:// or https:// and have a host"
            )
        if not is_valid_domain(custom_domain):
            raise InvalidURLError(custom_domain, reason="Invalid custom domain")
        if expires_in_hours is not None and expires_in_hours <= 0:
            raise InvalidURLError(destination_url, reason="Expiry must be a positive number of hours")

        now = utcnow()
        link = Link(
            code="",
            destination_url=destination_url,
            custom_domain=custom_domain or None,
            created_at=now,
            expires_at=now + timedelta(hours=expires_in_hours) if expires_in_hours else None,
            tags=normalize_tags(tags),
        )

        link = await self.allocator.allocate(link, requested_alias=custom_alias)
        logger.info(f"Created short code {link.code} -> {link.destination_url}")

        await self.cache_link(link)
        return link

    async def create_batch(self, items: Sequence[dict[str, Any]]) -> BatchResult:
        """
        Create up to MAX_BATCH_SIZE links.

        Each item is a mapping of create_short_url keyword arguments and
        succeeds or fails on its own; failures are reported with their kind.
        """
        if not items or len(items) > MAX_BATCH_SIZE:
            raise InvalidBatchError(len(items), MAX_BATCH_SIZE)

        result = BatchResult()
        for index, item in enumerate(items):
            try:
                link = await self.create_short_url(**item)
            except URLShortenerException as e:
                result.failed.append({
                    "index": index,
                    "destination_url": item.get("destination_url"),
                    "kind": e.kind,
                    "message": str(e),
                })
            else:
                result.created.append(link)

        logger.info(f"Batch created {len(result.created)} links, {len(result.failed)} failed")
        return result

    async def get_link(self, code: str) -> Link:
        """Return the link for ``code`` in any state (used by stats)."""
        sanitized = sanitize_short_code(code)
        if sanitized is None:
            raise ShortCodeNotFoundError(code)
        with store_unavailable_on_error("lookup"):
            link = await self.store.find_by_code(sanitized)
        if link is None:
            raise ShortCodeNotFoundError(code)
        return link

    async def update_link(
        self,
        code: str,
        tags: Optional[Sequence[str]] = None,
        custom_domain: Optional[str] = None,
    ) -> Link:
        """
        Update the tags and/or custom domain of a live link.

        Raises:
            ShortCodeNotFoundError: Unknown or soft-deleted code
            LinkExpiredError: The link is past its expiry
            InvalidURLError: Invalid custom domain
        """
        link = await self.get_link(code)
        if not link.active:
            raise ShortCodeNotFoundError(code)
        if link.is_expired():
            raise LinkExpiredError(code)
        if not is_valid_domain(custom_domain):
            raise InvalidURLError(custom_domain, reason="Invalid custom domain")

        with store_unavailable_on_error("update"):
            updated = await self.store.update_link(
                link.code,
                tags=normalize_tags(tags) if tags is not None else None,
                custom_domain=custom_domain,
            )
        if updated is None:
            raise ShortCodeNotFoundError(code)

        await self.cache_link(updated)
        return updated

    async def soft_delete(self, code: str) -> None:
        """
        Clear the active flag and drop the cache entry.

        Raises:
            ShortCodeNotFoundError: Unknown or already deleted code
        """
        link = await self.get_link(code)
        if not link.active:
            raise ShortCodeNotFoundError(code)

        with store_unavailable_on_error("soft delete"):
            await self.store.update_active_flag(link.code, False)
        await self.cache.delete(cache_key(link.code))
        logger.info(f"Soft deleted short code {link.code}")

    async def list_links(
        self,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "created_at",
        order: str = "desc",
        search: Optional[str] = None,
        tag: Optional[str] = None,
    ) -> dict[str, Any]:
        """One page of active links with pagination metadata."""
        query = LinkQuery(
            page=max(page, 1),
            limit=max(limit, 1),
            sort_by=sort_by,
            order=order,
            search=search or None,
            tag=tag or None,
        )
        with store_unavailable_on_error("listing"):
            total = await self.store.count_active(query)
            links = await self.store.list_active(query)

        return {
            "items": list(links),
            "page": query.page,
            "limit": query.limit,
            "total": total,
            "total_pages": math.ceil(total / query.limit) if total else 0,
        }

    async def cache_link(self, link: Link) -> None:
        ttl = cache_ttl_for(link, self.cache_ttl_seconds)
        if ttl <= 0:
            return
        await self.cache.set_with_ttl(cache_key(link.code), build_cache_payload(link), ttl)
