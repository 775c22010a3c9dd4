"""
In-Memory Durable Store

Process-local LinkStore used for tests and single-process development
(STORE_BACKEND=memory). It honours the same contract as the SQL store:
unique inserts, atomic increments, copies in and out so callers never
mutate stored state by accident.

The ``reads`` counter records how many link lookups reached the store,
which lets tests observe cache hits.
"""

import asyncio
from datetime import datetime
from itertools import count
from typing import Optional, Sequence

from shortlink.core.exceptions import ConflictError
from shortlink.db.interface import SORTABLE_FIELDS, LinkQuery, LinkStore
from shortlink.db.models import ClickEvent, Link, utcnow


def _copy_link(link: Link) -> Link:
    data = link.model_dump()
    data["tags"] = list(link.tags or [])
    return Link(**data)


def _copy_event(event: ClickEvent) -> ClickEvent:
    return ClickEvent(**event.model_dump())


class InMemoryLinkStore(LinkStore):
    """Dictionary-backed store guarded by a single asyncio lock."""

    def __init__(self):
        self._links: dict[str, Link] = {}
        self._aliases: dict[str, str] = {}
        self._events: dict[str, list[ClickEvent]] = {}
        self._counters: dict[str, int] = {}
        self._ids = count(1)
        self._lock = asyncio.Lock()
        self.reads = 0

    async def find_by_code(self, code: str) -> Optional[Link]:
        self.reads += 1
        link = self._links.get(code)
        return _copy_link(link) if link else None

    async def find_by_alias_or_code(self, code: str) -> Optional[Link]:
        self.reads += 1
        link = self._links.get(code) or self._links.get(self._aliases.get(code, ""))
        return _copy_link(link) if link else None

    async def insert_unique(self, link: Link) -> Link:
        async with self._lock:
            if link.code in self._links or link.code in self._aliases:
                raise ConflictError(link.code)
            if link.alias and (link.alias in self._aliases or link.alias in self._links):
                raise ConflictError(link.alias)
            stored = _copy_link(link)
            stored.id = next(self._ids)
            self._links[stored.code] = stored
            if stored.alias:
                self._aliases[stored.alias] = stored.code
        return _copy_link(stored)

    async def update_active_flag(self, code: str, active: bool) -> bool:
        async with self._lock:
            link = self._links.get(code)
            if link is None:
                return False
            link.active = active
            return True

    async def update_link(
        self,
        code: str,
        tags: Optional[list[str]] = None,
        custom_domain: Optional[str] = None,
    ) -> Optional[Link]:
        async with self._lock:
            link = self._links.get(code)
            if link is None:
                return None
            if tags is not None:
                link.tags = list(tags)
            if custom_domain is not None:
                link.custom_domain = custom_domain or None
            return _copy_link(link)

    async def increment_clicks(self, code: str) -> None:
        async with self._lock:
            link = self._links.get(code)
            if link is not None:
                link.clicks += 1
                link.last_accessed_at = utcnow()

    async def increment_counter(self, namespace: str) -> int:
        async with self._lock:
            value = self._counters.get(namespace, 0) + 1
            self._counters[namespace] = value
            return value

    async def append_click_event(self, code: str, event: ClickEvent) -> None:
        stored = _copy_event(event)
        stored.code = code
        async with self._lock:
            stored.id = next(self._ids)
            self._events.setdefault(code, []).append(stored)

    async def list_click_events(self, code: str, since: datetime) -> Sequence[ClickEvent]:
        events = [e for e in self._events.get(code, []) if e.timestamp >= since]
        events.sort(key=lambda e: e.timestamp)
        return [_copy_event(e) for e in events]

    def _matching(self, query: Optional[LinkQuery]) -> list[Link]:
        links = [link for link in self._links.values() if link.active]
        if query is None:
            return links
        if query.search:
            needle = query.search.lower()
            links = [
                link for link in links
                if needle in link.destination_url.lower()
                or needle in link.code.lower()
                or (link.alias and needle in link.alias.lower())
            ]
        if query.tag:
            links = [link for link in links if query.tag in (link.tags or [])]
        return links

    async def count_active(self, query: Optional[LinkQuery] = None) -> int:
        return len(self._matching(query))

    async def list_active(self, query: LinkQuery) -> Sequence[Link]:
        sort_field = query.sort_by if query.sort_by in SORTABLE_FIELDS else "created_at"
        links = sorted(self._matching(query), key=lambda link: link.code)
        present = [link for link in links if getattr(link, sort_field) is not None]
        missing = [link for link in links if getattr(link, sort_field) is None]
        present.sort(key=lambda link: getattr(link, sort_field), reverse=query.order != "asc")
        ordered = present + missing
        page = ordered[query.offset:query.offset + query.limit]
        return [_copy_link(link) for link in page]

    async def list_all_active(self) -> Sequence[Link]:
        return [_copy_link(link) for link in self._matching(None)]
