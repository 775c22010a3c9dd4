"""
Durable Store Interface

This module defines the narrow contract the link services use to persist
links, click events and counters. Services receive a LinkStore instance
instead of opening database sessions themselves, so the SQL implementation
can be swapped for the in-memory one in tests or local development.

Implementations must:
- Raise ConflictError from insert_unique when the code or alias exists
  (at most one concurrent writer of the same code may succeed)
- Apply increment_clicks and increment_counter atomically
- Raise DatabaseError for any other failure
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from shortlink.db.models import ClickEvent, Link

SORTABLE_FIELDS = ("created_at", "clicks", "code", "last_accessed_at")


@dataclass(frozen=True)
class LinkQuery:
    """Pagination, sort and filter options for listing active links."""
    page: int = 1
    limit: int = 20
    sort_by: str = "created_at"
    order: str = "desc"
    search: Optional[str] = None
    tag: Optional[str] = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class LinkStore(ABC):
    """
    Abstract base class for durable stores.

    To add a new backend:
    1. Create a new class inheriting from LinkStore
    2. Implement all abstract methods
    3. Wire it in shortlink.core.container.build_store()
    """

    @abstractmethod
    async def find_by_code(self, code: str) -> Optional[Link]:
        """Return the link stored under ``code`` in any state, or None."""

    @abstractmethod
    async def find_by_alias_or_code(self, code: str) -> Optional[Link]:
        """Return a link whose code or alias equals ``code`` (soft-deleted included)."""

    @abstractmethod
    async def insert_unique(self, link: Link) -> Link:
        """
        Insert a new link.

        Raises:
            ConflictError: If a link with the same code or alias exists
        """

    @abstractmethod
    async def update_active_flag(self, code: str, active: bool) -> bool:
        """Set the active flag. Returns False when the code is unknown."""

    @abstractmethod
    async def update_link(
        self,
        code: str,
        tags: Optional[list[str]] = None,
        custom_domain: Optional[str] = None,
    ) -> Optional[Link]:
        """Update mutable attributes; ``None`` leaves a field untouched."""

    @abstractmethod
    async def increment_clicks(self, code: str) -> None:
        """Atomically add one click and stamp last_accessed_at."""

    @abstractmethod
    async def increment_counter(self, namespace: str) -> int:
        """Atomically increment the named counter and return the new value."""

    @abstractmethod
    async def append_click_event(self, code: str, event: ClickEvent) -> None:
        """Append an immutable click event for ``code``."""

    @abstractmethod
    async def list_click_events(self, code: str, since: datetime) -> Sequence[ClickEvent]:
        """Click events for ``code`` with timestamp >= since, oldest first."""

    @abstractmethod
    async def count_active(self, query: Optional[LinkQuery] = None) -> int:
        """Count active links, honouring the query's filters if given."""

    @abstractmethod
    async def list_active(self, query: LinkQuery) -> Sequence[Link]:
        """One page of active links."""

    @abstractmethod
    async def list_all_active(self) -> Sequence[Link]:
        """Every active link (used by the overview)."""

    async def ping(self) -> bool:
        """Cheap health check."""
        return True

    async def close(self) -> None:
        """Release connections held by the store."""
