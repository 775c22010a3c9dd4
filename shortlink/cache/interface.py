"""
Cache Interface

Volatile key -> bytes store with per-key expiry. Implementations must never
raise to callers: an unavailable cache behaves like an empty one (get
returns None, writes are no-ops).
"""

from abc import ABC, abstractmethod
from typing import Optional


class Cache(ABC):
    """Contract shared by the Redis and in-memory caches."""

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the stored value, or None on miss or failure."""

    @abstractmethod
    async def set_with_ttl(self, key: str, value: bytes, seconds: int) -> bool:
        """Store ``value`` for ``seconds``. Returns False when the write failed."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove ``key``. Returns False when the delete failed."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        """Release connections held by the cache."""
