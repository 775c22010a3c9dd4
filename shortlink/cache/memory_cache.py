"""
In-Memory Cache

Process-local cache with per-key expiry, used for tests and single-process
development (CACHE_BACKEND=memory). Expired entries are dropped lazily on
read.
"""

import time
from typing import Callable, Optional

from shortlink.cache.interface import Cache


class InMemoryCache(Cache):
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[bytes, float]] = {}

    async def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if self._clock() >= deadline:
            self._entries.pop(key, None)
            return None
        return value

    async def set_with_ttl(self, key: str, value: bytes, seconds: int) -> bool:
        self._entries[key] = (value, self._clock() + seconds)
        return True

    async def delete(self, key: str) -> bool:
        self._entries.pop(key, None)
        return True
