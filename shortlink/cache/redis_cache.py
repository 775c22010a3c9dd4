"""
Redis Cache

Cache implementation on redis.asyncio. The client is created lazily on first
use and reused across requests.

Every Redis error (connection refused, timeout, protocol error) is logged and
converted into a miss or a failed write, so the redirect path degrades to the
durable store instead of failing.
"""

import logging
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shortlink.cache.interface import Cache

logger = logging.getLogger(__name__)


class RedisCache(Cache):
    def __init__(
        self,
        url: str,
        client: Optional[redis.Redis] = None,
        socket_timeout: float = 0.5,
    ):
        self.url = url
        self.socket_timeout = socket_timeout
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            # Values are raw bytes, so no decode_responses here
            self._client = redis.from_url(
                self.url,
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_timeout,
            )
        return self._client

    async def get(self, key: str) -> Optional[bytes]:
        try:
            return await self.client.get(key)
        except (RedisError, OSError) as e:
            logger.warning(f"Cache get failed for {key}, treating as miss: {e}")
            return None

    async def set_with_ttl(self, key: str, value: bytes, seconds: int) -> bool:
        try:
            await self.client.setex(key, seconds, value)
            return True
        except (RedisError, OSError) as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self.client.delete(key)
            return True
        except (RedisError, OSError) as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError) as e:
            logger.error(f"Cache health check failed: {e}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
