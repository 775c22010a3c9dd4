"""
Cache module.

- Cache: contract (get / set_with_ttl / delete, never raising)
- RedisCache: redis.asyncio implementation (default)
- InMemoryCache: process-local implementation for tests and development
"""

from shortlink.cache.interface import Cache
from shortlink.cache.memory_cache import InMemoryCache
from shortlink.cache.redis_cache import RedisCache

__all__ = ["Cache", "InMemoryCache", "RedisCache"]
