"""
Service Container

This module builds the durable store, cache and services once per
application instance and shares them across requests.

Design:
- Built from Settings on application startup and kept on app.state
- Stores and caches are injected into every service; nothing reads a
  process-wide database handle
- Startup creates the schema (SQL store) and starts the analytics workers;
  shutdown drains the workers and closes connections
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from shortlink.cache import Cache, InMemoryCache, RedisCache
from shortlink.core.setting import CacheBackend, Settings, StoreBackend
from shortlink.db import InMemoryLinkStore, LinkStore, SQLLinkStore, build_engine
from shortlink.services.background_tasks import AnalyticsDispatcher
from shortlink.services.click_recorder import ClickRecorder
from shortlink.services.code_allocator import CodeAllocator
from shortlink.services.redirect_service import RedirectService
from shortlink.services.stats_service import StatsService
from shortlink.services.url_service import URLShorteningService

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Set the root log format and level once at startup."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def build_store(settings: Settings) -> LinkStore:
    if settings.STORE_BACKEND is StoreBackend.memory:
        return InMemoryLinkStore()
    return SQLLinkStore(build_engine(settings.DATABASE_URL))


def build_cache(settings: Settings) -> Cache:
    if settings.CACHE_BACKEND is CacheBackend.memory:
        return InMemoryCache()
    return RedisCache(settings.REDIS_URL)


@dataclass
class ServiceContainer:
    store: LinkStore
    cache: Cache
    allocator: CodeAllocator
    recorder: ClickRecorder
    dispatcher: AnalyticsDispatcher
    url_service: URLShorteningService
    redirect_service: RedirectService
    stats_service: StatsService

    async def start(self) -> None:
        if isinstance(self.store, SQLLinkStore):
            await self.store.create_schema()
        self.dispatcher.start()
        logger.info(
            f"Services started: store={type(self.store).__name__}, "
            f"cache={type(self.cache).__name__}, "
            f"strategy={self.allocator.strategy.value}"
        )

    async def shutdown(self, timeout: float = 5.0) -> None:
        await self.dispatcher.stop(timeout=timeout)
        await self.cache.close()
        await self.store.close()
        logger.info("Services shut down")

    async def health(self) -> dict[str, bool]:
        return {
            "durable_store": await self.store.ping(),
            "cache": await self.cache.ping(),
        }


def build_container(
    settings: Settings,
    store: Optional[LinkStore] = None,
    cache: Optional[Cache] = None,
) -> ServiceContainer:
    """
    Wire every service from settings.

    Args:
        settings: Application settings
        store: Pre-built store (tests), built from settings if None
        cache: Pre-built cache (tests), built from settings if None
    """
    store = store if store is not None else build_store(settings)
    cache = cache if cache is not None else build_cache(settings)
    allocation = settings.allocation_config()

    allocator = CodeAllocator(
        store,
        strategy=allocation.strategy,
        code_length=allocation.code_length,
        max_retries=allocation.max_retries,
        counter_namespace=settings.COUNTER_NAMESPACE,
    )
    recorder = ClickRecorder(store)
    dispatcher = AnalyticsDispatcher(
        recorder,
        workers=settings.ANALYTICS_WORKERS,
        queue_size=settings.ANALYTICS_QUEUE_SIZE,
    )

    return ServiceContainer(
        store=store,
        cache=cache,
        allocator=allocator,
        recorder=recorder,
        dispatcher=dispatcher,
        url_service=URLShorteningService(
            store, cache, allocator, cache_ttl_seconds=allocation.cache_ttl_seconds
        ),
        redirect_service=RedirectService(
            store, cache, recorder, dispatcher, cache_ttl_seconds=allocation.cache_ttl_seconds
        ),
        stats_service=StatsService(store),
    )


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container built at startup."""
    return request.app.state.container
