"""Shared pytest fixtures: in-memory store and cache, wired services, API client."""

import os

# Settings are read at import time; keep tests off Redis and the rate limiter.
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("CACHE_BACKEND", "memory")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shortlink.cache import InMemoryCache
from shortlink.core.container import ServiceContainer, build_container
from shortlink.core.rate_limit import limiter
from shortlink.core.setting import AllocationStrategy, settings
from shortlink.db import InMemoryLinkStore
from shortlink.main import app
from shortlink.services.background_tasks import AnalyticsDispatcher
from shortlink.services.click_recorder import ClickRecorder
from shortlink.services.code_allocator import CodeAllocator
from shortlink.services.redirect_service import RedirectService
from shortlink.services.stats_service import StatsService
from shortlink.services.url_service import URLShorteningService


@pytest.fixture
def store() -> InMemoryLinkStore:
    return InMemoryLinkStore()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def allocator(store: InMemoryLinkStore) -> CodeAllocator:
    return CodeAllocator(store, strategy=AllocationStrategy.sequential)


@pytest.fixture
def recorder(store: InMemoryLinkStore) -> ClickRecorder:
    return ClickRecorder(store)


@pytest_asyncio.fixture
async def dispatcher(recorder: ClickRecorder) -> AsyncGenerator[AnalyticsDispatcher, None]:
    dispatcher = AnalyticsDispatcher(recorder, workers=2, queue_size=100)
    dispatcher.start()
    yield dispatcher
    await dispatcher.stop(timeout=1.0)


@pytest.fixture
def url_service(store, cache, allocator) -> URLShorteningService:
    return URLShorteningService(store, cache, allocator, cache_ttl_seconds=3600)


@pytest.fixture
def redirect_service(store, cache, recorder, dispatcher) -> RedirectService:
    return RedirectService(store, cache, recorder, dispatcher, cache_ttl_seconds=3600)


@pytest.fixture
def stats_service(store) -> StatsService:
    return StatsService(store)


@pytest_asyncio.fixture
async def container(store, cache) -> AsyncGenerator[ServiceContainer, None]:
    container = build_container(settings, store=store, cache=cache)
    await container.start()
    yield container
    await container.shutdown(timeout=1.0)


@pytest_asyncio.fixture
async def client(container: ServiceContainer) -> AsyncGenerator[AsyncClient, None]:
    # ASGITransport does not run startup events, so install the container directly
    limiter.enabled = False
    app.state.container = container

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    del app.state.container
