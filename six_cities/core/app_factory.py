"""Application factory for FastAPI app.

Centralizes app construction (store, rate limiter, middleware, handlers,
routers) to improve testability and separation of concerns compared to a
monolithic main.

The rate limiter is built synchronously together with the app and works on
in-process counters from the first request. The store connection is opened
in a background task started by the lifespan; once that attempt finishes,
successfully or not, the limiter is initialized against the store.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator

from fastapi import FastAPI

from six_cities.adapters.kv_store import (
    AbstractKeyValueStore,
    InMemoryKeyValueStore,
    RedisKeyValueStore,
    StoreUnavailableError,
)
from six_cities.api.routes import health_router
from six_cities.core.config import RedisSettings, settings
from six_cities.core.exception_handlers import setup_exception_handlers
from six_cities.core.logging import configure_logging
from six_cities.core.middleware import rate_limit_middleware, request_id_middleware
from six_cities.core.rate_limit import TieredRateLimiter

logger = logging.getLogger(__name__)


def build_store(redis_settings: RedisSettings) -> AbstractKeyValueStore:
    """Return the key-value store adapter selected by ``REDIS_BACKEND``."""

    if redis_settings.backend == "memory":
        return InMemoryKeyValueStore()
    return RedisKeyValueStore.from_settings(redis_settings)


async def connect_store(store: AbstractKeyValueStore, limiter: TieredRateLimiter) -> None:
    """Connect the store, then initialize the limiter whatever the outcome."""

    try:
        await store.connect()
    except StoreUnavailableError as exc:
        logger.warning(
            "kv_store.startup_unavailable",
            extra={"operation": exc.operation, "reason": exc.reason},
        )
    await limiter.initialize()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    store: AbstractKeyValueStore = app.state.kv_store
    limiter: TieredRateLimiter = app.state.rate_limiter

    task = asyncio.create_task(connect_store(store, limiter))
    app.state.store_task = task
    try:
        yield
    finally:
        if not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await store.disconnect()


def create_app(store: AbstractKeyValueStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        store: Key-value store to use instead of the configured backend.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Six Cities API",
        description="Rental listings API with tiered rate limiting and cached lookups.",
        version="0.1.0",
        lifespan=lifespan,
    )

    kv_store = store if store is not None else build_store(settings.redis)
    app.state.kv_store = kv_store
    app.state.rate_limiter = TieredRateLimiter(settings.rate_limit, kv_store)
    app.state.started_at = time.monotonic()

    # Middleware: the last registered runs first, so request ids wrap rate limiting
    app.middleware("http")(rate_limit_middleware)
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(health_router)

    return app
