"""Application lifespan event handlers.

Startup configures logging, connects Redis when enabled, and brings up the
pricing service. Shutdown releases them in reverse order.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import redis.asyncio as redis

from price_gateway.cache.redis import close_redis_pools, get_cache_client, init_redis_pools
from price_gateway.observability.logging import get_logger, setup_logging
from price_gateway.services.pricing.service import PricingService


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from typing import Any

    from fastapi import FastAPI
    from redis.asyncio import Redis

    from price_gateway.core.config import Settings

logger = get_logger(__name__)


async def _startup(app: FastAPI, settings: Settings) -> None:
    """Initialize all application services during startup."""
    setup_logging(
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        is_development=settings.is_development,
    )

    logger.info(
        "Starting application",
        app_name=settings.app.name,
        environment=settings.APP_ENV,
        debug=settings.app.debug,
    )

    cache_client = await _init_cache(settings)
    await _init_pricing_service(app, settings, cache_client)

    logger.info("Application startup complete")


async def _init_cache(settings: Settings) -> Redis[Any] | None:
    """Connect Redis for the price-cache snapshot, if enabled."""
    if not settings.redis.enabled:
        return None
    try:
        await init_redis_pools()
        return get_cache_client()
    except redis.RedisError:
        logger.exception("Failed to initialize Redis - price cache will not persist")
        return None


async def _init_pricing_service(
    app: FastAPI,
    settings: Settings,
    cache_client: Redis[Any] | None,
) -> None:
    """Initialize the pricing service."""
    service = PricingService(settings, cache_client=cache_client)
    await service.initialize()
    app.state.pricing_service = service


async def _shutdown(app: FastAPI) -> None:
    """Shutdown all application services."""
    logger.info("Shutting down application")

    service = getattr(app.state, "pricing_service", None)
    if service is not None:
        await service.shutdown()
        app.state.pricing_service = None

    await close_redis_pools()

    logger.info("Application shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan events."""
    settings: Settings = app.state.settings
    await _startup(app, settings)
    try:
        yield
    finally:
        await _shutdown(app)
