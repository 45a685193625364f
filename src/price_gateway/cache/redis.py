"""Redis client and connection pool management.

Redis backs the price-cache snapshot when ``redis.enabled`` is set. The
pool is created and closed by the application lifespan.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from price_gateway.core.config import get_settings
from price_gateway.observability.logging import get_logger


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)

_cache_pool: ConnectionPool[Any] | None = None
_cache_client: Redis[Any] | None = None


async def init_redis_pools() -> None:
    """Initialize the cache connection pool and verify it answers PING.

    Raises:
        redis.ConnectionError: If the server is unreachable.
    """
    global _cache_pool, _cache_client  # noqa: PLW0603

    settings = get_settings()

    logger.info(
        "Initializing Redis connection",
        host=settings.redis.host,
        port=settings.redis.port,
    )

    _cache_pool = ConnectionPool.from_url(
        settings.redis_cache_url,
        max_connections=10,
        decode_responses=True,
    )
    _cache_client = redis.Redis(connection_pool=_cache_pool)

    try:
        await _cache_client.ping()
        logger.info("Redis connection established")
    except redis.ConnectionError:
        logger.exception("Failed to connect to Redis")
        raise


async def close_redis_pools() -> None:
    """Close the cache client and its pool."""
    global _cache_pool, _cache_client  # noqa: PLW0603

    if _cache_client:
        await _cache_client.aclose()
        _cache_client = None

    if _cache_pool:
        await _cache_pool.disconnect()
        _cache_pool = None

    logger.info("Redis connections closed")


def get_cache_client() -> Redis[Any]:
    """Get the cache Redis client.

    Raises:
        RuntimeError: If Redis is not initialized.
    """
    if _cache_client is None:
        msg = "Redis cache client not initialized. Call init_redis_pools() first."
        raise RuntimeError(msg)
    return _cache_client


async def check_redis_health() -> dict[str, str]:
    """Report ``healthy``, ``unhealthy`` or ``not_initialized`` for the cache."""
    if _cache_client is None:
        return {"redis_cache": "not_initialized"}
    try:
        await _cache_client.ping()
    except redis.ConnectionError:
        return {"redis_cache": "unhealthy"}
    return {"redis_cache": "healthy"}
