"""Redis connection management and inbound rate limiting."""

from price_gateway.cache.rate_limit import limiter, setup_rate_limiting
from price_gateway.cache.redis import (
    check_redis_health,
    close_redis_pools,
    get_cache_client,
    init_redis_pools,
)


__all__ = [
    "check_redis_health",
    "close_redis_pools",
    "get_cache_client",
    "init_redis_pools",
    "limiter",
    "setup_rate_limiting",
]
