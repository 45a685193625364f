"""Inbound rate limiting using SlowAPI.

Edge routes are limited per client IP with the configured default limit.
Storage is in-process unless ``rate_limiting.storage_uri`` points at Redis.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from price_gateway.core.config import get_settings
from price_gateway.observability.logging import get_logger


if TYPE_CHECKING:
    from fastapi import FastAPI
    from starlette.requests import Request

logger = get_logger(__name__)


def create_limiter() -> Limiter:
    """Create the IP-keyed limiter from settings."""
    settings = get_settings()

    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limiting.default],
        storage_uri=settings.rate_limiting.storage_uri,
        strategy="fixed-window",
        headers_enabled=True,
    )


# Global limiter instance
limiter = create_limiter()


async def rate_limit_exceeded_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Return 429 with a ``Retry-After`` hint."""
    assert isinstance(exc, RateLimitExceeded)
    logger.warning(
        "Rate limit exceeded",
        path=request.url.path,
        method=request.method,
        client_ip=get_remote_address(request),
        limit=str(exc.detail),
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "message": "Too many requests. Please try again later.",
            "retry_after": exc.detail,
        },
        headers={"Retry-After": str(exc.detail)},
    )


def setup_rate_limiting(app: FastAPI) -> None:
    """Attach the limiter, its middleware and its 429 handler to the app."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    logger.info("Rate limiting configured", default=get_settings().rate_limiting.default)
