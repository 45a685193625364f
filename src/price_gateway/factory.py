"""Application factory for creating FastAPI instances.

This module provides the create_app factory function that:
- Configures the FastAPI application with appropriate settings
- Sets up middleware stack in the correct order
- Registers exception handlers and rate limiting
- Mounts API routers under the configured prefix
- Configures metrics
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse

from price_gateway.api.v1.router import router as v1_router
from price_gateway.cache.rate_limit import setup_rate_limiting
from price_gateway.core.config import Settings, get_settings
from price_gateway.core.events.lifespan import lifespan
from price_gateway.core.exceptions import setup_exception_handlers
from price_gateway.core.middleware import (
    LoggingMiddleware,
    RequestContextMiddleware,
)
from price_gateway.observability.metrics import setup_metrics


SLOW_REQUEST_SLACK_SECONDS = 0.5


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Optional settings override. If not provided, uses get_settings().

    Returns:
        Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    prefix = settings.api.v1_prefix

    app = FastAPI(
        title=settings.app.name,
        version=settings.app.version,
        description="Token-cached, rate-limited grocery price aggregation gateway",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url=f"{prefix}/docs" if settings.is_development else None,
        redoc_url=None,
        openapi_url=f"{prefix}/openapi.json" if settings.is_development else None,
        debug=settings.app.debug,
    )

    app.state.settings = settings

    setup_exception_handlers(app)

    # Middleware runs in reverse order of addition
    _setup_middleware(app, settings)
    setup_rate_limiting(app)

    app.include_router(v1_router, prefix=prefix)

    # After routes are mounted
    setup_metrics(app, settings)

    return app


def _setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure middleware stack.

    Order from request perspective:
    1. RequestContextMiddleware (request ID and timing)
    2. LoggingMiddleware (logs requests/responses)
    3. GZipMiddleware (compresses responses)
    4. CORSMiddleware (handles CORS)
    """
    if settings.api.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.api.cors_origins],
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
            expose_headers=["X-Request-ID", "X-Process-Time"],
        )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    prefix = settings.api.v1_prefix
    app.add_middleware(
        LoggingMiddleware,
        exclude_paths={f"{prefix}/health", f"{prefix}/ready", f"{prefix}/metrics"},
    )

    # Batch searches may run up to the pricing deadline
    app.add_middleware(
        RequestContextMiddleware,
        slow_threshold=settings.pricing.batch.deadline + SLOW_REQUEST_SLACK_SECONDS,
    )
