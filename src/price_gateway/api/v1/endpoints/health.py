"""Health check endpoints.

Provides liveness and readiness probes for orchestrators and load balancers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from price_gateway.api.dependencies import get_app_settings
from price_gateway.cache.redis import check_redis_health
from price_gateway.core.config import Settings  # noqa: TC001


router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Health status", examples=["healthy"])
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Current server timestamp",
    )
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Deployment environment")


class ReadinessResponse(HealthResponse):
    """Readiness check response with dependency status."""

    dependencies: dict[str, str] = Field(
        default_factory=dict,
        description="Status of external dependencies",
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
)
async def health_check(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> HealthResponse:
    """Report that the process is up. No dependencies are checked."""
    return HealthResponse(
        status="healthy",
        version=settings.app.version,
        environment=settings.APP_ENV,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
)
async def readiness_check(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> ReadinessResponse:
    """Report whether the pricing service and its snapshot store are usable.

    Redis only backs the price-cache snapshot, so an unhealthy Redis
    degrades readiness instead of failing it.
    """
    dependencies: dict[str, str] = {}

    service = getattr(request.app.state, "pricing_service", None)
    dependencies["pricing_service"] = "healthy" if service is not None else "unavailable"
    dependencies["upstream_credentials"] = (
        "configured" if settings.has_kroger_credentials else "missing"
    )

    if settings.redis.enabled:
        dependencies.update(await check_redis_health())
    else:
        dependencies["redis_cache"] = "not_configured"

    if service is None:
        overall = "unavailable"
    elif all(
        value in ("healthy", "configured", "not_configured")
        for value in dependencies.values()
    ):
        overall = "ready"
    else:
        overall = "degraded"

    return ReadinessResponse(
        status=overall,
        version=settings.app.version,
        environment=settings.APP_ENV,
        dependencies=dependencies,
    )
