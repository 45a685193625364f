"""FastAPI dependencies for service access and caller authentication.

Services are initialized during application startup and stored in
``app.state``.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Query, Request

from price_gateway.core.exceptions import (
    MissingBearerTokenException,
    ServiceUnavailableException,
)


if TYPE_CHECKING:
    from price_gateway.core.config import Settings
    from price_gateway.services.pricing.service import PricingService


_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


async def get_pricing_service(request: Request) -> PricingService:
    """Get the pricing service from app state.

    Raises:
        ServiceUnavailableException: If the service is not initialized.
    """
    service: PricingService | None = getattr(request.app.state, "pricing_service", None)
    if service is None:
        raise ServiceUnavailableException("Pricing service not available")
    return service


async def get_bearer_token(
    request: Request,
    token: Annotated[
        str | None,
        Query(description="Bearer token, for callers that cannot set headers"),
    ] = None,
) -> str:
    """Caller's bearer token from ``Authorization`` or ``?token=``.

    The token is relayed upstream untouched; the edge does not validate it.

    Raises:
        MissingBearerTokenException: 401 when neither source has a token.
    """
    header = request.headers.get("authorization", "")
    bearer = _BEARER_PREFIX.sub("", header).strip() or token
    if not bearer:
        raise MissingBearerTokenException
    return bearer


CallerToken = Annotated[str, Depends(get_bearer_token)]
