"""Token endpoint.

Issues upstream bearer tokens to callers so the client secret never leaves
the server.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from price_gateway.api.dependencies import get_pricing_service
from price_gateway.schemas.pricing import TokenResponse
from price_gateway.services.pricing.service import PricingService  # noqa: TC001


router = APIRouter(tags=["Token"])


@router.api_route(
    "/token",
    methods=["GET", "POST"],
    response_model=TokenResponse,
    summary="Get an upstream bearer token",
    description=(
        "Returns a cached or freshly granted client-credentials token for the "
        "configured scope. Upstream errors are relayed with their status."
    ),
    responses={
        500: {
            "description": "Client credentials are not configured",
            "content": {
                "application/json": {
                    "example": {"error": "Missing KROGER_CLIENT_ID or KROGER_CLIENT_SECRET"}
                }
            },
        },
    },
)
async def issue_token(
    response: Response,
    service: Annotated[PricingService, Depends(get_pricing_service)],
) -> TokenResponse:
    """Issue a bearer token for the configured scope."""
    token = await service.issue_token()
    response.headers["Cache-Control"] = "no-store"
    return token
