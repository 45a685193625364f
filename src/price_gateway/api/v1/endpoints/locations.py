"""Store location endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import ORJSONResponse

from price_gateway.api.dependencies import CallerToken, get_pricing_service
from price_gateway.services.pricing.service import PricingService  # noqa: TC001


router = APIRouter(tags=["Locations"])

# friendly name(s) -> upstream filter
_ALIASES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("zip", "postal"), "filter.zipCode.near"),
    (("radius",), "filter.radiusInMiles"),
    (("limit",), "filter.limit"),
    (("chain",), "filter.chain"),
)


def build_location_params(query: dict[str, str]) -> dict[str, str]:
    """Translate friendly query params into upstream ``filter.*`` params.

    ``lat``/``latitude`` with ``lon``/``longitude`` become
    ``filter.latLong.near``. Raw ``filter.*`` params are copied last and win.
    """
    params: dict[str, str] = {}

    lat = query.get("lat", query.get("latitude"))
    lon = query.get("lon", query.get("longitude"))
    if lat is not None and lon is not None:
        params["filter.latLong.near"] = f"{lat},{lon}"

    for names, target in _ALIASES:
        value = next((query[name] for name in names if query.get(name)), None)
        if value is not None:
            params[target] = value

    for key, value in query.items():
        if key.startswith("filter."):
            params[key] = value
    return params


@router.get(
    "/locations",
    summary="Search store locations",
    description=(
        "Finds stores near coordinates or a postal code. Accepts friendly "
        "params (lat, lon, zip, radius, limit, chain) or raw filter.* params. "
        "The upstream body and status are returned unchanged."
    ),
)
async def search_locations(
    request: Request,
    bearer: CallerToken,
    service: Annotated[PricingService, Depends(get_pricing_service)],
) -> ORJSONResponse:
    """Relay a locations search upstream."""
    params = build_location_params(dict(request.query_params))
    upstream = await service.search_locations(params, token=bearer)
    return ORJSONResponse(status_code=upstream.status_code, content=upstream.body)
