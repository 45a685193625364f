"""Store lookup by postal code or coordinates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from price_gateway.observability.logging import get_logger
from price_gateway.schemas.base import DownstreamResponse
from price_gateway.schemas.pricing import StoreLocation
from price_gateway.services.pricing.constants import (
    DEFAULT_LOCATION_CHAIN,
    DEFAULT_LOCATION_LIMIT,
    DEFAULT_LOCATION_RADIUS_MILES,
)


if TYPE_CHECKING:
    from collections.abc import Mapping

    from price_gateway.clients.kroger.client import KrogerClient, UpstreamResponse

logger = get_logger(__name__)


class UpstreamAddress(DownstreamResponse):
    address_line1: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


class UpstreamLocation(DownstreamResponse):
    location_id: str
    name: str | None = None
    chain: str | None = None
    address: UpstreamAddress = UpstreamAddress()


def shape_locations(body: Any) -> list[StoreLocation]:
    """Shape the ``data`` array of a locations response, skipping bad rows."""
    rows = body.get("data") if isinstance(body, dict) else None
    if not isinstance(rows, list):
        return []

    locations = []
    for row in rows:
        try:
            upstream = UpstreamLocation.model_validate(row)
        except ValidationError:
            continue
        locations.append(
            StoreLocation(
                location_id=upstream.location_id,
                name=upstream.name,
                chain=upstream.chain,
                address_line=upstream.address.address_line1,
                city=upstream.address.city,
                state=upstream.address.state,
                zip_code=upstream.address.zip_code,
            )
        )
    return locations


class StoreLocator:
    """Find nearby stores through the upstream locations endpoint."""

    def __init__(self, client: KrogerClient) -> None:
        self._client = client

    async def search_raw(self, params: Mapping[str, str], *, token: str) -> UpstreamResponse:
        """Pass ``filter.*`` params straight through to upstream."""
        return await self._client.search_locations(params, token=token)

    async def find_by_postal_code(
        self,
        zip_code: str | None,
        radius: int = DEFAULT_LOCATION_RADIUS_MILES,
        limit: int = DEFAULT_LOCATION_LIMIT,
        chain: str | None = DEFAULT_LOCATION_CHAIN,
        *,
        token: str,
    ) -> list[StoreLocation]:
        """Stores near a postal code. Empty on missing input or upstream failure."""
        if not zip_code:
            return []
        params = {"filter.zipCode.near": str(zip_code)}
        return await self._find(params, radius, limit, chain, token=token)

    async def find_by_coordinates(
        self,
        lat: float | None,
        lon: float | None,
        radius: int = DEFAULT_LOCATION_RADIUS_MILES,
        limit: int = DEFAULT_LOCATION_LIMIT,
        chain: str | None = DEFAULT_LOCATION_CHAIN,
        *,
        token: str,
    ) -> list[StoreLocation]:
        """Stores near a point. Empty on missing input or upstream failure."""
        if lat is None or lon is None:
            return []
        params = {"filter.latLong.near": f"{lat},{lon}"}
        return await self._find(params, radius, limit, chain, token=token)

    async def _find(
        self,
        params: dict[str, str],
        radius: int,
        limit: int,
        chain: str | None,
        *,
        token: str,
    ) -> list[StoreLocation]:
        params["filter.radiusInMiles"] = str(radius)
        params["filter.limit"] = str(limit)
        if chain:
            params["filter.chain"] = chain

        try:
            response = await self.search_raw(params, token=token)
        except httpx.HTTPError as e:
            logger.warning("Location lookup failed", error=str(e))
            return []
        if not response.ok:
            logger.warning("Location lookup rejected", status=response.status_code)
            return []
        return shape_locations(response.body)


__all__ = ["StoreLocator", "shape_locations"]
