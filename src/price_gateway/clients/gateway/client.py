"""Caller-side client for a deployed price gateway.

Talks to the edge routes over HTTP so callers never hold the upstream
client secret. Tokens come from the edge ``/token`` route and are cached
by a ``TokenBroker`` exactly as the server caches upstream grants.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Final

import httpx

from price_gateway.clients.kroger.client import UpstreamResponse, parse_body
from price_gateway.observability.logging import get_logger
from price_gateway.schemas.pricing import BatchJobResult
from price_gateway.services.pricing.aggregator import BatchAggregator, ChunkedHttpDispatcher
from price_gateway.services.pricing.constants import (
    DEFAULT_LOCATION_CHAIN,
    DEFAULT_LOCATION_LIMIT,
    DEFAULT_LOCATION_RADIUS_MILES,
)
from price_gateway.services.pricing.exceptions import GatewayError, PricingError
from price_gateway.services.pricing.locator import shape_locations
from price_gateway.services.pricing.resolver import shape_top_result
from price_gateway.services.pricing.token_broker import TokenBroker


if TYPE_CHECKING:
    from price_gateway.core.config import TokenSettings
    from price_gateway.schemas.pricing import PricedProduct, StoreLocation
    from price_gateway.services.pricing.cache import PriceCache

logger = get_logger(__name__)


class PriceGatewayClient:
    """HTTP client for the price gateway edge routes."""

    DEFAULT_BASE_URL: Final[str] = "http://localhost:3001/api/kroger"
    SEARCH_LIMIT: Final[int] = 5

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        location_id: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        token_settings: TokenSettings | None = None,
        cache: PriceCache | None = None,
        chunk_size: int = 10,
        timeout: float = 15.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Edge root including the route prefix.
            location_id: Selected store, applied to product lookups.
            http_client: Pre-built HTTP client, mainly for tests.
            token_settings: Retry and expiry settings for edge tokens.
            cache: Price cache for ``find_multiple_ingredients``.
            chunk_size: Terms per ``/batch-search`` request.
            timeout: Request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self.location_id = location_id
        self._http = http_client
        self._owns_http_client = http_client is None
        self._timeout = timeout
        self.broker = TokenBroker(self._request_token, token_settings)
        self.aggregator = BatchAggregator(ChunkedHttpDispatcher(self, chunk_size), cache)

    async def initialize(self) -> None:
        """Initialize the HTTP client if not provided."""
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)

    async def shutdown(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_http_client and self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> PriceGatewayClient:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.shutdown()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            msg = "PriceGatewayClient not initialized"
            raise RuntimeError(msg)
        return self._http

    async def _request_token(self, _scope: str) -> UpstreamResponse:
        # The edge decides the scope; a JSON body keeps form-intercepting hosts away
        response = await self._client().post(f"{self._base_url}/token", json={})
        return UpstreamResponse(response.status_code, parse_body(response))

    async def _authorized(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> Any:
        token = await self.broker.get_token()
        response = await self._client().request(
            method,
            f"{self._base_url}{path}",
            headers={"Authorization": f"Bearer {token.value}"},
            **kwargs,
        )
        body = parse_body(response)
        if response.status_code == httpx.codes.UNAUTHORIZED:
            self.broker.invalidate()
        if response.is_error:
            raise GatewayError(response.status_code, body)
        return body

    async def search_products(
        self,
        term: str,
        location_id: str | None = None,
        limit: int = SEARCH_LIMIT,
    ) -> list[dict[str, Any]]:
        """Raw product search results for a term.

        Raises:
            GatewayError: When the edge answers with an error status.
            AuthError: When no token could be obtained.
        """
        params = {"term": term, "limit": str(limit)}
        store = location_id or self.location_id
        if store:
            params["locationId"] = store
        body = await self._authorized("GET", "/products", params=params)
        data = body.get("data") if isinstance(body, dict) else None
        return data if isinstance(data, list) else []

    async def find_ingredient(
        self,
        term: str,
        location_id: str | None = None,
    ) -> PricedProduct | None:
        """Best-match product for one term, or None when nothing matched."""
        products = await self.search_products(term, location_id)
        return shape_top_result({"data": products})

    async def batch_search(
        self,
        terms: list[str],
        location_id: str | None = None,
    ) -> list[BatchJobResult]:
        """POST one chunk of terms to ``/batch-search``."""
        payload: dict[str, Any] = {"terms": terms}
        store = location_id or self.location_id
        if store:
            payload["locationId"] = store
        body = await self._authorized("POST", "/batch-search", json=payload)
        if not isinstance(body, list):
            raise GatewayError(200, body)
        return [BatchJobResult.model_validate(item) for item in body]

    async def find_multiple_ingredients(self, terms: list[str]) -> list[BatchJobResult]:
        """Price many terms for the selected store, using the cache first."""
        return await self.aggregator.resolve_many(terms, self.location_id)

    async def list_locations_by_zip(
        self,
        zip_code: str | None,
        radius: int = DEFAULT_LOCATION_RADIUS_MILES,
        limit: int = DEFAULT_LOCATION_LIMIT,
        chain: str | None = DEFAULT_LOCATION_CHAIN,
    ) -> list[StoreLocation]:
        """Stores near a postal code. Empty on missing input or failure."""
        if not zip_code:
            return []
        return await self._locations(
            {"filter.zipCode.near": str(zip_code)}, radius, limit, chain
        )

    async def list_locations_by_lat_lon(
        self,
        lat: float | None,
        lon: float | None,
        radius: int = DEFAULT_LOCATION_RADIUS_MILES,
        limit: int = DEFAULT_LOCATION_LIMIT,
        chain: str | None = DEFAULT_LOCATION_CHAIN,
    ) -> list[StoreLocation]:
        """Stores near a point. Empty on missing input or failure."""
        if lat is None or lon is None:
            return []
        return await self._locations({"lat": str(lat), "lon": str(lon)}, radius, limit, chain)

    async def _locations(
        self,
        params: dict[str, str],
        radius: int,
        limit: int,
        chain: str | None,
    ) -> list[StoreLocation]:
        params["filter.radiusInMiles"] = str(radius)
        params["filter.limit"] = str(limit)
        if chain:
            params["filter.chain"] = chain
        try:
            body = await self._authorized("GET", "/locations", params=params)
        except (httpx.HTTPError, PricingError) as e:
            logger.warning("Location listing failed", error=str(e))
            return []
        return shape_locations(body)


__all__ = ["PriceGatewayClient"]
