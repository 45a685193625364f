"""Resolve one ingredient term to its best-match priced product."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from price_gateway.observability.logging import get_logger
from price_gateway.schemas.pricing import PricedProduct
from price_gateway.services.pricing.constants import AISLE_SEPARATOR


if TYPE_CHECKING:
    from price_gateway.clients.kroger.client import KrogerClient, UpstreamResponse

logger = get_logger(__name__)


def _first(value: Any) -> dict[str, Any]:
    """First element of a list if it is a mapping, else an empty dict."""
    if isinstance(value, list) and value and isinstance(value[0], dict):
        return value[0]
    return {}


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def build_aisle_text(location: dict[str, Any]) -> str | None:
    """Join ``Aisle N``, the description and ``Bay N``, skipping blanks."""
    parts = []
    if location.get("number"):
        parts.append(f"Aisle {location['number']}")
    if location.get("description"):
        parts.append(str(location["description"]))
    if location.get("bayNumber"):
        parts.append(f"Bay {location['bayNumber']}")
    return AISLE_SEPARATOR.join(parts) if parts else None


def shape_product(product: dict[str, Any]) -> PricedProduct:
    """Shape one upstream product, defaulting every missing nested field."""
    item = _first(product.get("items"))
    price = _mapping(item.get("price"))
    regular = price.get("regular") or 0
    promo = price.get("promo") or None
    image = _first(_first(product.get("images")).get("sizes"))

    return PricedProduct(
        product_id=product.get("productId"),
        description=product.get("description"),
        brand=product.get("brand"),
        price=promo if promo is not None else regular,
        regular_price=regular,
        on_sale=promo is not None,
        size=item.get("size") or "",
        image_url=image.get("url") or None,
        upc=product.get("upc"),
        aisle_text=build_aisle_text(_first(item.get("aisleLocations"))),
        categories=product.get("categories") or [],
    )


def shape_top_result(raw: Any) -> PricedProduct | None:
    """Shape the first product of a search response, or None if there is none."""
    top = _first(_mapping(raw).get("data"))
    if not top:
        return None
    return shape_product(top)


class ProductResolver:
    """Search the upstream product catalogue for ingredient terms."""

    def __init__(self, client: KrogerClient) -> None:
        self._client = client

    @staticmethod
    def build_params(
        term: str | None,
        store_id: str | None = None,
        limit: int | str = 1,
    ) -> dict[str, str]:
        """Build ``filter.*`` query params. A missing store id adds no filter."""
        params: dict[str, str] = {}
        if term:
            params["filter.term"] = term
        if store_id:
            params["filter.locationId"] = store_id
        params["filter.limit"] = str(limit)
        return params

    async def search(
        self,
        term: str,
        store_id: str | None = None,
        limit: int = 1,
        *,
        token: str,
        timeout: float | None = None,
    ) -> UpstreamResponse:
        """Search by term. Upstream error statuses are returned, not raised.

        Raises:
            httpx.HTTPError: On transport failure or timeout.
        """
        response = await self._client.search_products(
            self.build_params(term, store_id, limit),
            token=token,
            timeout=timeout,
        )
        logger.debug("Product search", term=term, store_id=store_id, status=response.status_code)
        return response


__all__ = [
    "ProductResolver",
    "build_aisle_text",
    "shape_product",
    "shape_top_result",
]
