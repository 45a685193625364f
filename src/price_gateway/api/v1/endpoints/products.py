"""Product endpoints.

Provides:
- GET /products, a product search passthrough
- POST /batch-search, priced best matches for many ingredient terms
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import ORJSONResponse

from price_gateway.api.dependencies import CallerToken, get_pricing_service
from price_gateway.schemas.pricing import BatchJobResult, BatchSearchRequest
from price_gateway.services.pricing.constants import DEFAULT_PRODUCT_LIMIT
from price_gateway.services.pricing.service import PricingService  # noqa: TC001


router = APIRouter(tags=["Products"])


@router.get(
    "/products",
    summary="Search products",
    description=(
        "Relays a product search upstream with the caller's bearer token. "
        "The upstream body and status are returned unchanged."
    ),
)
async def search_products(
    bearer: CallerToken,
    service: Annotated[PricingService, Depends(get_pricing_service)],
    term: Annotated[str | None, Query()] = None,
    filter_term: Annotated[str | None, Query(alias="filter.term")] = None,
    location_id: Annotated[str | None, Query(alias="locationId")] = None,
    filter_location_id: Annotated[str | None, Query(alias="filter.locationId")] = None,
    limit: Annotated[str | None, Query()] = None,
    filter_limit: Annotated[str | None, Query(alias="filter.limit")] = None,
) -> ORJSONResponse:
    """Search upstream products by term and optional store."""
    upstream = await service.search_products(
        term if term is not None else filter_term,
        location_id if location_id is not None else filter_location_id,
        next(
            (v for v in (limit, filter_limit) if v is not None),
            str(DEFAULT_PRODUCT_LIMIT),
        ),
        token=bearer,
    )
    return ORJSONResponse(status_code=upstream.status_code, content=upstream.body)


@router.post(
    "/batch-search",
    response_model=list[BatchJobResult],
    summary="Price many ingredients",
    description=(
        "Resolves each term of length two or more to its best-match priced "
        "product. Every accepted term gets exactly one result. Per-term "
        "failures are reported in the result's status and error fields."
    ),
)
async def batch_search(
    bearer: CallerToken,
    service: Annotated[PricingService, Depends(get_pricing_service)],
    payload: Annotated[BatchSearchRequest | None, Body()] = None,
) -> list[BatchJobResult]:
    """Resolve a batch of ingredient terms for an optional store."""
    payload = payload or BatchSearchRequest()
    return await service.batch_search(payload.terms, payload.location_id, token=bearer)
