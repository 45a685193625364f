"""Pydantic schemas for request/response validation."""

from price_gateway.schemas.base import APIRequest, APIResponse, DownstreamResponse
from price_gateway.schemas.pricing import (
    BatchJobResult,
    BatchSearchRequest,
    EnvCheckResponse,
    PricedProduct,
    StoreLocation,
    TokenResponse,
)


__all__ = [
    "APIRequest",
    "APIResponse",
    "BatchJobResult",
    "BatchSearchRequest",
    "DownstreamResponse",
    "EnvCheckResponse",
    "PricedProduct",
    "StoreLocation",
    "TokenResponse",
]
