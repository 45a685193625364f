"""API v1 router aggregating all endpoint routers.

All endpoints are mounted under the configured ``api.v1_prefix``
(``/api/kroger`` by default).
"""

from __future__ import annotations

from fastapi import APIRouter

from price_gateway.api.v1.endpoints import diagnostics, health, locations, products, token


router = APIRouter()

router.include_router(health.router)
router.include_router(token.router)
router.include_router(products.router)
router.include_router(locations.router)
router.include_router(diagnostics.router)
