"""Operator diagnostics.

``GET /env-check`` reports whether upstream credentials are configured,
showing at most a masked preview of each value. It is hidden (404) unless
``kroger.debug`` is enabled.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from price_gateway.api.dependencies import get_app_settings
from price_gateway.core.config import Settings  # noqa: TC001
from price_gateway.schemas.pricing import EnvCheckResponse
from price_gateway.services.pricing.token_broker import normalize_scope


router = APIRouter(tags=["Diagnostics"])

SHORT_SECRET_LENGTH = 8


def mask_secret(value: str | None) -> str | None:
    """First and last characters only, ``***`` in between."""
    if not value:
        return None
    if len(value) <= SHORT_SECRET_LENGTH:
        return f"{value[0]}***{value[-1]}"
    return f"{value[:4]}***{value[-4:]}"


@router.get(
    "/env-check",
    response_model=EnvCheckResponse,
    include_in_schema=False,
)
async def env_check(
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> EnvCheckResponse:
    """Report credential presence with masked previews."""
    if not settings.kroger.debug:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    return EnvCheckResponse(
        has_id=bool(settings.KROGER_CLIENT_ID),
        has_secret=bool(settings.KROGER_CLIENT_SECRET),
        id_preview=mask_secret(settings.KROGER_CLIENT_ID),
        secret_preview=mask_secret(settings.KROGER_CLIENT_SECRET),
        scope_raw=settings.kroger.scope,
        scope_effective=normalize_scope(settings.kroger.scope),
    )
