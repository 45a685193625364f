"""Schemas for priced products, batch lookups and store locations."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from price_gateway.schemas.base import APIRequest, APIResponse


class PricedProduct(APIResponse):
    """Best-match product for an ingredient term, shaped for display."""

    model_config = ConfigDict(frozen=True)

    product_id: str | None = None
    description: str | None = None
    brand: str | None = None
    price: float = 0
    regular_price: float = 0
    on_sale: bool = False
    size: str = ""
    image_url: str | None = None
    upc: str | None = None
    aisle_text: str | None = None
    categories: list[str] = Field(default_factory=list)


class BatchJobResult(APIResponse):
    """Terminal record for one accepted ingredient term.

    ``ingredient`` is the caller's original string, never the normalized
    form. Failures are carried in ``status`` and ``error``.
    """

    ingredient: str
    product: PricedProduct | None = None
    status: int
    error: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the lookup completed with a 2xx status."""
        return 200 <= self.status < 300


class BatchSearchRequest(APIRequest):
    """Body of ``POST /batch-search``."""

    terms: list[str | None] = Field(default_factory=list)
    location_id: str | None = None


class StoreLocation(APIResponse):
    """A store as returned by the locator."""

    location_id: str
    name: str | None = None
    chain: str | None = None
    address_line: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


class EnvCheckResponse(APIResponse):
    """Credential presence diagnostics. Previews are masked."""

    has_id: bool
    has_secret: bool
    id_preview: str | None = None
    secret_preview: str | None = None
    scope_raw: str
    scope_effective: str


class TokenResponse(BaseModel):
    """OAuth token payload. The wire format is snake_case."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int
    token_type: str = "bearer"
