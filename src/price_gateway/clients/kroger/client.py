"""Kroger public API client.

Thin async wrapper over the OAuth token endpoint and the authenticated
product and location endpoints. Upstream statuses are carried back to the
caller instead of raised, and non-JSON bodies are wrapped so every response
has a structured payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import httpx
import orjson
from aiolimiter import AsyncLimiter

from price_gateway.observability.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Mapping

    from price_gateway.core.config import Settings

logger = get_logger(__name__)

NON_JSON_ERROR: Final[str] = "non_json_response"


@dataclass(frozen=True, slots=True)
class UpstreamResponse:
    """Status and parsed body of one upstream call."""

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        """Whether the status is in the 2xx range."""
        return 200 <= self.status_code < 300


def parse_body(response: httpx.Response) -> Any:
    """Parse a JSON body, wrapping anything else as ``non_json_response``."""
    try:
        return orjson.loads(response.content)
    except orjson.JSONDecodeError:
        return {"error": NON_JSON_ERROR, "raw": response.text}


class KrogerClient:
    """Client for the Kroger public API.

    Outbound requests share one ``AsyncLimiter`` so bursts from the batch
    pool stay under the upstream per-second budget.
    """

    TOKEN_ENDPOINT: Final[str] = "/connect/oauth2/token"
    PRODUCTS_ENDPOINT: Final[str] = "/products"
    LOCATIONS_ENDPOINT: Final[str] = "/locations"

    def __init__(
        self,
        *,
        base_url: str,
        client_id: str = "",
        client_secret: str = "",
        timeout: float = 10.0,
        requests_per_second: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Upstream API root, e.g. ``https://api.kroger.com/v1``.
            client_id: OAuth client id.
            client_secret: OAuth client secret. Only ever sent upstream.
            timeout: Default request timeout in seconds.
            requests_per_second: Outbound rate limit.
            http_client: Pre-built HTTP client, mainly for tests.
        """
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._limiter = AsyncLimiter(max(requests_per_second, 1), time_period=1)
        self._http = http_client
        self._owns_http_client = http_client is None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> KrogerClient:
        """Build a client from application settings."""
        return cls(
            base_url=settings.kroger.base_url,
            client_id=settings.KROGER_CLIENT_ID,
            client_secret=settings.KROGER_CLIENT_SECRET,
            timeout=settings.kroger.timeout,
            requests_per_second=settings.kroger.requests_per_second,
            http_client=http_client,
        )

    @property
    def has_credentials(self) -> bool:
        """Whether both the client id and secret are configured."""
        return bool(self._client_id and self._client_secret)

    async def initialize(self) -> None:
        """Initialize the HTTP client if not provided."""
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self._timeout)
        logger.info("KrogerClient initialized", base_url=self._base_url)

    async def shutdown(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_http_client and self._http is not None:
            await self._http.aclose()
            self._http = None
        logger.info("KrogerClient shutdown")

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            msg = "KrogerClient not initialized"
            raise RuntimeError(msg)
        return self._http

    async def request_token(self, scope: str) -> UpstreamResponse:
        """POST a client-credentials grant for ``scope``.

        Raises:
            httpx.HTTPError: On transport failure.
        """
        async with self._limiter:
            response = await self._client().post(
                f"{self._base_url}{self.TOKEN_ENDPOINT}",
                data={"grant_type": "client_credentials", "scope": scope},
                auth=httpx.BasicAuth(self._client_id, self._client_secret),
                headers={"Accept": "application/json"},
            )
        return UpstreamResponse(response.status_code, parse_body(response))

    async def get(
        self,
        path: str,
        params: Mapping[str, str],
        *,
        token: str,
        timeout: float | None = None,
    ) -> UpstreamResponse:
        """Authenticated GET against an API path such as ``/products``.

        Raises:
            httpx.HTTPError: On transport failure or timeout.
        """
        async with self._limiter:
            response = await self._client().get(
                f"{self._base_url}{path}",
                params=dict(params),
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
                timeout=timeout if timeout is not None else self._timeout,
            )
        if response.status_code >= 400:
            logger.debug("Upstream error status", path=path, status=response.status_code)
        return UpstreamResponse(response.status_code, parse_body(response))

    async def search_products(
        self,
        params: Mapping[str, str],
        *,
        token: str,
        timeout: float | None = None,
    ) -> UpstreamResponse:
        """GET ``/products`` with already-built ``filter.*`` params."""
        return await self.get(self.PRODUCTS_ENDPOINT, params, token=token, timeout=timeout)

    async def search_locations(
        self,
        params: Mapping[str, str],
        *,
        token: str,
    ) -> UpstreamResponse:
        """GET ``/locations`` with already-built ``filter.*`` params."""
        return await self.get(self.LOCATIONS_ENDPOINT, params, token=token)


__all__ = ["NON_JSON_ERROR", "KrogerClient", "UpstreamResponse", "parse_body"]
