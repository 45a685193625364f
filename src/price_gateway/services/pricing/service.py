"""Pricing service wiring the upstream client and the pricing components.

Provides:
- Bearer tokens for the edge ``/token`` route
- Product search and store location passthroughs
- Batch price lookups through the worker-pool aggregator
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from price_gateway.clients.kroger.client import KrogerClient
from price_gateway.observability.logging import get_logger
from price_gateway.schemas.pricing import TokenResponse
from price_gateway.services.pricing.aggregator import BatchAggregator, WorkerPoolDispatcher
from price_gateway.services.pricing.cache import (
    MemorySnapshotStore,
    PriceCache,
    RedisSnapshotStore,
    SnapshotStore,
)
from price_gateway.services.pricing.constants import DEFAULT_PRODUCT_LIMIT
from price_gateway.services.pricing.exceptions import CredentialsNotConfiguredError
from price_gateway.services.pricing.locator import StoreLocator
from price_gateway.services.pricing.resolver import ProductResolver
from price_gateway.services.pricing.token_broker import TokenBroker, normalize_scope


if TYPE_CHECKING:
    from collections.abc import Mapping
    from typing import Any

    from redis.asyncio import Redis

    from price_gateway.clients.kroger.client import UpstreamResponse
    from price_gateway.core.config import Settings
    from price_gateway.schemas.pricing import BatchJobResult

logger = get_logger(__name__)


class PricingService:
    """Server-side entry point for grocery price lookups.

    The only component that holds the upstream client secret. Everything it
    keeps in memory (tokens, prices) is a best-effort cache that may be
    empty after a cold start.
    """

    def __init__(
        self,
        settings: Settings,
        client: KrogerClient | None = None,
        cache_client: Redis[Any] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Application settings.
            client: Optional pre-built upstream client.
            cache_client: Optional Redis client for the price-cache snapshot.
        """
        self._settings = settings
        self._client = client or KrogerClient.from_settings(settings)
        self._cache_client = cache_client
        self.scope = normalize_scope(settings.kroger.scope)

        self.broker = TokenBroker(self._fetch_token, settings.pricing.token)
        self.resolver = ProductResolver(self._client)
        self.locator = StoreLocator(self._client)
        self.cache: PriceCache | None = None
        self._dispatcher = WorkerPoolDispatcher(
            self.resolver, settings.pricing.batch, self.broker, self.scope
        )
        self.aggregator = BatchAggregator(self._dispatcher)

    async def initialize(self) -> None:
        """Open the upstream client and rehydrate the price cache."""
        await self._client.initialize()

        cache_settings = self._settings.pricing.cache
        if cache_settings.enabled:
            store: SnapshotStore
            if self._cache_client is not None:
                store = RedisSnapshotStore(
                    self._cache_client,
                    cache_settings.snapshot_key,
                    cache_settings.ttl_seconds,
                )
            else:
                store = MemorySnapshotStore()
            self.cache = PriceCache.from_settings(cache_settings, store)
            await self.cache.load()
            self.aggregator = BatchAggregator(self._dispatcher, self.cache)

        if not self._client.has_credentials:
            logger.warning("Upstream client credentials are not configured")
        logger.info("PricingService initialized", cache_enabled=self.cache is not None)

    async def shutdown(self) -> None:
        """Close the upstream client."""
        await self._client.shutdown()
        logger.info("PricingService shutdown")

    async def _fetch_token(self, scope: str) -> UpstreamResponse:
        if not self._client.has_credentials:
            raise CredentialsNotConfiguredError
        return await self._client.request_token(scope)

    async def issue_token(self) -> TokenResponse:
        """Return a bearer token for the configured scope.

        Raises:
            CredentialsNotConfiguredError: When the client id or secret is unset.
            AuthError: When upstream refused every attempt.
        """
        token = await self.broker.get_token(self.scope)
        return TokenResponse(
            access_token=token.value,
            expires_in=self.broker.expires_in(token),
            token_type="bearer",
        )

    async def search_products(
        self,
        term: str | None,
        location_id: str | None,
        limit: str | int = DEFAULT_PRODUCT_LIMIT,
        *,
        token: str,
    ) -> UpstreamResponse:
        """Product search passthrough using the caller's bearer token."""
        return await self._client.search_products(
            ProductResolver.build_params(term, location_id, limit),
            token=token,
        )

    async def search_locations(self, params: Mapping[str, str], *, token: str) -> UpstreamResponse:
        """Locations passthrough using the caller's bearer token."""
        return await self.locator.search_raw(params, token=token)

    async def batch_search(
        self,
        terms: list[str | None],
        location_id: str | None,
        *,
        token: str,
    ) -> list[BatchJobResult]:
        """Resolve a batch of terms with the caller's bearer token."""
        return await self.aggregator.resolve_many(terms, location_id, token=token)


__all__ = ["PricingService"]
