"""Unit tests for BatchAggregator and its dispatchers."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import httpx
import pytest

from price_gateway.clients.kroger.client import UpstreamResponse
from price_gateway.core.config import BatchSettings
from price_gateway.schemas.pricing import BatchJobResult, PricedProduct
from price_gateway.services.pricing.aggregator import (
    BatchAggregator,
    ChunkedHttpDispatcher,
    WorkerPoolDispatcher,
)
from price_gateway.services.pricing.cache import MISS, MemorySnapshotStore, PriceCache
from price_gateway.services.pricing.exceptions import AuthError, GatewayError, PricingError
from price_gateway.services.pricing.token_broker import BearerToken
from tests.fixtures.pricing import make_product


if TYPE_CHECKING:
    from tests.fixtures.pricing import FakeClock


pytestmark = pytest.mark.unit


class FakeResolver:
    """Resolver answering from a term -> (status, body, delay) table."""

    def __init__(self, table: dict[str, tuple[int, Any, float]] | None = None) -> None:
        self.table = table or {}
        self.calls: list[tuple[str, str | None, str]] = []
        self.active = 0
        self.peak = 0

    async def search(
        self,
        term: str,
        store_id: str | None = None,
        limit: int = 1,
        *,
        token: str,
        timeout: float | None = None,
    ) -> UpstreamResponse:
        self.calls.append((term, store_id, token))
        status, body, delay = self.table.get(
            term, (200, {"data": [make_product(f"id-{term}", term)]}, 0.0)
        )
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if delay:
                await asyncio.sleep(delay)
            if isinstance(body, Exception):
                raise body
            return UpstreamResponse(status, body)
        finally:
            self.active -= 1


def fast_settings(**overrides: Any) -> BatchSettings:
    values = {"request_timeout_ms": 1000, "deadline_ms": 2000, "concurrency": 3}
    values.update(overrides)
    return BatchSettings(**values)


def make_aggregator(
    resolver: FakeResolver,
    settings: BatchSettings | None = None,
    cache: PriceCache | None = None,
    broker: Any = None,
) -> BatchAggregator:
    dispatcher = WorkerPoolDispatcher(resolver, settings or fast_settings(), broker)
    return BatchAggregator(dispatcher, cache)


class TestResolveMany:
    """Tests for term cleaning, dedup and result mapping."""

    async def test_duplicates_share_one_lookup(self) -> None:
        """Should look up equivalent terms once but answer each input."""
        resolver = FakeResolver()
        aggregator = make_aggregator(resolver)

        results = await aggregator.resolve_many(
            ["milk", "MILK", "eggs ", "a", None], "s1", token="tok"
        )

        assert [r.ingredient for r in results] == ["milk", "MILK", "eggs "]
        assert all(r.status == 200 for r in results)
        assert results[0].product == results[1].product
        assert sorted(term for term, _, _ in resolver.calls) == ["eggs", "milk"]
        assert {token for _, _, token in resolver.calls} == {"tok"}

    async def test_empty_when_nothing_accepted(self) -> None:
        """Should not dispatch anything for an all-rejected input."""
        resolver = FakeResolver()
        aggregator = make_aggregator(resolver)

        assert await aggregator.resolve_many(["", "x", None], "s1", token="tok") == []
        assert resolver.calls == []

    async def test_no_match_is_success(self) -> None:
        """Should report an empty search as 200 with no product."""
        resolver = FakeResolver({"unobtainium": (200, {"data": []}, 0.0)})
        aggregator = make_aggregator(resolver)

        [result] = await aggregator.resolve_many(["unobtainium"], "s1", token="tok")

        assert result.status == 200
        assert result.product is None
        assert result.error is None

    async def test_upstream_error_is_carried(self) -> None:
        """Should keep the upstream status and error tag."""
        resolver = FakeResolver({"milk": (429, {"error": "rate_limited"}, 0.0)})
        aggregator = make_aggregator(resolver)

        [result] = await aggregator.resolve_many(["milk"], "s1", token="tok")

        assert result.status == 429
        assert result.error == "rate_limited"
        assert result.product is None

    async def test_slow_request_times_out(self) -> None:
        """Should turn a request over the per-request timeout into a 504."""
        resolver = FakeResolver({"slow": (200, {"data": []}, 0.2)})
        aggregator = make_aggregator(resolver, fast_settings(request_timeout_ms=50))

        results = await aggregator.resolve_many(["slow", "fast"], "s1", token="tok")

        assert results[0].status == 504
        assert results[0].error == "timeout_or_fetch_error"
        assert results[1].status == 200

    async def test_transport_error_is_fetch_error(self) -> None:
        """Should turn a transport failure into a 504 fetch error."""
        resolver = FakeResolver({"milk": (0, httpx.ConnectError("refused"), 0.0)})
        aggregator = make_aggregator(resolver)

        [result] = await aggregator.resolve_many(["milk"], "s1", token="tok")

        assert result.status == 504
        assert result.error == "timeout_or_fetch_error"

    async def test_unexpected_exception_is_worker_error(self) -> None:
        """Should isolate an unexpected worker failure to its own term."""
        resolver = FakeResolver({"milk": (0, KeyError("boom"), 0.0)})
        aggregator = make_aggregator(resolver)

        results = await aggregator.resolve_many(["milk", "eggs"], "s1", token="tok")

        assert results[0].status == 500
        assert results[0].error == "worker_error"
        assert results[1].status == 200

    async def test_deadline_marks_unfinished_terms(self) -> None:
        """Should report every term not finished by the deadline."""
        resolver = FakeResolver(
            {
                "stuck": (200, {"data": []}, 0.5),
                "queued": (200, {"data": []}, 0.0),
            }
        )
        settings = fast_settings(request_timeout_ms=1000, deadline_ms=100, concurrency=1)
        aggregator = make_aggregator(resolver, settings)

        results = await aggregator.resolve_many(["milk", "stuck", "queued"], "s1", token="tok")

        assert [r.ingredient for r in results] == ["milk", "stuck", "queued"]
        assert results[0].status == 200
        assert results[1].status == 504
        assert results[1].error == "deadline_exceeded"
        assert results[2].error == "deadline_exceeded"
        assert "queued" not in [term for term, _, _ in resolver.calls]

    async def test_concurrency_is_bounded(self) -> None:
        """Should keep at most the configured number of requests in flight."""
        resolver = FakeResolver({f"term{i}": (200, {"data": []}, 0.01) for i in range(10)})
        aggregator = make_aggregator(resolver, fast_settings(concurrency=2))

        await aggregator.resolve_many([f"term{i}" for i in range(10)], "s1", token="tok")

        assert resolver.peak == 2


class TestResolveManyWithCache:
    """Tests for price cache integration."""

    @pytest.fixture
    def cache(self, clock: FakeClock) -> PriceCache:
        return PriceCache(MemorySnapshotStore(), clock=clock)

    async def test_cache_hit_skips_upstream(self, cache: PriceCache) -> None:
        """Should answer a cached term without dispatching it."""
        await cache.put("s1", "milk", PricedProduct(product_id="cached-milk"))
        resolver = FakeResolver()
        aggregator = make_aggregator(resolver, cache=cache)

        [result] = await aggregator.resolve_many(["Milk!"], "s1", token="tok")

        assert result.status == 200
        assert result.ingredient == "Milk!"
        assert result.product is not None
        assert result.product.product_id == "cached-milk"
        assert resolver.calls == []

    async def test_cached_no_match_skips_upstream(self, cache: PriceCache) -> None:
        await cache.put("s1", "unobtainium", None)
        resolver = FakeResolver()
        aggregator = make_aggregator(resolver, cache=cache)

        [result] = await aggregator.resolve_many(["unobtainium"], "s1", token="tok")

        assert result.status == 200
        assert result.product is None
        assert resolver.calls == []

    async def test_successes_are_cached(self, cache: PriceCache) -> None:
        """Should cache both products and confirmed no-matches."""
        resolver = FakeResolver({"unobtainium": (200, {"data": []}, 0.0)})
        aggregator = make_aggregator(resolver, cache=cache)

        await aggregator.resolve_many(["milk", "unobtainium"], "s1", token="tok")

        assert isinstance(cache.get("s1", "milk"), PricedProduct)
        assert cache.get("s1", "unobtainium") is None

    async def test_failures_are_not_cached(self, cache: PriceCache) -> None:
        """Should never cache non-2xx results."""
        resolver = FakeResolver(
            {
                "milk": (429, {"error": "rate_limited"}, 0.0),
                "eggs": (0, httpx.ReadTimeout("slow"), 0.0),
            }
        )
        aggregator = make_aggregator(resolver, cache=cache)

        await aggregator.resolve_many(["milk", "eggs"], "s1", token="tok")

        assert cache.get("s1", "milk") is MISS
        assert cache.get("s1", "eggs") is MISS

    async def test_cache_is_scoped_by_store(self, cache: PriceCache) -> None:
        await cache.put("s1", "milk", PricedProduct(product_id="s1-milk"))
        resolver = FakeResolver()
        aggregator = make_aggregator(resolver, cache=cache)

        await aggregator.resolve_many(["milk"], "s2", token="tok")

        assert resolver.calls == [("milk", "s2", "tok")]


class TestWorkerPoolDispatcherTokens:
    """Tests for how the dispatcher obtains its bearer token."""

    async def test_uses_broker_without_caller_token(self) -> None:
        """Should fall back to the broker when no token is supplied."""
        broker = AsyncMock()
        broker.get_token.return_value = BearerToken("broker-tok", "product.compact", 1e12)
        resolver = FakeResolver()
        aggregator = make_aggregator(resolver, broker=broker)

        await aggregator.resolve_many(["milk"], "s1")

        assert resolver.calls == [("milk", "s1", "broker-tok")]

    async def test_token_failure_propagates(self) -> None:
        """Should let a token failure abort the whole batch."""
        broker = AsyncMock()
        broker.get_token.side_effect = AuthError(401, {"error": "invalid_client"})
        aggregator = make_aggregator(FakeResolver(), broker=broker)

        with pytest.raises(AuthError):
            await aggregator.resolve_many(["milk"], "s1")

    async def test_no_token_source(self) -> None:
        aggregator = make_aggregator(FakeResolver())

        with pytest.raises(PricingError):
            await aggregator.resolve_many(["milk"], "s1")

    async def test_token_wait_counts_against_deadline(self) -> None:
        """Should start the deadline before the broker hands out a token."""

        async def slow_token(_scope: object = None) -> BearerToken:
            await asyncio.sleep(0.2)
            return BearerToken("broker-tok", "product.compact", 1e12)

        broker = AsyncMock()
        broker.get_token.side_effect = slow_token
        resolver = FakeResolver()
        aggregator = make_aggregator(resolver, fast_settings(deadline_ms=100), broker=broker)

        results = await aggregator.resolve_many(["milk", "eggs"], "s1")

        assert [r.error for r in results] == ["deadline_exceeded", "deadline_exceeded"]
        assert resolver.calls == []


class FakeGatewayClient:
    """Stands in for PriceGatewayClient inside ChunkedHttpDispatcher."""

    def __init__(self, failing_chunks: int = 0, chunk_error: Exception | None = None) -> None:
        self.failing_chunks = failing_chunks
        self.chunk_error = chunk_error or GatewayError(502, {"error": "bad gateway"})
        self.broker = AsyncMock()
        self.broker.get_token.return_value = BearerToken("edge-tok", "product.compact", 1e12)
        self.chunks: list[list[str]] = []
        self.singles: list[str] = []

    async def batch_search(self, terms: list[str], location_id: str | None) -> list[BatchJobResult]:
        self.chunks.append(terms)
        if self.failing_chunks:
            self.failing_chunks -= 1
            raise self.chunk_error
        return [
            BatchJobResult(ingredient=t, product=PricedProduct(product_id=t), status=200)
            for t in terms
        ]

    async def find_ingredient(self, term: str, location_id: str | None) -> PricedProduct | None:
        self.singles.append(term)
        if term == "broken":
            raise httpx.ConnectError("refused")
        return PricedProduct(product_id=f"single-{term}")


class TestChunkedHttpDispatcher:
    """Tests for chunked remote dispatch."""

    async def test_splits_into_chunks(self) -> None:
        """Should send terms in chunks of the configured size."""
        client = FakeGatewayClient()
        dispatcher = ChunkedHttpDispatcher(client, chunk_size=2)

        results = await dispatcher.dispatch(["a1", "b2", "c3", "d4", "e5"], "s1")

        assert client.chunks == [["a1", "b2"], ["c3", "d4"], ["e5"]]
        assert set(results) == {"a1", "b2", "c3", "d4", "e5"}

    async def test_failed_chunk_falls_back_per_term(self) -> None:
        """Should retry a failed chunk one term at a time."""
        client = FakeGatewayClient(failing_chunks=1)
        dispatcher = ChunkedHttpDispatcher(client, chunk_size=10)

        results = await dispatcher.dispatch(["milk", "broken"], "s1")

        assert client.singles == ["milk", "broken"]
        assert results["milk"].status == 200
        assert results["milk"].product is not None
        assert results["milk"].product.product_id == "single-milk"
        assert results["broken"].status == 504
        assert results["broken"].error == "timeout_or_fetch_error"

    async def test_through_aggregator(self) -> None:
        """Should map chunk results back onto every input spelling."""
        aggregator = BatchAggregator(ChunkedHttpDispatcher(FakeGatewayClient(), chunk_size=1))

        results = await aggregator.resolve_many(["Milk", "milk", "eggs"], "s1")

        assert [r.ingredient for r in results] == ["Milk", "milk", "eggs"]
        assert all(r.ok for r in results)

    async def test_token_failure_fails_the_batch(self) -> None:
        """Should raise instead of running chunks when no token is available."""
        client = FakeGatewayClient()
        client.broker.get_token.side_effect = AuthError(401, {"error": "invalid_client"})
        dispatcher = ChunkedHttpDispatcher(client, chunk_size=2)

        with pytest.raises(AuthError):
            await dispatcher.dispatch(["milk", "eggs"], "s1")

        assert client.chunks == []

    async def test_chunk_auth_error_is_not_a_fallback(self) -> None:
        """Should propagate an auth failure raised by a chunk request."""
        client = FakeGatewayClient(
            failing_chunks=1, chunk_error=AuthError(401, {"error": "expired"})
        )
        dispatcher = ChunkedHttpDispatcher(client, chunk_size=10)

        with pytest.raises(AuthError):
            await dispatcher.dispatch(["milk"], "s1")

        assert client.singles == []

    def test_rejects_zero_chunk_size(self) -> None:
        with pytest.raises(ValueError, match="chunk_size"):
            ChunkedHttpDispatcher(FakeGatewayClient(), chunk_size=0)
