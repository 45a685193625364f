"""Batch price lookups for many ingredient terms.

``BatchAggregator`` owns term cleaning, dedup, the price cache and the
mapping of results back onto every accepted input. The network side is a
pluggable dispatcher:

- ``WorkerPoolDispatcher`` searches upstream directly under a concurrency
  cap, a per-request timeout and a global deadline. The edge
  ``/batch-search`` route uses it.
- ``ChunkedHttpDispatcher`` sends chunks of terms to a remote edge's
  ``/batch-search`` and falls back to one ``/products`` call per term when
  a chunk fails.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol

import httpx

from price_gateway.observability.logging import get_logger
from price_gateway.observability.metrics import BATCH_RESULTS, status_class
from price_gateway.schemas.pricing import BatchJobResult
from price_gateway.services.pricing.cache import MISS
from price_gateway.services.pricing.constants import (
    DEADLINE_ERROR,
    DEADLINE_STATUS,
    TIMEOUT_ERROR,
    TIMEOUT_STATUS,
    WORKER_ERROR,
    WORKER_ERROR_STATUS,
)
from price_gateway.services.pricing.exceptions import AuthError, PricingError
from price_gateway.services.pricing.pool import DeadlineWorkerPool
from price_gateway.services.pricing.resolver import shape_top_result
from price_gateway.services.pricing.terms import accepted_terms, normalize_term


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from price_gateway.clients.gateway.client import PriceGatewayClient
    from price_gateway.core.config import BatchSettings
    from price_gateway.services.pricing.cache import PriceCache
    from price_gateway.services.pricing.resolver import ProductResolver
    from price_gateway.services.pricing.token_broker import TokenBroker

logger = get_logger(__name__)


class Dispatcher(Protocol):
    """Resolves cache misses. Terms absent from the result did not finish."""

    async def dispatch(
        self,
        terms: Sequence[str],
        store_id: str | None,
        *,
        token: str | None = None,
    ) -> dict[str, BatchJobResult]: ...


def timeout_result(term: str, exc: BaseException | None = None) -> BatchJobResult:
    return BatchJobResult(
        ingredient=term,
        product=None,
        status=TIMEOUT_STATUS,
        error=TIMEOUT_ERROR,
        message=str(exc) if exc is not None and str(exc) else None,
    )


def worker_error_result(term: str, exc: Exception) -> BatchJobResult:
    return BatchJobResult(
        ingredient=term,
        product=None,
        status=WORKER_ERROR_STATUS,
        error=WORKER_ERROR,
        message=str(exc),
    )


def deadline_result(term: str) -> BatchJobResult:
    return BatchJobResult(
        ingredient=term,
        product=None,
        status=DEADLINE_STATUS,
        error=DEADLINE_ERROR,
    )


class BatchAggregator:
    """Resolve many ingredient terms into one ``BatchJobResult`` each."""

    def __init__(self, dispatcher: Dispatcher, cache: PriceCache | None = None) -> None:
        self._dispatcher = dispatcher
        self._cache = cache

    async def resolve_many(
        self,
        terms: Iterable[object],
        store_id: str | None = None,
        *,
        token: str | None = None,
    ) -> list[BatchJobResult]:
        """Resolve ``terms`` for an optional store.

        Terms of one character or less are dropped. Terms that normalize the
        same share one lookup, but every accepted input gets its own result
        carrying its original spelling, in input order. Terms the dispatcher
        never finished are reported as ``504 deadline_exceeded``.

        Raises:
            AuthError: When no bearer token could be obtained.
        """
        accepted = accepted_terms(terms)
        if not accepted:
            return []

        # normalized form -> first stripped spelling, used for the lookup
        lookups: dict[str, str] = {}
        for term in accepted:
            lookups.setdefault(normalize_term(term), term.strip())

        resolved: dict[str, BatchJobResult] = {}
        misses: list[str] = []
        for norm, lookup in lookups.items():
            cached = self._cache.get(store_id, lookup) if self._cache is not None else MISS
            if cached is MISS:
                misses.append(lookup)
            else:
                resolved[norm] = BatchJobResult(ingredient=lookup, product=cached, status=200)
        hits = len(resolved)

        if misses:
            fetched = await self._dispatcher.dispatch(misses, store_id, token=token)
            for lookup, result in fetched.items():
                resolved[normalize_term(lookup)] = result
                if result.ok and self._cache is not None:
                    await self._cache.put(store_id, lookup, result.product)

        results = []
        for term in accepted:
            found = resolved.get(normalize_term(term))
            if found is None:
                results.append(deadline_result(term))
            else:
                results.append(found.model_copy(update={"ingredient": term}))

        for result in results:
            BATCH_RESULTS.labels(status_class=status_class(result.status)).inc()
        logger.info(
            "Batch resolved",
            terms=len(accepted),
            distinct=len(lookups),
            cache_hits=hits,
            fetched=len(misses),
            failed=sum(1 for r in results if not r.ok),
        )
        return results


class WorkerPoolDispatcher:
    """Search upstream for each term inside a deadline-bounded worker pool."""

    def __init__(
        self,
        resolver: ProductResolver,
        settings: BatchSettings,
        broker: TokenBroker | None = None,
        scope: str | None = None,
    ) -> None:
        self._resolver = resolver
        self._settings = settings
        self._broker = broker
        self._scope = scope

    async def _bearer(self, token: str | None) -> str:
        if token:
            return token
        if self._broker is None:
            msg = "No bearer token supplied and no token broker configured"
            raise PricingError(msg)
        return (await self._broker.get_token(self._scope)).value

    async def dispatch(
        self,
        terms: Sequence[str],
        store_id: str | None,
        *,
        token: str | None = None,
    ) -> dict[str, BatchJobResult]:
        loop = asyncio.get_running_loop()
        started = loop.time()
        bearer = await self._bearer(token)
        timeout = self._settings.request_timeout

        async def fetch_one(term: str) -> BatchJobResult:
            try:
                async with asyncio.timeout(timeout):
                    response = await self._resolver.search(term, store_id, limit=1, token=bearer)
            except (TimeoutError, httpx.HTTPError) as e:
                logger.debug("Product lookup timed out or failed", term=term, error=repr(e))
                return timeout_result(term, e)

            body = response.body
            error = None
            if not response.ok and isinstance(body, dict) and isinstance(body.get("error"), str):
                error = body["error"]
            return BatchJobResult(
                ingredient=term,
                product=shape_top_result(body),
                status=response.status_code,
                error=error,
            )

        pool: DeadlineWorkerPool[str, BatchJobResult] = DeadlineWorkerPool(
            self._settings.concurrency,
            max(0.0, self._settings.deadline - (loop.time() - started)),
        )
        finished = await pool.run(terms, fetch_one, worker_error_result)
        return {terms[index]: result for index, result in finished.items()}


class ChunkedHttpDispatcher:
    """Send chunks of terms to a remote ``/batch-search``.

    A chunk that fails as a whole is retried one term at a time through
    ``/products``. Chunks run concurrently. The bearer token is fetched
    once up front, and an ``AuthError`` fails the whole dispatch.
    """

    def __init__(self, client: PriceGatewayClient, chunk_size: int = 10) -> None:
        if chunk_size < 1:
            msg = "chunk_size must be at least 1"
            raise ValueError(msg)
        self._client = client
        self._chunk_size = chunk_size

    async def dispatch(
        self,
        terms: Sequence[str],
        store_id: str | None,
        *,
        token: str | None = None,  # noqa: ARG002
    ) -> dict[str, BatchJobResult]:
        # One token for the whole batch; failing to get it fails the call
        await self._client.broker.get_token()
        chunks = [
            list(terms[i : i + self._chunk_size])
            for i in range(0, len(terms), self._chunk_size)
        ]
        merged: dict[str, BatchJobResult] = {}
        for chunk_results in await asyncio.gather(
            *(self._run_chunk(chunk, store_id) for chunk in chunks)
        ):
            merged.update(chunk_results)
        return merged

    async def _run_chunk(self, chunk: list[str], store_id: str | None) -> dict[str, BatchJobResult]:
        try:
            batch = await self._client.batch_search(chunk, store_id)
        except AuthError:
            raise
        except (httpx.HTTPError, PricingError) as e:
            logger.warning(
                "Batch chunk failed, falling back to per-term lookups",
                size=len(chunk),
                error=str(e),
            )
            fallback = await asyncio.gather(*(self._lookup_one(term, store_id) for term in chunk))
            return dict(zip(chunk, fallback, strict=True))

        by_term = {result.ingredient: result for result in batch}
        return {term: by_term[term] for term in chunk if term in by_term}

    async def _lookup_one(self, term: str, store_id: str | None) -> BatchJobResult:
        try:
            product = await self._client.find_ingredient(term, store_id)
        except AuthError:
            raise
        except (httpx.HTTPError, PricingError) as e:
            return timeout_result(term, e)
        return BatchJobResult(ingredient=term, product=product, status=200)


__all__ = [
    "BatchAggregator",
    "ChunkedHttpDispatcher",
    "Dispatcher",
    "WorkerPoolDispatcher",
    "deadline_result",
    "timeout_result",
    "worker_error_result",
]
