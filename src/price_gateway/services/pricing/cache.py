"""Time-bounded price cache with insertion-order eviction and snapshots.

Entries are keyed by ``"{store_id or 'none'}|{normalized term}"`` and hold
either a product or ``None`` (a confirmed no-match). The whole cache is
written to a snapshot store after every ``put`` and can be rehydrated from
it, dropping entries that have already expired.
"""

from __future__ import annotations

import enum
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, Protocol

import orjson
import redis.asyncio as redis
from pydantic import ValidationError

from price_gateway.observability.logging import get_logger
from price_gateway.observability.metrics import PRICE_CACHE_LOOKUPS
from price_gateway.schemas.pricing import PricedProduct
from price_gateway.services.pricing.terms import normalize_term


if TYPE_CHECKING:
    from collections.abc import Callable

    from redis.asyncio import Redis

    from price_gateway.core.config import PriceCacheSettings

logger = get_logger(__name__)

NO_STORE_KEY: Final[str] = "none"


class _Miss(enum.Enum):
    MISS = "MISS"

    def __bool__(self) -> bool:
        return False


MISS: Final = _Miss.MISS
"""Returned by ``PriceCache.get`` when no live entry exists."""


@dataclass(frozen=True, slots=True)
class CacheEntry:
    product: PricedProduct | None
    stored_at: float


class SnapshotStore(Protocol):
    """Where a serialized cache lives between process restarts."""

    async def load(self) -> bytes | str | None: ...

    async def save(self, payload: bytes) -> None: ...


class MemorySnapshotStore:
    """In-process snapshot store, mainly for tests and single-run tools."""

    def __init__(self, payload: bytes | str | None = None) -> None:
        self.payload = payload
        self.saves = 0

    async def load(self) -> bytes | str | None:
        return self.payload

    async def save(self, payload: bytes) -> None:
        self.payload = payload
        self.saves += 1


class RedisSnapshotStore:
    """Snapshot store backed by one Redis key that expires with the cache TTL.

    Redis failures are logged and swallowed: the cache keeps working in
    memory when the snapshot cannot be read or written.
    """

    def __init__(self, client: Redis[Any], key: str, ttl_seconds: int) -> None:
        self._client = client
        self._key = key
        self._ttl = ttl_seconds

    async def load(self) -> bytes | str | None:
        try:
            return await self._client.get(self._key)
        except redis.RedisError as e:
            logger.warning("Price cache snapshot read failed", key=self._key, error=str(e))
            return None

    async def save(self, payload: bytes) -> None:
        try:
            await self._client.setex(self._key, self._ttl, payload)
        except redis.RedisError as e:
            logger.warning("Price cache snapshot write failed", key=self._key, error=str(e))


def cache_key(store_id: str | None, term: str) -> str:
    """Build the cache key for a store and a raw term."""
    return f"{store_id or NO_STORE_KEY}|{normalize_term(term)}"


class PriceCache:
    """Bounded TTL cache of shaped products.

    Reads are synchronous. Writes are async only because they persist the
    snapshot. Concurrent writers to the same key are last-writer-wins.
    """

    def __init__(
        self,
        store: SnapshotStore | None = None,
        *,
        ttl_seconds: float = 15 * 60,
        max_entries: int = 500,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries < 1:
            msg = "max_entries must be at least 1"
            raise ValueError(msg)
        self._store = store
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    @classmethod
    def from_settings(
        cls,
        settings: PriceCacheSettings,
        store: SnapshotStore | None = None,
    ) -> PriceCache:
        return cls(
            store,
            ttl_seconds=settings.ttl_seconds,
            max_entries=settings.max_entries,
        )

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def _expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self._ttl

    def get(self, store_id: str | None, term: str) -> PricedProduct | None | _Miss:
        """Return the cached product, ``None`` for a cached no-match, or MISS."""
        key = cache_key(store_id, term)
        entry = self._entries.get(key)
        if entry is None:
            PRICE_CACHE_LOOKUPS.labels(result="miss").inc()
            return MISS
        if self._expired(entry, self._clock()):
            del self._entries[key]
            PRICE_CACHE_LOOKUPS.labels(result="expired").inc()
            return MISS
        PRICE_CACHE_LOOKUPS.labels(result="hit").inc()
        return entry.product

    async def put(
        self,
        store_id: str | None,
        term: str,
        product: PricedProduct | None,
    ) -> None:
        """Insert or overwrite an entry, evicting oldest entries first."""
        key = cache_key(store_id, term)
        now = self._clock()

        # An overwrite counts as a fresh insertion
        self._entries.pop(key, None)
        self._purge_expired(now)
        while len(self._entries) >= self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Price cache eviction", key=evicted)

        self._entries[key] = CacheEntry(product, now)
        await self._persist()

    def clear(self) -> None:
        self._entries.clear()

    def _purge_expired(self, now: float) -> None:
        for key in [k for k, e in self._entries.items() if self._expired(e, now)]:
            del self._entries[key]

    # =========================================================================
    # Snapshot persistence
    # =========================================================================

    def dumps(self) -> bytes:
        """Serialize live entries as ``{key: {product, storedAt}}``."""
        return orjson.dumps(
            {
                key: {
                    "product": entry.product.model_dump(mode="json")
                    if entry.product is not None
                    else None,
                    "storedAt": entry.stored_at,
                }
                for key, entry in self._entries.items()
            }
        )

    async def _persist(self) -> None:
        if self._store is not None:
            await self._store.save(self.dumps())

    async def load(self) -> int:
        """Rehydrate from the snapshot store, discarding expired entries.

        Returns:
            Number of entries restored.
        """
        if self._store is None:
            return 0
        payload = await self._store.load()
        if not payload:
            return 0

        try:
            raw = orjson.loads(payload)
        except orjson.JSONDecodeError:
            logger.warning("Discarding unreadable price cache snapshot")
            return 0
        if not isinstance(raw, dict):
            return 0

        now = self._clock()
        restored: OrderedDict[str, CacheEntry] = OrderedDict()
        for key, value in raw.items():
            try:
                entry = CacheEntry(
                    product=PricedProduct.model_validate(value["product"])
                    if value.get("product") is not None
                    else None,
                    stored_at=float(value["storedAt"]),
                )
            except (KeyError, TypeError, ValueError, AttributeError, ValidationError):
                continue
            if not self._expired(entry, now):
                restored[key] = entry

        while len(restored) > self._max_entries:
            restored.popitem(last=False)

        self._entries = restored
        logger.info("Price cache rehydrated", entries=len(restored))
        return len(restored)


__all__ = [
    "MISS",
    "CacheEntry",
    "MemorySnapshotStore",
    "PriceCache",
    "RedisSnapshotStore",
    "SnapshotStore",
    "cache_key",
]
