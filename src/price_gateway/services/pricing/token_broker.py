"""Bearer token acquisition with per-scope caching and request coalescing.

Concurrent callers asking for the same scope share one upstream request.
A token is handed out only while ``now`` is before its ``expires_at``, which
already has the safety margin subtracted, so a caller never receives a
token that is about to lapse mid-request.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from price_gateway.clients.kroger.client import UpstreamResponse
from price_gateway.core.config.settings import TokenSettings
from price_gateway.core.retry import retry_with_backoff
from price_gateway.observability.logging import get_logger
from price_gateway.observability.metrics import TOKEN_FETCH_ATTEMPTS
from price_gateway.services.pricing.constants import (
    DEFAULT_SCOPE,
    SCOPE_TYPOS,
    UPSTREAM_UNREACHABLE_ERROR,
    UPSTREAM_UNREACHABLE_STATUS,
)
from price_gateway.services.pricing.exceptions import AuthError


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    TokenFetcher = Callable[[str], Awaitable[UpstreamResponse]]

logger = get_logger(__name__)


def normalize_scope(raw: str | None) -> str:
    """Collapse whitespace and correct known scope misspellings."""
    tokens = (raw or DEFAULT_SCOPE).split() or DEFAULT_SCOPE.split()
    normalized = []
    for token in tokens:
        for typo, fix in SCOPE_TYPOS.items():
            token = token.replace(typo, fix)
        normalized.append(token)
    return " ".join(normalized)


@dataclass(frozen=True, slots=True)
class BearerToken:
    """An access token valid for ``scope`` until ``expires_at`` (monotonic)."""

    value: str
    scope: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        """Whether the token may still be handed out."""
        return now < self.expires_at


class TokenBroker:
    """Hand out bearer tokens, fetching from upstream only when needed.

    ``fetcher`` performs one token request for a scope and returns the raw
    upstream status and body. On the server it posts client credentials to
    the OAuth endpoint; on the caller side it asks the edge ``/token`` route.
    """

    def __init__(
        self,
        fetcher: TokenFetcher,
        settings: TokenSettings | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self._fetcher = fetcher
        self._settings = settings or TokenSettings()
        self._clock = clock
        self._sleep = sleep
        self._rand = rand
        self._tokens: dict[str, BearerToken] = {}
        self._pending: dict[str, asyncio.Task[BearerToken]] = {}

    def cached(self, scope: str | None = None) -> BearerToken | None:
        """Return the cached token for a scope if it is still valid."""
        token = self._tokens.get(normalize_scope(scope))
        if token is not None and token.is_valid(self._clock()):
            return token
        return None

    def expires_in(self, token: BearerToken) -> int:
        """Seconds of upstream lifetime left, margin included, as a fresh grant reports it."""
        remaining = token.expires_at - self._clock() + self._settings.safety_margin_seconds
        return max(0, int(remaining))

    def invalidate(self, scope: str | None = None) -> None:
        """Drop the cached token so the next call fetches a fresh one."""
        self._tokens.pop(normalize_scope(scope), None)

    async def get_token(self, scope: str | None = None) -> BearerToken:
        """Return a valid token for ``scope``.

        Raises:
            AuthError: When every attempt failed. Carries the last upstream
                status and body.
        """
        scope = normalize_scope(scope)

        token = self._tokens.get(scope)
        if token is not None and token.is_valid(self._clock()):
            return token

        pending = self._pending.get(scope)
        if pending is None:
            pending = asyncio.create_task(self._fetch(scope))
            self._pending[scope] = pending
            pending.add_done_callback(lambda t: self._clear_pending(scope, t))

        # One cancelled waiter must not cancel the fetch for everyone else
        return await asyncio.shield(pending)

    def _clear_pending(self, scope: str, task: asyncio.Task[BearerToken]) -> None:
        if self._pending.get(scope) is task:
            del self._pending[scope]

    async def _fetch(self, scope: str) -> BearerToken:
        async def attempt(number: int) -> UpstreamResponse:
            try:
                response = await self._fetcher(scope)
            except httpx.HTTPError as e:
                response = UpstreamResponse(
                    UPSTREAM_UNREACHABLE_STATUS,
                    {"error": UPSTREAM_UNREACHABLE_ERROR, "message": str(e)},
                )
            outcome = "success" if _is_token_response(response) else "failure"
            TOKEN_FETCH_ATTEMPTS.labels(outcome=outcome).inc()
            logger.debug(
                "Token request attempt",
                scope=scope,
                attempt=number,
                status=response.status_code,
            )
            return response

        result = await retry_with_backoff(
            attempt,
            is_success=_is_token_response,
            max_attempts=self._settings.max_attempts,
            base_delay=self._settings.backoff_base_ms / 1000,
            max_jitter=self._settings.backoff_jitter_ms / 1000,
            sleep=self._sleep,
            rand=self._rand,
        )

        if not result.succeeded:
            logger.warning(
                "Token acquisition failed",
                scope=scope,
                attempts=result.attempts,
                status=result.value.status_code,
            )
            raise AuthError(result.value.status_code, result.value.body)

        body = result.value.body
        lifetime = float(body.get("expires_in") or 0)
        token = BearerToken(
            value=body["access_token"],
            scope=scope,
            expires_at=self._clock()
            + lifetime
            - self._settings.safety_margin_seconds,
        )
        self._tokens[scope] = token
        logger.info(
            "Token acquired",
            scope=scope,
            attempts=result.attempts,
            expires_in=lifetime,
        )
        return token


def _is_token_response(response: UpstreamResponse) -> bool:
    return (
        response.ok
        and isinstance(response.body, dict)
        and bool(response.body.get("access_token"))
    )


__all__ = ["BearerToken", "TokenBroker", "normalize_scope"]
