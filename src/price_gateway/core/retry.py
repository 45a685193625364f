"""Retry with exponential backoff and jitter.

The operation decides nothing about retrying itself: it returns a value and
``is_success`` classifies it. The caller gets back a tagged outcome rather
than an exception, so exhaustion can be turned into whatever error fits.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryOutcome(Generic[T]):
    """Result of a retried operation.

    ``value`` is the last value produced, successful or not. ``delays`` holds
    the seconds slept before each retry.
    """

    succeeded: bool
    value: T
    attempts: int
    delays: list[float] = field(default_factory=list)


def backoff_delay(
    attempt: int,
    *,
    base_delay: float,
    max_jitter: float,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay after the given 1-based attempt: ``base * 2^(attempt-1) + jitter``."""
    return base_delay * (2 ** (attempt - 1)) + rand() * max_jitter


async def retry_with_backoff(
    operation: Callable[[int], Awaitable[T]],
    *,
    is_success: Callable[[T], bool],
    max_attempts: int = 5,
    base_delay: float = 0.4,
    max_jitter: float = 0.4,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
) -> RetryOutcome[T]:
    """Run ``operation(attempt)`` until ``is_success`` accepts its value.

    No delay follows the final attempt. Exceptions raised by the operation
    propagate immediately.
    """
    if max_attempts < 1:
        msg = "max_attempts must be at least 1"
        raise ValueError(msg)

    delays: list[float] = []
    attempt = 1
    while True:
        value = await operation(attempt)
        if is_success(value):
            return RetryOutcome(True, value, attempt, delays)
        if attempt >= max_attempts:
            return RetryOutcome(False, value, attempt, delays)
        delay = backoff_delay(
            attempt, base_delay=base_delay, max_jitter=max_jitter, rand=rand
        )
        delays.append(delay)
        await sleep(delay)
        attempt += 1


__all__ = ["RetryOutcome", "backoff_delay", "retry_with_backoff"]
