"""Semaphore-bounded worker pool with a global deadline.

Every item gets a task up front, but a task only starts work after taking a
semaphore slot, so at most ``concurrency`` workers run at once. When the
deadline passes the pool returns whatever has finished. Workers still
running are left to finish on their own and their results are dropped.
Queued items that get a slot after the deadline skip their work entirely.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Generic, TypeVar

from price_gateway.observability.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

logger = get_logger(__name__)

ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")

# Strong references to abandoned workers so they are not collected mid-flight
_abandoned: set[asyncio.Task[object]] = set()


class DeadlineWorkerPool(Generic[ItemT, ResultT]):
    """Run one worker per item under a concurrency cap and a deadline."""

    def __init__(self, concurrency: int, deadline: float | None) -> None:
        if concurrency < 1:
            msg = "concurrency must be at least 1"
            raise ValueError(msg)
        self.concurrency = concurrency
        self.deadline = deadline

    async def run(
        self,
        items: Sequence[ItemT],
        worker: Callable[[ItemT], Awaitable[ResultT]],
        on_error: Callable[[ItemT, Exception], ResultT],
    ) -> dict[int, ResultT]:
        """Run ``worker`` over ``items``.

        Returns:
            Results keyed by item index. Indexes missing from the mapping
            did not finish before the deadline. A worker exception becomes
            ``on_error(item, exc)`` for that item only.
        """
        if not items:
            return {}

        semaphore = asyncio.Semaphore(self.concurrency)
        expired = asyncio.Event()
        results: dict[int, ResultT] = {}

        async def guarded(index: int, item: ItemT) -> None:
            async with semaphore:
                if expired.is_set():
                    return
                try:
                    result = await worker(item)
                except Exception as e:  # noqa: BLE001
                    result = on_error(item, e)
                if not expired.is_set():
                    results[index] = result

        tasks = [
            asyncio.create_task(guarded(index, item))
            for index, item in enumerate(items)
        ]
        _, pending = await asyncio.wait(tasks, timeout=self.deadline)

        if pending:
            expired.set()
            for task in pending:
                _abandoned.add(task)
                task.add_done_callback(_abandoned.discard)
            logger.warning(
                "Worker pool deadline reached",
                deadline=self.deadline,
                finished=len(results),
                abandoned=len(pending),
            )

        return dict(results)


__all__ = ["DeadlineWorkerPool"]
