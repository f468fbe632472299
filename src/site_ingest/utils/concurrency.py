"""Bounded-parallelism helpers for async workers."""
import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Sequence, TypeVar

from ..core.config import settings

T = TypeVar("T")
R = TypeVar("R")


def clamp_int(value: Any, lower: int, upper: int, default: int) -> int:
    """
    Coerce ``value`` to an int inside ``[lower, upper]``.

    Non-numeric input falls back to ``default`` before clamping.
    """
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = default
    return max(lower, min(number, upper))


async def run_with_limit(
    concurrency: int,
    items: Sequence[T],
    worker: Callable[[T, int], Awaitable[R]],
    ceiling: Optional[int] = None,
) -> List[R]:
    """
    Run ``worker(item, index)`` over ``items`` with at most ``concurrency`` in flight.

    Args:
        concurrency: Requested parallelism, clamped to [1, ceiling]
        items: Items to process
        worker: Coroutine function called with each item and its index
        ceiling: Upper bound for concurrency (default: LIMITER_MAX_CONCURRENCY)

    Returns:
        Results in input order, regardless of completion order

    Raises:
        The first exception raised by any worker. Workers already running are
        left to finish in the background and their results are discarded; no
        further items are started. If the caller is cancelled, every worker
        is cancelled and awaited before the cancellation propagates.
    """
    upper = ceiling or settings.LIMITER_MAX_CONCURRENCY
    limit = clamp_int(concurrency, 1, upper, 1)
    items = list(items)
    if not items:
        return []

    results: List[Any] = [None] * len(items)
    pending = iter(enumerate(items))
    first_error: Optional[BaseException] = None

    async def drain() -> None:
        nonlocal first_error
        for index, item in pending:
            if first_error is not None:
                return
            try:
                results[index] = await worker(item, index)
            except Exception as exc:
                if first_error is None:
                    first_error = exc
                raise

    tasks = [asyncio.ensure_future(drain()) for _ in range(min(limit, len(items)))]

    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        # Let workers record their own cancellation before propagating
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    if first_error is not None:
        for task in tasks:
            # Stragglers may still fail; retrieve their exceptions so they are not reported as lost
            task.add_done_callback(_consume_result)
        raise first_error

    for task in tasks:
        if task.cancelled():
            raise asyncio.CancelledError()

    return results


def _consume_result(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled():
        task.exception()
