"""Cooperative cancellation for long-running jobs."""
import asyncio
from typing import Awaitable, Optional, TypeVar

from ..core.exceptions import JobCancelledError

T = TypeVar("T")


class CancellationToken:
    """
    Signal shared between a job and the work it drives.

    Nothing is interrupted by setting the token; code checks it at its own
    checkpoints (``raise_if_cancelled``) or wraps awaits with ``guard`` so an
    in-flight call is abandoned once the token fires.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Job cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError(self.reason or "Job cancelled")

    async def wait(self) -> None:
        await self._event.wait()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        Raises:
            JobCancelledError: If the token was or becomes cancelled before
                the awaitable completes; the awaitable is then cancelled
        """
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            self.raise_if_cancelled()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done():
            return task.result()

        task.cancel()
        raise JobCancelledError(self.reason or "Job cancelled")
