"""Fixed-interval polling with at most one active loop per transaction."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, TypeVar

from ..errors import PollingTimeoutError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    done: Callable[[T], bool],
    *,
    transaction_id: str,
    interval: float,
    timeout: float | None,
    on_tick: Callable[[T], Awaitable[None] | None] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> T:
    """Call ``fetch`` every ``interval`` seconds until ``done`` accepts a result.

    A tick that fails with :class:`TransportError` is logged and retried on
    the next tick. Any other exception propagates. With ``timeout=None`` the
    loop has no ceiling; otherwise :class:`PollingTimeoutError` is raised
    once it is exceeded.
    """
    deadline = clock() + timeout if timeout is not None else None
    while True:
        try:
            result = await fetch()
        except TransportError as e:
            logger.warning("Poll tick for %s failed, retrying: %s", transaction_id, e.message)
        else:
            if on_tick is not None:
                ticked = on_tick(result)
                if ticked is not None:
                    await ticked
            if done(result):
                return result

        if deadline is not None and clock() >= deadline:
            raise PollingTimeoutError(transaction_id, timeout)
        await sleep(interval)


class PollScheduler:
    """Owns polling tasks keyed by transaction id.

    Starting a loop for a transaction cancels the loop already running for
    it. Cancellation does not reach into an in-flight HTTP request beyond
    the usual asyncio semantics.
    """

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    def start(self, transaction_id: str, coro: Coroutine[Any, Any, T]) -> "asyncio.Task[T]":
        self.cancel(transaction_id)
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks[transaction_id] = task
        task.add_done_callback(lambda t: self._discard(transaction_id, t))
        return task

    async def run(self, transaction_id: str, coro: Coroutine[Any, Any, T]) -> T:
        return await self.start(transaction_id, coro)

    def _discard(self, transaction_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(transaction_id) is task:
            del self._tasks[transaction_id]

    def is_active(self, transaction_id: str) -> bool:
        task = self._tasks.get(transaction_id)
        return task is not None and not task.done()

    def cancel(self, transaction_id: str) -> bool:
        task = self._tasks.pop(transaction_id, None)
        if task is None or task.done():
            return False
        logger.debug("Cancelling poll for %s", transaction_id)
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for transaction_id in list(self._tasks):
            self.cancel(transaction_id)
