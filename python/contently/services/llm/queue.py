"""Priority queue that throttles outbound generation calls.

At most max_concurrent tasks run at once. Higher priority runs first; equal
priorities run in arrival order. A task that starts while another is
already running waits request_delay_s before calling out, which spaces
bursts against the provider's rate limit.

Scope: one queue per process. Several workers each get their own ceiling.

The pump is synchronous and runs on the event loop, so dequeue, the
in-flight increment and task start cannot interleave with another pump or
with a settlement.

A failed task rejects only its own caller; the queue keeps draining.
"""

import asyncio
import heapq
import itertools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from contently.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_CONCURRENT = 2
DEFAULT_REQUEST_DELAY_S = 1.0
DEFAULT_PRIORITY = 1


class GenerationQueue:
    """Concurrency-capped, priority-ordered task queue."""

    def __init__(
        self,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        request_delay_s: float = DEFAULT_REQUEST_DELAY_S,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if request_delay_s < 0:
            raise ValueError("request_delay_s must not be negative")
        self._max_concurrent = max_concurrent
        self._request_delay_s = request_delay_s
        self._heap: list[tuple[int, int, Callable[[], Awaitable[Any]], asyncio.Future]] = []
        self._arrivals = itertools.count()
        self._in_flight = 0
        self._runners: set[asyncio.Task] = set()

    @property
    def queue_length(self) -> int:
        """Number of tasks waiting to start."""
        return len(self._heap)

    @property
    def in_flight(self) -> int:
        """Number of tasks currently running."""
        return self._in_flight

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    async def enqueue(
        self,
        task_factory: Callable[[], Awaitable[T]],
        priority: int = DEFAULT_PRIORITY,
    ) -> T:
        """Queue a task and wait for its outcome.

        Args:
            task_factory: Zero-argument callable returning an awaitable. It is
                not called until the task is dispatched.
            priority: Higher runs first.

        Returns:
            The task's result.

        Raises:
            Whatever the task raised.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        heapq.heappush(self._heap, (-priority, next(self._arrivals), task_factory, future))
        self._pump()
        return await future

    def _pump(self) -> None:
        while self._heap and self._in_flight < self._max_concurrent:
            # Runs even when the caller stopped waiting; queued work is not cancellable
            _, _, task_factory, future = heapq.heappop(self._heap)
            self._in_flight += 1
            delay_s = self._request_delay_s if self._in_flight > 1 else 0.0
            logger.debug(
                "generation_queue.dispatch",
                in_flight=self._in_flight,
                queue_length=len(self._heap),
                delay_s=delay_s,
            )
            runner = asyncio.ensure_future(self._run(task_factory, future, delay_s))
            self._runners.add(runner)
            runner.add_done_callback(self._runners.discard)

    async def _run(
        self,
        task_factory: Callable[[], Awaitable[Any]],
        future: asyncio.Future,
        delay_s: float,
    ) -> None:
        try:
            if delay_s > 0:
                await asyncio.sleep(delay_s)
            result = await task_factory()
        except asyncio.CancelledError:
            if not future.done():
                future.cancel()
            raise
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
        else:
            if not future.done():
                future.set_result(result)
        finally:
            self._in_flight -= 1
            asyncio.get_running_loop().call_soon(self._pump)
