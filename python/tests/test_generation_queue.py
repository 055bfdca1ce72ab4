"""Tests for the throttling priority queue."""

import asyncio

import pytest

from contently.services.llm import GenerationQueue


def recorder(order: list[str], name: str):
    async def run():
        order.append(name)
        return name

    return run


class TestGenerationQueueConfig:
    def test_rejects_zero_concurrency(self):
        with pytest.raises(ValueError):
            GenerationQueue(max_concurrent=0)

    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            GenerationQueue(request_delay_s=-1)

    def test_defaults(self):
        queue = GenerationQueue()
        assert queue.max_concurrent == 2
        assert queue.queue_length == 0
        assert queue.in_flight == 0


class TestGenerationQueue:
    @pytest.mark.asyncio
    async def test_returns_task_result(self):
        queue = GenerationQueue(max_concurrent=2, request_delay_s=0)
        assert await queue.enqueue(recorder([], "done")) == "done"

    @pytest.mark.asyncio
    async def test_never_exceeds_concurrency_ceiling(self):
        queue = GenerationQueue(max_concurrent=2, request_delay_s=0)
        running = 0
        peak = 0

        async def task():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await asyncio.gather(*(queue.enqueue(task) for _ in range(6)))

        assert peak == 2
        assert queue.in_flight == 0
        assert queue.queue_length == 0

    @pytest.mark.asyncio
    async def test_higher_priority_runs_first(self):
        queue = GenerationQueue(max_concurrent=1, request_delay_s=0)
        release = asyncio.Event()
        order: list[str] = []

        async def blocker():
            await release.wait()
            order.append("blocker")

        first = asyncio.create_task(queue.enqueue(blocker))
        await asyncio.sleep(0)
        low = asyncio.create_task(queue.enqueue(recorder(order, "low"), priority=1))
        high = asyncio.create_task(queue.enqueue(recorder(order, "high"), priority=5))
        mid = asyncio.create_task(queue.enqueue(recorder(order, "mid"), priority=3))
        await asyncio.sleep(0)

        assert queue.in_flight == 1
        assert queue.queue_length == 3

        release.set()
        await asyncio.gather(first, low, high, mid)

        assert order == ["blocker", "high", "mid", "low"]

    @pytest.mark.asyncio
    async def test_equal_priority_is_first_in_first_out(self):
        queue = GenerationQueue(max_concurrent=1, request_delay_s=0)
        order: list[str] = []

        await asyncio.gather(*(queue.enqueue(recorder(order, str(i))) for i in range(5)))

        assert order == ["0", "1", "2", "3", "4"]

    @pytest.mark.asyncio
    async def test_factory_is_not_called_until_dispatch(self):
        queue = GenerationQueue(max_concurrent=1, request_delay_s=0)
        release = asyncio.Event()
        called = False

        async def blocker():
            await release.wait()

        def factory():
            nonlocal called
            called = True
            return recorder([], "late")()

        first = asyncio.create_task(queue.enqueue(blocker))
        await asyncio.sleep(0)
        second = asyncio.create_task(queue.enqueue(factory))
        await asyncio.sleep(0)

        assert called is False

        release.set()
        await asyncio.gather(first, second)
        assert called is True

    @pytest.mark.asyncio
    async def test_failure_rejects_only_its_caller(self):
        queue = GenerationQueue(max_concurrent=1, request_delay_s=0)

        async def boom():
            raise RuntimeError("provider exploded")

        results = await asyncio.gather(
            queue.enqueue(boom),
            queue.enqueue(recorder([], "survivor")),
            return_exceptions=True,
        )

        assert isinstance(results[0], RuntimeError)
        assert results[1] == "survivor"
        assert queue.in_flight == 0

    @pytest.mark.asyncio
    async def test_concurrent_dispatch_is_delayed(self):
        queue = GenerationQueue(max_concurrent=2, request_delay_s=0.05)
        loop = asyncio.get_running_loop()
        started: list[float] = []

        async def task():
            started.append(loop.time())
            await asyncio.sleep(0.1)

        await asyncio.gather(queue.enqueue(task), queue.enqueue(task))

        assert len(started) == 2
        assert started[1] - started[0] >= 0.04

    @pytest.mark.asyncio
    async def test_lone_dispatch_is_not_delayed(self):
        queue = GenerationQueue(max_concurrent=2, request_delay_s=5)

        result = await asyncio.wait_for(queue.enqueue(recorder([], "fast")), timeout=1)

        assert result == "fast"

    @pytest.mark.asyncio
    async def test_task_runs_after_caller_stops_waiting(self):
        queue = GenerationQueue(max_concurrent=1, request_delay_s=0)
        gate = asyncio.Event()
        ran = asyncio.Event()

        async def blocker():
            await gate.wait()
            return "blocker"

        async def queued():
            ran.set()
            return "queued"

        first = asyncio.ensure_future(queue.enqueue(blocker))
        second = asyncio.ensure_future(queue.enqueue(queued))
        await asyncio.sleep(0)
        assert queue.queue_length == 1

        second.cancel()
        await asyncio.sleep(0)
        gate.set()

        assert await first == "blocker"
        await asyncio.wait_for(ran.wait(), timeout=1)
        assert second.cancelled()
