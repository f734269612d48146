"""
Integration tests for worker functionality.
"""

import asyncio

from tablequeue.constants import JobStatus
from tablequeue.queue import SignalLoop
from tablequeue.types.job import Message
from tablequeue.worker import Worker


class TestWorkerIntegration:
    """Integration tests for worker job processing."""

    async def test_drain_with_registered_handlers(self, queue_factory, make_message):
        """Test a worker draining a channel through handler dispatch."""
        loop = SignalLoop()
        queue = queue_factory(loop=loop)
        done_id = await queue.push(make_message("echo", data={"message": "test"}))
        failed_id = await queue.push(make_message("failing_job"))
        unknown_id = await queue.push(make_message("not_registered"))

        worker = Worker(queue, loop, repeat=False, worker_id="test-worker")
        await worker.start()

        assert await queue.status(done_id) == JobStatus.DONE
        assert await queue.status(failed_id) == JobStatus.RESERVED
        assert await queue.status(unknown_id) == JobStatus.RESERVED

    async def test_failed_job_retried_after_lease(
        self,
        queue_factory,
        clock,
        make_message,
    ):
        """Test complete lifecycle: push -> fail -> expire -> succeed."""
        loop = SignalLoop()
        queue = queue_factory(loop=loop)
        job_id = await queue.push(make_message(ttr=10))
        attempts: list[int] = []

        async def flaky(message: Message) -> bool:
            attempts.append(len(attempts) + 1)
            return len(attempts) >= 2

        worker = Worker(queue, loop, handler=flaky, repeat=False)
        await worker.start()
        assert await queue.status(job_id) == JobStatus.RESERVED

        clock.advance(10)
        await worker.start()

        assert attempts == [1, 2]
        assert await queue.status(job_id) == JobStatus.DONE

    async def test_handler_exception_keeps_worker_alive(
        self,
        queue_factory,
        make_message,
    ):
        """Test that a raising handler leaves its job reserved and the worker continues."""
        loop = SignalLoop()
        queue = queue_factory(loop=loop)
        broken_id = await queue.push(make_message(data="boom", priority=0))
        fine_id = await queue.push(make_message(data="fine", priority=1))

        def handler(message: Message) -> bool:
            if message.data == "boom":
                raise RuntimeError("handler exploded")
            return True

        worker = Worker(queue, loop, handler=handler, repeat=False, error_backoff=0)
        await worker.start()

        assert await queue.status(broken_id) == JobStatus.RESERVED
        assert await queue.status(fine_id) == JobStatus.DONE

    async def test_subscribing_worker_stops(self, queue_factory, make_message):
        """Test that stop() ends a subscribing worker after the current job."""
        loop = SignalLoop()
        queue = queue_factory(loop=loop)
        job_id = await queue.push(make_message())

        worker = Worker(queue, loop, repeat=True)

        def handler(message: Message) -> bool:
            worker.stop()
            return True

        worker.handler = handler
        await asyncio.wait_for(worker.start(), timeout=5)

        assert await queue.status(job_id) == JobStatus.DONE

