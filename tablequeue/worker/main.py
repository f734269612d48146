"""
Worker process for executing jobs.

The worker reserves jobs from one channel, dispatches them to registered
handlers and releases the ones that complete. Jobs that fail stay
reserved and are picked up again after their lease expires.
"""

import asyncio
import logging
import os

from tablequeue.config import Settings, get_settings
from tablequeue.db import close_db, get_engine, get_session_factory, init_db
from tablequeue.errors import QueueError
from tablequeue.observability.logging import setup_logging
from tablequeue.observability.tracing import setup_tracing
from tablequeue.queue import JobQueue, SignalLoop
from tablequeue.worker.handlers import MessageHandler, dispatch

logger = logging.getLogger(__name__)


class Worker:
    """
    Job worker that polls one channel and executes its jobs.

    Features:
    - Gated, priority-ordered reservations through JobQueue
    - Drain-once or subscribe mode
    - Graceful shutdown on SIGTERM/SIGINT: the current job is finished
      and released first
    - Queue errors are logged and the subscription resumes after a pause
    """

    def __init__(
        self,
        queue: JobQueue,
        loop: SignalLoop,
        handler: MessageHandler = dispatch,
        repeat: bool = True,
        error_backoff: float | None = None,
        worker_id: str | None = None,
    ):
        """
        Initialize the worker.

        Args:
            queue: Queue to consume; it must poll through the given loop.
            loop: Continuation predicate shared with the queue.
            handler: Called with each message. Defaults to registry dispatch.
            repeat: Keep polling when the channel is empty.
            error_backoff: Seconds to wait after a queue error before
                resuming. Defaults to the queue's idle sleep.
            worker_id: Identifier used in logs. Defaults to hostname + PID.
        """
        self.queue = queue
        self.loop = loop
        self.handler = handler
        self.repeat = repeat
        self.error_backoff = queue.idle_sleep if error_backoff is None else error_backoff
        self.worker_id = worker_id or f"{os.uname().nodename}-{os.getpid()}"

    async def start(self) -> None:
        """Run until the loop stops or, when not repeating, the channel drains."""
        logger.info(
            "Worker starting",
            extra={
                "worker_id": self.worker_id,
                "channel": self.queue.channel,
                "repeat": self.repeat,
            },
        )

        while self.loop.can_continue():
            try:
                if self.repeat:
                    await self.queue.subscribe(self.handler)
                else:
                    await self.queue.run_existing(self.handler)
                    break
            except QueueError as e:
                logger.exception(
                    f"Queue error in worker loop: {e}",
                    extra={"worker_id": self.worker_id},
                )
                await asyncio.sleep(self.error_backoff)
            except Exception as e:
                # The job stays reserved and is redelivered after its lease
                logger.exception(
                    f"Handler raised in worker loop: {e}",
                    extra={"worker_id": self.worker_id},
                )
                await asyncio.sleep(self.error_backoff)

        logger.info("Worker stopped", extra={"worker_id": self.worker_id})

    def stop(self) -> None:
        """Stop the worker after the current job."""
        logger.info("Worker stopping", extra={"worker_id": self.worker_id})
        self.loop.stop()


def build_worker(settings: Settings | None = None, channel: str | None = None) -> Worker:
    """
    Build a worker from settings. The database must be initialized.

    Args:
        settings: Settings to use. Defaults to the cached settings.
        channel: Channel override.
    """
    settings = settings or get_settings()
    loop = SignalLoop()
    queue = JobQueue.from_settings(
        get_engine(),
        settings=settings,
        session_factory=get_session_factory(),
        loop=loop,
        channel=channel,
    )
    return Worker(queue=queue, loop=loop, repeat=settings.worker_repeat)


async def run_async() -> None:
    """Run the worker asynchronously."""
    setup_logging()
    setup_tracing()
    await init_db()

    worker = build_worker()
    worker.loop.install()

    try:
        await worker.start()
    finally:
        worker.loop.uninstall()
        await worker.queue.close()
        await close_db()


def run() -> None:
    """Run the worker."""
    asyncio.run(run_async())


if __name__ == "__main__":
    run()
