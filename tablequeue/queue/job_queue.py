"""
Table-backed job queue.

Producers push messages into the queue table; workers reserve them one at a
time, handle them, and release them on success. A reservation is a lease of
ttr seconds: a job that is not released in time goes back to waiting and
is delivered again, so delivery is at-least-once and handlers must be
idempotent.
"""

import asyncio
import copy
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tablequeue.config import Settings, get_settings
from tablequeue.constants import (
    DEFAULT_CHANNEL,
    DEFAULT_IDLE_SLEEP_SECONDS,
    DEFAULT_MUTEX_TIMEOUT_SECONDS,
    QUEUE_TABLE,
    SPAN_HANDLE_JOB,
    SPAN_PUSH_JOB,
    SPAN_RELEASE_JOB,
    SPAN_RESERVE_JOB,
    JobStatus,
    RetentionPolicy,
)
from tablequeue.db.connection import create_session_factory
from tablequeue.db.repository import JobRepository
from tablequeue.errors import LockTimeout, MessageDecodeError, StorageFailure, UnknownJob
from tablequeue.mutex import Mutex, build_mutex
from tablequeue.observability.logging import job_log_context
from tablequeue.observability.metrics import get_metrics
from tablequeue.observability.tracing import get_tracer
from tablequeue.queue.loop import Loop, SimpleLoop
from tablequeue.queue.serializer import JsonMessageSerializer, MessageSerializer, get_serializer
from tablequeue.queue.sweeper import ExpirySweeper
from tablequeue.types.job import JobLease, Message

logger = logging.getLogger(__name__)

# A handler returns True when the message was processed and may be released
Handler = Callable[[Message], bool | Awaitable[bool]]


def unix_now() -> int:
    """Current time in whole unix seconds."""
    return int(time.time())


@contextmanager
def storage_errors() -> Iterator[None]:
    """Re-raise database errors as StorageFailure."""
    try:
        yield
    except SQLAlchemyError as e:
        raise StorageFailure(str(e)) from e


@dataclass
class _ReservedRow:
    job_id: int
    payload: bytes
    ttr: int
    attempt: int
    reserved_at: int


class JobQueue:
    """
    A priority queue of jobs on one channel of the queue table.

    Reservation order is ascending priority, then ascending id. Reservations
    on the same channel are serialized through a Mutex keyed by the queue
    table and channel; pushes, releases and status reads are single-row
    operations and are not gated.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        mutex: Mutex,
        channel: str = DEFAULT_CHANNEL,
        loop: Loop | None = None,
        serializer: MessageSerializer | None = None,
        retention_policy: RetentionPolicy = RetentionPolicy.DELETE,
        mutex_timeout: float = DEFAULT_MUTEX_TIMEOUT_SECONDS,
        idle_sleep: float = DEFAULT_IDLE_SLEEP_SECONDS,
        clock: Callable[[], int] = unix_now,
    ):
        """
        Initialize the queue.

        Args:
            session_factory: Factory for sessions on the queue database.
            mutex: Gate serializing reservations per channel.
            channel: Channel this queue pushes to and reserves from.
            loop: Continuation predicate of the poll loop.
            serializer: Message (de)serializer. Defaults to JSON.
            retention_policy: Delete released jobs or keep them as done.
            mutex_timeout: Seconds to wait for the gate before LockTimeout.
            idle_sleep: Seconds subscribe() sleeps when the channel is empty.
            clock: Source of the current unix second.
        """
        self._session_factory = session_factory
        self._mutex = mutex
        self._channel = channel
        self._loop = loop or SimpleLoop()
        self._serializer = serializer or JsonMessageSerializer()
        self.retention_policy = retention_policy
        self.mutex_timeout = mutex_timeout
        self.idle_sleep = idle_sleep
        self._clock = clock
        self._sweeper = ExpirySweeper()
        self._metrics = get_metrics()

    @classmethod
    def from_settings(
        cls,
        engine: AsyncEngine,
        settings: Settings | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        loop: Loop | None = None,
        channel: str | None = None,
    ) -> "JobQueue":
        """
        Build a queue configured from application settings.

        Args:
            engine: The queue database engine.
            settings: Settings to use. Defaults to the cached settings.
            session_factory: Existing session factory. Built from the engine
                when not given.
            loop: Continuation predicate of the poll loop.
            channel: Channel override; defaults to settings.queue_channel.
        """
        settings = settings or get_settings()
        return cls(
            session_factory=session_factory or create_session_factory(engine),
            mutex=build_mutex(settings, engine),
            channel=channel or settings.queue_channel,
            loop=loop,
            serializer=get_serializer(settings.queue_serializer),
            retention_policy=(
                RetentionPolicy.DELETE
                if settings.queue_delete_released
                else RetentionPolicy.KEEP_DONE
            ),
            mutex_timeout=settings.queue_mutex_timeout_seconds,
            idle_sleep=settings.queue_idle_sleep_seconds,
        )

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def mutex_key(self) -> str:
        """Gate key: distinct per queue table and channel."""
        return f"{type(self).__module__}.{type(self).__qualname__}:{QUEUE_TABLE}:{self._channel}"

    @property
    def sweeper(self) -> ExpirySweeper:
        return self._sweeper

    def with_channel(self, channel: str) -> "JobQueue":
        """
        Get a queue for another channel sharing this queue's collaborators.

        The new queue has its own gate key and its own sweep throttle.

        Args:
            channel: The channel name.

        Returns:
            This queue if the channel is the same, otherwise a new queue.
        """
        if channel == self._channel:
            return self

        new = copy.copy(self)
        new._channel = channel
        new._sweeper = ExpirySweeper()
        return new

    async def push(self, message: Message) -> int:
        """
        Add a message to the channel.

        The message metadata may set ttr, delay and priority; missing
        values use the defaults (300, 0 and 1024).

        Args:
            message: The message to enqueue.

        Returns:
            The id assigned to the job.
        """
        options = message.options
        payload = self._serializer.serialize(message)
        now = self._clock()

        with get_tracer().start_as_current_span(SPAN_PUSH_JOB) as span:
            span.set_attribute("channel", self._channel)
            with storage_errors():
                async with self._session_factory.begin() as session:
                    job = await JobRepository(session).insert(
                        channel=self._channel,
                        payload=payload,
                        pushed_at=now,
                        ttr=options.ttr,
                        delay=options.delay,
                        priority=options.priority,
                    )
                    job_id = job.id
            span.set_attribute("job_id", job_id)

        self._metrics.record_job_pushed(self._channel)
        logger.info(
            "Pushed job",
            extra={
                "job_id": job_id,
                "channel": self._channel,
                "handler_name": message.handler_name,
                "priority": options.priority,
                "delay": options.delay,
            },
        )
        return job_id

    async def reserve(self) -> JobLease | None:
        """
        Lease the next eligible job of the channel.

        Holds the channel gate while expired leases are swept and the next
        job is selected and stamped. Decoding happens after the gate is
        released.

        Returns:
            The lease, or None when no job is eligible.

        Raises:
            LockTimeout: If the gate was not acquired in time.
            StorageFailure: If the table could not be read or written.
            MessageDecodeError: If the leased payload is not a valid message.
                The job stays reserved until its lease expires.
        """
        key = self.mutex_key
        started = time.perf_counter()

        with get_tracer().start_as_current_span(SPAN_RESERVE_JOB) as span:
            span.set_attribute("channel", self._channel)

            with storage_errors():
                acquired = await self._mutex.acquire(key, self.mutex_timeout)
            if not acquired:
                self._metrics.record_lock_timeout(self._channel)
                logger.warning(
                    "Timed out waiting for the reservation lock",
                    extra={"channel": self._channel, "timeout": self.mutex_timeout},
                )
                raise LockTimeout(key, self.mutex_timeout)

            try:
                with storage_errors():
                    row = await self._reserve_row()
            except BaseException:
                await self._release_after_failure(key)
                raise

            with storage_errors():
                await self._mutex.release(key)

            if row is None:
                return None

            span.set_attribute("job_id", row.job_id)
            span.set_attribute("attempt", row.attempt)

        self._metrics.record_job_reserved(self._channel, time.perf_counter() - started)

        try:
            message = self._serializer.unserialize(row.payload)
        except ValueError as e:
            logger.error(
                "Reserved job has an undecodable payload",
                extra={"job_id": row.job_id, "channel": self._channel},
            )
            raise MessageDecodeError(row.job_id) from e

        logger.info(
            "Reserved job",
            extra={"job_id": row.job_id, "channel": self._channel, "attempt": row.attempt},
        )
        return JobLease(
            job_id=row.job_id,
            channel=self._channel,
            message=message,
            ttr=row.ttr,
            attempt=row.attempt,
            reserved_at=row.reserved_at,
        )

    async def _reserve_row(self) -> _ReservedRow | None:
        async with self._session_factory.begin() as session:
            repo = JobRepository(session)
            now = self._clock()

            await self._sweeper.sweep(repo, now)

            while True:
                job = await repo.select_eligible(self._channel, now)
                if job is None:
                    return None

                attempt = (job.attempt or 0) + 1
                if await repo.update_lease(job.id, now, attempt):
                    return _ReservedRow(
                        job_id=job.id,
                        payload=job.payload,
                        ttr=job.ttr,
                        attempt=attempt,
                        reserved_at=now,
                    )

                # Leased by a writer that bypassed the gate; try the next one
                logger.warning(
                    "Job was leased concurrently, selecting again",
                    extra={"job_id": job.id, "channel": self._channel},
                )

    async def _release_after_failure(self, key: str) -> None:
        # The reservation error is what the caller needs to see
        try:
            await self._mutex.release(key)
        except Exception:
            logger.exception(
                "Failed to release the reservation lock after an error",
                extra={"channel": self._channel, "key": key},
            )

    async def release(self, lease: JobLease) -> None:
        """
        Finalize a handled job according to the retention policy.

        Args:
            lease: The lease returned by reserve().
        """
        with get_tracer().start_as_current_span(SPAN_RELEASE_JOB) as span:
            span.set_attribute("job_id", lease.job_id)
            with storage_errors():
                async with self._session_factory.begin() as session:
                    found = await JobRepository(session).delete_or_mark_done(
                        lease.job_id,
                        self._clock(),
                        self.retention_policy,
                    )

        if not found:
            logger.warning(
                "Released job no longer exists",
                extra={"job_id": lease.job_id, "channel": lease.channel},
            )

        self._metrics.record_job_released(lease.channel, self.retention_policy.value)
        logger.info(
            "Released job",
            extra={
                "job_id": lease.job_id,
                "channel": lease.channel,
                "retention": self.retention_policy.value,
            },
        )

    async def status(self, job_id: int) -> JobStatus:
        """
        Resolve the lifecycle state of a job.

        Args:
            job_id: The job id.

        Returns:
            The derived status.

        Raises:
            UnknownJob: If the job is absent and released jobs are kept,
                so absence cannot mean done.
        """
        with storage_errors():
            async with self._session_factory() as session:
                job = await JobRepository(session).get_job(job_id)

        if job is None:
            if self.retention_policy == RetentionPolicy.DELETE:
                return JobStatus.DONE
            raise UnknownJob(job_id)

        return job.status

    async def stats(self) -> dict[str, int]:
        """
        Count the channel's jobs per status and publish them as gauges.

        Jobs deleted on release are not counted.
        """
        with storage_errors():
            async with self._session_factory() as session:
                counts = await JobRepository(session).count_by_status(self._channel)

        self._metrics.update_queue_depth(self._channel, counts)
        return counts

    async def close(self) -> None:
        """Release resources held by the gate."""
        await self._mutex.close()

    async def run(self, handler: Handler, repeat: bool, idle_sleep: float = 0) -> None:
        """
        Reserve and handle jobs while the loop allows it.

        A job is released when the handler returns True. On False it stays
        reserved and is delivered again once its lease expires. Exceptions
        from the handler or the queue propagate to the caller.

        Args:
            handler: Called with each reserved message.
            repeat: Keep polling when the channel is empty.
            idle_sleep: Seconds to sleep between empty polls when repeating.
        """
        while self._loop.can_continue():
            lease = await self.reserve()
            if lease is not None:
                if await self._handle(handler, lease):
                    await self.release(lease)
                else:
                    self._metrics.record_handler_failure(lease.channel)
                    logger.warning(
                        "Handler did not complete job, leaving it for lease expiry",
                        extra={
                            "job_id": lease.job_id,
                            "channel": lease.channel,
                            "attempt": lease.attempt,
                            "retry_after": lease.expires_at,
                        },
                    )
                continue

            if not repeat:
                break

            if idle_sleep > 0:
                await asyncio.sleep(idle_sleep)

    async def run_existing(self, handler: Handler) -> None:
        """Handle the jobs available now and return once the channel is empty."""
        await self.run(handler, repeat=False)

    async def subscribe(self, handler: Handler) -> None:
        """Handle jobs until the loop stops, sleeping while the channel is empty."""
        await self.run(handler, repeat=True, idle_sleep=self.idle_sleep)

    async def _handle(self, handler: Handler, lease: JobLease) -> bool:
        with job_log_context(
            channel=lease.channel,
            job_id=lease.job_id,
            attempt=lease.attempt,
        ):
            with get_tracer().start_as_current_span(SPAN_HANDLE_JOB) as span:
                span.set_attribute("job_id", lease.job_id)
                span.set_attribute("handler_name", lease.message.handler_name)

                result = handler(lease.message)
                if inspect.isawaitable(result):
                    result = await result

        return bool(result)
