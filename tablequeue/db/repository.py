"""
Job repository for database operations.
Implements the data access patterns of the queue table.
"""

import logging

from sqlalchemy import and_, case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.constants import JobStatus, RetentionPolicy
from tablequeue.db.models import QueueJob

logger = logging.getLogger(__name__)


class JobRepository:
    """
    Repository for queue table operations.

    Every method works on the single queue table and runs inside the
    caller's session; committing is the caller's decision. Implements:
    - Job insertion
    - Eligible job selection (priority, then FIFO)
    - Conditional lease stamping
    - Expired lease recovery
    - Release by delete or done marker
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            session: The async database session.
        """
        self._session = session

    async def insert(
        self,
        channel: str,
        payload: bytes,
        pushed_at: int,
        ttr: int,
        delay: int,
        priority: int,
    ) -> QueueJob:
        """
        Insert a new waiting job.

        Args:
            channel: The channel the job belongs to.
            payload: The serialized message.
            pushed_at: Enqueue time in unix seconds.
            ttr: Time-to-run in seconds.
            delay: Visibility delay in seconds.
            priority: Job priority, lower runs first.

        Returns:
            The persisted job with its assigned id.
        """
        job = QueueJob(
            channel=channel,
            payload=payload,
            pushed_at=pushed_at,
            ttr=ttr,
            delay=delay,
            priority=priority,
        )
        self._session.add(job)
        await self._session.flush()

        logger.debug(
            "Inserted job",
            extra={"job_id": job.id, "channel": channel, "priority": priority},
        )
        return job

    async def get_job(self, job_id: int) -> QueueJob | None:
        """
        Get a job by ID.

        Args:
            job_id: The job id.

        Returns:
            The job or None if not found.
        """
        stmt = select(QueueJob).where(QueueJob.id == job_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def select_eligible(self, channel: str, now: int) -> QueueJob | None:
        """
        Select the next job that may be reserved on a channel.

        A job is eligible when it is waiting and its delay has elapsed.
        Among eligible jobs the lowest priority value wins and ties go to
        the lowest id.

        Args:
            channel: The channel to select from.
            now: Current time in unix seconds.

        Returns:
            The eligible job or None if the channel has nothing to run.
        """
        stmt = (
            select(QueueJob)
            .where(
                and_(
                    QueueJob.channel == channel,
                    QueueJob.reserved_at.is_(None),
                    QueueJob.pushed_at <= now - QueueJob.delay,
                )
            )
            .order_by(QueueJob.priority.asc(), QueueJob.id.asc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_lease(self, job_id: int, reserved_at: int, attempt: int) -> bool:
        """
        Stamp a lease on a waiting job.

        The update only matches while the row is still waiting, so a row
        that somebody else leased in the meantime is left untouched.

        Args:
            job_id: The job id.
            reserved_at: Lease start in unix seconds.
            attempt: The new attempt number.

        Returns:
            True if the lease was stamped, False if the row was taken.
        """
        stmt = (
            update(QueueJob)
            .where(
                and_(
                    QueueJob.id == job_id,
                    QueueJob.reserved_at.is_(None),
                )
            )
            .values(reserved_at=reserved_at, attempt=attempt)
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def clear_expired_leases(self, now: int) -> int:
        """
        Return jobs with expired leases to the waiting state, on every channel.

        A lease is expired when the job is reserved, not done, and at least
        ttr seconds passed since reservation. The attempt counter is kept.

        Args:
            now: Current time in unix seconds.

        Returns:
            Number of recovered jobs.
        """
        stmt = (
            update(QueueJob)
            .where(
                and_(
                    QueueJob.reserved_at.is_not(None),
                    QueueJob.done_at.is_(None),
                    QueueJob.reserved_at <= now - QueueJob.ttr,
                )
            )
            .values(reserved_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        count = result.rowcount

        if count > 0:
            logger.debug(f"Recovered {count} jobs with expired leases")

        return count

    async def delete_or_mark_done(
        self,
        job_id: int,
        now: int,
        retention_policy: RetentionPolicy,
    ) -> bool:
        """
        Finalize a handled job.

        Args:
            job_id: The job id.
            now: Current time in unix seconds.
            retention_policy: Whether to delete the row or keep it as done.

        Returns:
            True if a row was affected.
        """
        if retention_policy == RetentionPolicy.DELETE:
            stmt = delete(QueueJob).where(QueueJob.id == job_id)
        else:
            stmt = (
                update(QueueJob)
                .where(QueueJob.id == job_id)
                .values(done_at=now)
            )
        stmt = stmt.execution_options(synchronize_session=False)

        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def count_by_status(self, channel: str) -> dict[str, int]:
        """
        Count the jobs of a channel per derived state.

        Args:
            channel: The channel to inspect.

        Returns:
            Dictionary of status -> count, with every status present.
        """

        def _count(condition) -> object:
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        stmt = select(
            _count(QueueJob.reserved_at.is_(None)),
            _count(
                and_(QueueJob.reserved_at.is_not(None), QueueJob.done_at.is_(None))
            ),
            _count(QueueJob.done_at.is_not(None)),
        ).where(QueueJob.channel == channel)

        result = await self._session.execute(stmt)
        waiting, reserved, done = result.one()
        return {
            JobStatus.WAITING.value: int(waiting),
            JobStatus.RESERVED.value: int(reserved),
            JobStatus.DONE.value: int(done),
        }
