"""
Unit tests for expired lease recovery.
"""

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.constants import JobStatus
from tablequeue.db.repository import JobRepository
from tablequeue.queue import ExpirySweeper

NOW = 1_700_000_000


class TestExpirySweeper:
    """Tests for ExpirySweeper."""

    @pytest_asyncio.fixture
    async def repo(self, db_session: AsyncSession) -> JobRepository:
        return JobRepository(db_session)

    async def _expired_job(self, repo: JobRepository, channel: str = "default") -> int:
        job = await repo.insert(
            channel=channel,
            payload=b"{}",
            pushed_at=NOW - 100,
            ttr=5,
            delay=0,
            priority=1024,
        )
        await repo.update_lease(job.id, NOW - 10, 1)
        return job.id

    async def test_sweep_recovers_expired(self, repo: JobRepository, db_session: AsyncSession):
        job_id = await self._expired_job(repo)
        sweeper = ExpirySweeper()

        assert await sweeper.sweep(repo, NOW) == 1
        assert sweeper.last_swept_at == NOW

        db_session.expire_all()
        assert (await repo.get_job(job_id)).status == JobStatus.WAITING

    async def test_sweep_runs_once_per_second(self, repo: JobRepository, db_session: AsyncSession):
        """Test that a second sweep in the same second does nothing."""
        sweeper = ExpirySweeper()
        first = await self._expired_job(repo)
        assert await sweeper.sweep(repo, NOW) == 1

        await repo.update_lease(first, NOW - 10, 2)
        assert await sweeper.sweep(repo, NOW) == 0

        db_session.expire_all()
        assert (await repo.get_job(first)).status == JobStatus.RESERVED

        assert await sweeper.sweep(repo, NOW + 1) == 1

    async def test_instances_throttle_independently(self, repo: JobRepository):
        await self._expired_job(repo)
        first = ExpirySweeper()
        second = ExpirySweeper()
        assert await first.sweep(repo, NOW) == 1

        await self._expired_job(repo)
        assert await second.sweep(repo, NOW) == 1

    async def test_sweep_covers_all_channels(self, repo: JobRepository, db_session: AsyncSession):
        """Test that one sweep recovers expired leases in every channel."""
        first = await self._expired_job(repo, channel="a")
        second = await self._expired_job(repo, channel="b")

        assert await ExpirySweeper().sweep(repo, NOW) == 2

        db_session.expire_all()
        assert (await repo.get_job(first)).status == JobStatus.WAITING
        assert (await repo.get_job(second)).status == JobStatus.WAITING

    async def test_sweep_skips_live_leases(self, repo: JobRepository):
        await self._expired_job(repo, channel="a")
        live = await repo.insert(
            channel="b",
            payload=b"{}",
            pushed_at=NOW - 100,
            ttr=5,
            delay=0,
            priority=1024,
        )
        await repo.update_lease(live.id, NOW - 1, 1)

        assert await ExpirySweeper().sweep(repo, NOW) == 1

    def test_not_swept_initially(self):
        assert ExpirySweeper().last_swept_at is None
