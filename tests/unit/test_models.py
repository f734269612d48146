"""
Unit tests for the queue table model and lease types.
"""

from tablequeue.constants import JobStatus
from tablequeue.db.models import QueueJob
from tablequeue.types.job import JobLease, JobOptions, Message


def _job(**overrides) -> QueueJob:
    values = {
        "id": 1,
        "channel": "default",
        "payload": b"{}",
        "pushed_at": 100,
        "ttr": 10,
        "delay": 0,
        "priority": 1024,
    }
    values.update(overrides)
    return QueueJob(**values)


class TestQueueJob:
    """Tests for state derived from the row timestamps."""

    def test_status_waiting(self):
        assert _job().status == JobStatus.WAITING

    def test_status_reserved(self):
        assert _job(reserved_at=105, attempt=1).status == JobStatus.RESERVED

    def test_status_done(self):
        assert _job(reserved_at=105, attempt=1, done_at=106).status == JobStatus.DONE

    def test_is_visible_after_delay(self):
        job = _job(delay=30)

        assert job.is_visible(129) is False
        assert job.is_visible(130) is True

    def test_is_lease_expired(self):
        job = _job(reserved_at=200, attempt=1)

        assert job.is_lease_expired(209) is False
        assert job.is_lease_expired(210) is True

    def test_waiting_and_done_jobs_never_expire(self):
        assert _job().is_lease_expired(10_000) is False
        assert _job(reserved_at=200, done_at=201).is_lease_expired(10_000) is False


class TestMessage:
    """Tests for message options."""

    def test_defaults(self):
        options = Message(handler_name="echo").options

        assert options == JobOptions(ttr=300, delay=0, priority=1024)

    def test_metadata_overrides(self):
        message = Message(
            handler_name="echo",
            metadata={"ttr": 5, "delay": 10, "priority": 1, "trace": "abc"},
        )

        assert message.options == JobOptions(ttr=5, delay=10, priority=1)

    def test_none_metadata_uses_defaults(self):
        message = Message(handler_name="echo", metadata={"priority": None})

        assert message.options.priority == 1024


class TestJobLease:
    """Tests for JobLease."""

    def test_expiry(self):
        lease = JobLease(
            job_id=1,
            channel="default",
            message=Message(handler_name="echo"),
            ttr=30,
            attempt=1,
            reserved_at=1000,
        )

        assert lease.expires_at == 1030
        assert lease.is_expired(1029) is False
        assert lease.is_expired(1030) is True
        assert lease.time_remaining_seconds(1010) == 20
        assert lease.time_remaining_seconds(2000) == 0
