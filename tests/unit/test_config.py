"""
Unit tests for settings and queue construction from settings.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from tablequeue.config import Settings
from tablequeue.constants import RetentionPolicy
from tablequeue.mutex import AsyncioMutex
from tablequeue.queue import JobQueue, PickleMessageSerializer


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.queue_channel == "queue"
        assert settings.queue_mutex_backend == "auto"
        assert settings.queue_mutex_timeout_seconds == 3.0
        assert settings.queue_delete_released is True
        assert settings.queue_serializer == "json"

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("QUEUE_CHANNEL", "emails")
        monkeypatch.setenv("QUEUE_DELETE_RELEASED", "false")
        monkeypatch.setenv("QUEUE_MUTEX_TIMEOUT_SECONDS", "0.5")

        settings = Settings(_env_file=None)

        assert settings.queue_channel == "emails"
        assert settings.queue_delete_released is False
        assert settings.queue_mutex_timeout_seconds == 0.5

    def test_invalid_backend(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, queue_mutex_backend="redis")


class TestFromSettings:
    def test_builds_configured_queue(self, async_engine: AsyncEngine):
        settings = Settings(
            _env_file=None,
            queue_channel="reports",
            queue_delete_released=False,
            queue_serializer="pickle",
            queue_mutex_timeout_seconds=1.5,
            queue_idle_sleep_seconds=0.25,
        )

        queue = JobQueue.from_settings(async_engine, settings=settings)

        assert queue.channel == "reports"
        assert queue.retention_policy == RetentionPolicy.KEEP_DONE
        assert queue.mutex_timeout == 1.5
        assert queue.idle_sleep == 0.25
        assert isinstance(queue._serializer, PickleMessageSerializer)
        assert isinstance(queue._mutex, AsyncioMutex)

    def test_channel_override(self, async_engine: AsyncEngine):
        queue = JobQueue.from_settings(
            async_engine,
            settings=Settings(_env_file=None),
            channel="other",
        )

        assert queue.channel == "other"
        assert queue.retention_policy == RetentionPolicy.DELETE
