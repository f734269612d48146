"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from tablequeue.api.main import create_app
from tablequeue.config import get_settings
from tablequeue.constants import RetentionPolicy
from tablequeue.db import close_db, create_session_factory, create_tables, init_db
from tablequeue.db.connection import get_test_engine
from tablequeue.mutex import AsyncioMutex, Mutex
from tablequeue.queue import JobQueue, Loop
from tablequeue.types.job import Message

# Fixed start time so tests can reason in whole seconds
T0 = 1_700_000_000


class FakeClock:
    """Manually advanced clock returning unix seconds."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def _make_message(handler_name: str = "echo", data: Any = None, **metadata: Any) -> Message:
    return Message(handler_name=handler_name, data=data, metadata=metadata)


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Build messages; keyword arguments become metadata (ttr, delay, priority)."""
    return _make_message


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """A fresh SQLite database file per test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}"


@pytest_asyncio.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    """Create an async database engine with the queue table."""
    engine = get_test_engine(database_url)
    await create_tables(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(async_engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mutex() -> AsyncioMutex:
    return AsyncioMutex()


@pytest.fixture
def queue_factory(
    session_factory: async_sessionmaker[AsyncSession],
    mutex: AsyncioMutex,
    clock: FakeClock,
) -> Callable[..., JobQueue]:
    """Build queues sharing the test database, gate and clock."""

    def _factory(
        channel: str = "default",
        retention_policy: RetentionPolicy = RetentionPolicy.DELETE,
        loop: Loop | None = None,
        mutex_override: Mutex | None = None,
        mutex_timeout: float = 1.0,
    ) -> JobQueue:
        return JobQueue(
            session_factory=session_factory,
            mutex=mutex_override or mutex,
            channel=channel,
            loop=loop,
            retention_policy=retention_policy,
            mutex_timeout=mutex_timeout,
            idle_sleep=0,
            clock=clock,
        )

    return _factory


@pytest.fixture
def queue(queue_factory: Callable[..., JobQueue]) -> JobQueue:
    return queue_factory()


@pytest.fixture
def keep_done_queue(queue_factory: Callable[..., JobQueue]) -> JobQueue:
    return queue_factory(retention_policy=RetentionPolicy.KEEP_DONE)


@pytest_asyncio.fixture
async def app(
    database_url: str,
    monkeypatch: pytest.MonkeyPatch,
) -> AsyncGenerator[FastAPI, None]:
    """Create a FastAPI app for testing with an initialized database."""
    monkeypatch.setenv("DATABASE_URL", database_url)
    monkeypatch.setenv("QUEUE_MUTEX_BACKEND", "local")
    get_settings.cache_clear()

    await init_db()
    await create_tables()

    # ASGITransport does not run the lifespan, so startup and shutdown happen here
    app = create_app()
    yield app

    queue = getattr(app.state, "queue", None)
    if queue is not None:
        await queue.close()
    await close_db()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
