"""
PostgreSQL advisory lock gate.

Session-level advisory locks are visible to every process connected to the
same database, which makes them a cross-process gate that needs no extra
infrastructure. The lock lives as long as the connection that took it, so
each held key keeps its own connection checked out until release.
"""

import asyncio
import hashlib
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from tablequeue.mutex.base import Mutex

logger = logging.getLogger(__name__)


def advisory_key(key: str) -> int:
    """
    Compute a signed 64-bit advisory lock id from a string key.

    Args:
        key: The lock key.

    Returns:
        An integer within the BIGINT range used by pg advisory locks.
    """
    digest = hashlib.sha1(f"tablequeue:{key}".encode("utf-8")).digest()
    value = int.from_bytes(digest[:8], "big", signed=False)
    if value >= 2**63:
        value -= 2**63
    return value


class PostgresAdvisoryMutex(Mutex):
    """Gate backed by pg_try_advisory_lock, polled until the timeout."""

    def __init__(self, engine: AsyncEngine, poll_interval: float = 0.05):
        """
        Initialize the mutex.

        Args:
            engine: Engine connected to the queue's PostgreSQL database.
            poll_interval: Seconds between lock attempts while waiting.
        """
        self._engine = engine
        self._poll_interval = poll_interval
        self._connections: dict[str, AsyncConnection] = {}

    async def acquire(self, key: str, timeout: float) -> bool:
        lock_id = advisory_key(key)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        conn = await self._engine.connect()
        try:
            conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
            while True:
                result = await conn.execute(
                    text("SELECT pg_try_advisory_lock(:lock_id)"),
                    {"lock_id": lock_id},
                )
                if result.scalar():
                    self._connections[key] = conn
                    return True
                if loop.time() >= deadline:
                    break
                await asyncio.sleep(self._poll_interval)
        except BaseException:
            await conn.close()
            raise

        await conn.close()
        logger.debug("Advisory lock wait timed out", extra={"key": key, "lock_id": lock_id})
        return False

    async def release(self, key: str) -> None:
        conn = self._connections.pop(key, None)
        if conn is None:
            return
        try:
            await conn.execute(
                text("SELECT pg_advisory_unlock(:lock_id)"),
                {"lock_id": advisory_key(key)},
            )
        finally:
            await conn.close()

    async def close(self) -> None:
        for key in list(self._connections):
            await self.release(key)
