"""
In-process gate implementations.
"""

import asyncio
import logging

from tablequeue.mutex.base import Mutex

logger = logging.getLogger(__name__)


class NullMutex(Mutex):
    """
    Gate that never blocks.

    For single-worker deployments where nothing else reserves from the
    same channel.
    """

    async def acquire(self, key: str, timeout: float) -> bool:
        return True

    async def release(self, key: str) -> None:
        return None


class AsyncioMutex(Mutex):
    """
    Gate backed by one asyncio.Lock per key.

    Serializes reservations between tasks of one process, e.g. several
    workers on one event loop against SQLite. Does not protect against
    other processes.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def acquire(self, key: str, timeout: float) -> bool:
        lock = self._lock_for(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug("Lock wait timed out", extra={"key": key, "timeout": timeout})
            return False
        return True

    async def release(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is not None and lock.locked():
            lock.release()
