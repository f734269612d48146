"""
Mutual-exclusion gate interface.

The reservation protocol holds a gate per channel key while it sweeps,
selects and stamps a lease, so two workers never pick the same row.
"""

from abc import ABC, abstractmethod


class Mutex(ABC):
    """A keyed lock that can be held across an await."""

    @abstractmethod
    async def acquire(self, key: str, timeout: float) -> bool:
        """
        Acquire the lock for a key, waiting at most timeout seconds.

        Args:
            key: The lock key.
            timeout: Maximum seconds to wait.

        Returns:
            True if the lock is now held, False if the wait timed out.
        """

    @abstractmethod
    async def release(self, key: str) -> None:
        """
        Release a held lock. Other waiters may acquire it immediately.

        Args:
            key: The lock key.
        """

    async def close(self) -> None:
        """Release any resources held by the mutex."""
        return None
