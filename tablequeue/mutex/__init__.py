"""
Mutex module.
Contains the reservation gate interface and its implementations.
"""

from sqlalchemy.ext.asyncio import AsyncEngine

from tablequeue.config import Settings
from tablequeue.mutex.base import Mutex
from tablequeue.mutex.local import AsyncioMutex, NullMutex
from tablequeue.mutex.postgres import PostgresAdvisoryMutex, advisory_key


def build_mutex(settings: Settings, engine: AsyncEngine) -> Mutex:
    """
    Build the gate selected by configuration.

    "auto" picks advisory locks on PostgreSQL and an in-process lock on
    anything else.

    Args:
        settings: Application settings.
        engine: The queue database engine.

    Returns:
        The configured mutex.
    """
    backend = settings.queue_mutex_backend
    if backend == "auto":
        backend = "postgres" if engine.dialect.name == "postgresql" else "local"

    if backend == "postgres":
        return PostgresAdvisoryMutex(engine)
    if backend == "local":
        return AsyncioMutex()
    return NullMutex()


__all__ = [
    "Mutex",
    "NullMutex",
    "AsyncioMutex",
    "PostgresAdvisoryMutex",
    "advisory_key",
    "build_mutex",
]
