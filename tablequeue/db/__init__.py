"""
Database module.
Contains database connection, models, and repository implementations.
"""

from tablequeue.db.connection import (
    close_db,
    create_session_factory,
    create_tables,
    get_async_session,
    get_engine,
    get_session_factory,
    init_db,
)
from tablequeue.db.models import Base, QueueJob
from tablequeue.db.repository import JobRepository

__all__ = [
    "get_async_session",
    "get_session_factory",
    "get_engine",
    "create_session_factory",
    "create_tables",
    "init_db",
    "close_db",
    "Base",
    "QueueJob",
    "JobRepository",
]
