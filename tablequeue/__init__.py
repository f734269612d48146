"""
Table Queue

A durable job queue on a single relational table: priority-ordered,
lease-based, at-least-once delivery with delayed jobs and expired lease
recovery.
"""

__version__ = "1.0.0"

from tablequeue.constants import JobStatus, RetentionPolicy  # noqa: E402
from tablequeue.errors import (  # noqa: E402
    LockTimeout,
    MessageDecodeError,
    QueueError,
    StorageFailure,
    UnknownJob,
)
from tablequeue.queue import JobQueue  # noqa: E402
from tablequeue.types.job import JobLease, Message  # noqa: E402

__all__ = [
    "__version__",
    "JobQueue",
    "Message",
    "JobLease",
    "JobStatus",
    "RetentionPolicy",
    "QueueError",
    "LockTimeout",
    "UnknownJob",
    "StorageFailure",
    "MessageDecodeError",
]
