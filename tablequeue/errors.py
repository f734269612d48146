"""Exception types for the table queue."""


class QueueError(Exception):
    """Base exception for all queue errors."""

    pass


class LockTimeout(QueueError):
    """Raised when the reservation gate is not acquired within the timeout."""

    def __init__(self, key: str, timeout: float, message: str | None = None):
        self.key = key
        self.timeout = timeout
        if message is None:
            message = f"Has not waited the lock {key!r} within {timeout}s"
        super().__init__(message)


class UnknownJob(QueueError):
    """Raised when a status query names a job id that is not in the table."""

    def __init__(self, job_id: int, message: str | None = None):
        self.job_id = job_id
        if message is None:
            message = f"Unknown message ID: {job_id}"
        super().__init__(message)


class StorageFailure(QueueError):
    """Raised when a read or write against the job table fails."""

    pass


class MessageDecodeError(QueueError):
    """Raised when a reserved job's payload cannot be unserialized."""

    def __init__(self, job_id: int, message: str | None = None):
        self.job_id = job_id
        if message is None:
            message = f"Cannot decode payload of job {job_id}"
        super().__init__(message)
