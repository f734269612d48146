"""
Job-related type definitions for internal use.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from tablequeue.constants import (
    DEFAULT_DELAY_SECONDS,
    DEFAULT_PRIORITY,
    DEFAULT_TTR_SECONDS,
)


class JobOptions(BaseModel):
    """
    Per-job delivery options carried in a message's metadata.
    Missing keys fall back to the queue defaults.
    """

    ttr: int = Field(default=DEFAULT_TTR_SECONDS, gt=0)
    delay: int = Field(default=DEFAULT_DELAY_SECONDS, ge=0)
    priority: int = Field(default=DEFAULT_PRIORITY, ge=0)

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> "JobOptions":
        """Pick the delivery options out of message metadata, ignoring None."""
        return cls(
            **{
                key: metadata[key]
                for key in ("ttr", "delay", "priority")
                if metadata.get(key) is not None
            }
        )


class Message(BaseModel):
    """
    Message envelope stored in the job payload.

    handler_name tells the consumer which handler processes the message,
    data is the handler input, and metadata carries delivery options
    (ttr, delay, priority) plus anything the producer wants to attach.
    """

    handler_name: str
    data: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def options(self) -> JobOptions:
        """Delivery options with defaults applied."""
        return JobOptions.from_metadata(self.metadata)


@dataclass
class JobLease:
    """
    A time-bounded claim on a reserved job.
    Returned by the reservation and handed back to release.
    """

    job_id: int
    channel: str
    message: Message
    ttr: int
    attempt: int
    reserved_at: int

    @property
    def expires_at(self) -> int:
        """Unix second at which the lease becomes reclaimable."""
        return self.reserved_at + self.ttr

    def is_expired(self, now: int) -> bool:
        """Check whether the lease has run out at the given time."""
        return now >= self.expires_at

    def time_remaining_seconds(self, now: int) -> int:
        """Get remaining time on the lease in seconds."""
        return max(0, self.expires_at - now)
