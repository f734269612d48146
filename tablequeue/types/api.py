"""
API request and response type definitions.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from tablequeue.constants import JobStatus
from tablequeue.types.job import Message


class PushJobRequest(BaseModel):
    """Request body for pushing a job onto a channel."""

    handler_name: str = Field(..., min_length=1, description="Handler that processes the job")
    data: Any = Field(default=None, description="Handler input")
    ttr: int | None = Field(default=None, gt=0, description="Time-to-run in seconds")
    delay: int | None = Field(default=None, ge=0, description="Visibility delay in seconds")
    priority: int | None = Field(default=None, ge=0, description="Lower runs first")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Extra message metadata")

    def to_message(self) -> Message:
        """Build the message envelope, folding delivery options into metadata."""
        metadata = dict(self.metadata)
        for key in ("ttr", "delay", "priority"):
            value = getattr(self, key)
            if value is not None:
                metadata[key] = value
        return Message(handler_name=self.handler_name, data=self.data, metadata=metadata)


class PushJobResponse(BaseModel):
    """Response body after pushing a job."""

    id: int
    channel: str
    status: JobStatus = JobStatus.WAITING


class JobStatusResponse(BaseModel):
    """Derived lifecycle state of a job."""

    id: int
    status: JobStatus


class ChannelStatsResponse(BaseModel):
    """Job counts of a channel per state."""

    channel: str
    waiting: int
    reserved: int
    done: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: str | None = None
