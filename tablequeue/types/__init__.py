"""
Type definitions for the queue.
Contains the message envelope, lease and API types.
"""

from tablequeue.types.api import (
    ChannelStatsResponse,
    ErrorResponse,
    HealthResponse,
    JobStatusResponse,
    PushJobRequest,
    PushJobResponse,
)
from tablequeue.types.job import (
    JobLease,
    JobOptions,
    Message,
)

__all__ = [
    # API types
    "PushJobRequest",
    "PushJobResponse",
    "JobStatusResponse",
    "ChannelStatsResponse",
    "HealthResponse",
    "ErrorResponse",
    # Job types
    "Message",
    "JobOptions",
    "JobLease",
]
