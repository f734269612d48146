"""
Application constants.
Centralized location for all constant values used across the application.
"""

from enum import StrEnum


class JobStatus(StrEnum):
    """
    Job lifecycle states, derived from row timestamps and never stored.

    State transitions:
    - WAITING -> RESERVED (lease acquired, attempt incremented)
    - RESERVED -> WAITING (lease expired - crash or handler failure recovery)
    - RESERVED -> DONE (released after successful handling)
    """

    WAITING = "waiting"
    RESERVED = "reserved"
    DONE = "done"


class RetentionPolicy(StrEnum):
    """What release does with a finished job row."""

    DELETE = "delete"
    KEEP_DONE = "keep_done"


# Default values
DEFAULT_CHANNEL = "queue"
DEFAULT_TTR_SECONDS = 300
DEFAULT_DELAY_SECONDS = 0
DEFAULT_PRIORITY = 1024
DEFAULT_MUTEX_TIMEOUT_SECONDS = 3.0
DEFAULT_IDLE_SLEEP_SECONDS = 5.0

# Table
QUEUE_TABLE = "queue"

# API constants
API_V1_PREFIX = "/v1"

# Metrics names
METRIC_JOBS_PUSHED = "queue_jobs_pushed_total"
METRIC_JOBS_RESERVED = "queue_jobs_reserved_total"
METRIC_JOBS_RELEASED = "queue_jobs_released_total"
METRIC_HANDLER_FAILURES = "queue_handler_failures_total"
METRIC_LEASE_EXPIRED = "queue_lease_expired_total"
METRIC_LOCK_TIMEOUTS = "queue_lock_timeouts_total"
METRIC_RESERVE_LATENCY = "queue_reserve_latency_seconds"

# Trace span names
SPAN_PUSH_JOB = "push_job"
SPAN_RESERVE_JOB = "reserve_job"
SPAN_RELEASE_JOB = "release_job"
SPAN_HANDLE_JOB = "handle_job"
