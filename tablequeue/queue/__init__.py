"""
Queue module.
Contains the reservation engine, the expiry sweeper, poll loop predicates
and message serializers.
"""

from tablequeue.queue.job_queue import Handler, JobQueue, unix_now
from tablequeue.queue.loop import Loop, SignalLoop, SimpleLoop
from tablequeue.queue.serializer import (
    JsonMessageSerializer,
    MessageSerializer,
    PickleMessageSerializer,
    get_serializer,
)
from tablequeue.queue.sweeper import ExpirySweeper

__all__ = [
    "JobQueue",
    "Handler",
    "unix_now",
    "ExpirySweeper",
    "Loop",
    "SimpleLoop",
    "SignalLoop",
    "MessageSerializer",
    "JsonMessageSerializer",
    "PickleMessageSerializer",
    "get_serializer",
]
