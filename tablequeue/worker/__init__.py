"""
Worker module.
Contains the worker process and the handler registry.
"""

from tablequeue.worker.handlers import dispatch, get_handler, list_handlers, register_handler
from tablequeue.worker.main import Worker, build_worker, run

__all__ = [
    "Worker",
    "build_worker",
    "run",
    "register_handler",
    "get_handler",
    "list_handlers",
    "dispatch",
]
