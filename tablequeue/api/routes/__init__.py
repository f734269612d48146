"""
API routes module.
"""

from tablequeue.api.routes.health import router as health_router
from tablequeue.api.routes.jobs import get_queue
from tablequeue.api.routes.jobs import router as jobs_router

__all__ = ["jobs_router", "health_router", "get_queue"]
