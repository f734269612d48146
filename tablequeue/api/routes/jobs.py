"""
Job routes: push, status and channel statistics.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from tablequeue.constants import API_V1_PREFIX
from tablequeue.db import get_engine, get_session_factory
from tablequeue.errors import UnknownJob
from tablequeue.queue import JobQueue
from tablequeue.types.api import (
    ChannelStatsResponse,
    JobStatusResponse,
    PushJobRequest,
    PushJobResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix=API_V1_PREFIX, tags=["Jobs"])


def get_queue(request: Request) -> JobQueue:
    """
    Dependency returning the application's queue.

    Built on first use from settings and the initialized database, then
    kept on the application state.
    """
    queue = getattr(request.app.state, "queue", None)
    if queue is None:
        queue = JobQueue.from_settings(get_engine(), session_factory=get_session_factory())
        request.app.state.queue = queue
    return queue


@router.post(
    "/channels/{channel}/jobs",
    response_model=PushJobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Push a job",
    description="Push a message onto a channel. It becomes visible after its delay.",
)
async def push_job(
    channel: str,
    request: PushJobRequest,
    queue: JobQueue = Depends(get_queue),
) -> PushJobResponse:
    """
    Push a job.

    Args:
        channel: Target channel.
        request: Message and delivery options.
        queue: The application queue.

    Returns:
        PushJobResponse with the assigned id.
    """
    try:
        job_id = await queue.with_channel(channel).push(request.to_message())
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        ) from e

    return PushJobResponse(id=job_id, channel=channel)


@router.get(
    "/jobs/{job_id}/status",
    response_model=JobStatusResponse,
    summary="Get job status",
    description="Resolve whether a job is waiting, reserved or done.",
)
async def get_job_status(
    job_id: int,
    queue: JobQueue = Depends(get_queue),
) -> JobStatusResponse:
    """
    Get a job's status.

    Args:
        job_id: The job id.
        queue: The application queue.

    Returns:
        JobStatusResponse with the derived state.

    Raises:
        HTTPException: 404 if the job is unknown.
    """
    try:
        job_status = await queue.status(job_id)
    except UnknownJob as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        ) from e

    return JobStatusResponse(id=job_id, status=job_status)


@router.get(
    "/channels/{channel}/stats",
    response_model=ChannelStatsResponse,
    summary="Channel statistics",
    description="Count the jobs of a channel per state.",
)
async def get_channel_stats(
    channel: str,
    queue: JobQueue = Depends(get_queue),
) -> ChannelStatsResponse:
    """
    Get job counts for a channel.

    Args:
        channel: The channel.
        queue: The application queue.

    Returns:
        ChannelStatsResponse with per-state counts.
    """
    counts = await queue.with_channel(channel).stats()
    return ChannelStatsResponse(channel=channel, **counts)
