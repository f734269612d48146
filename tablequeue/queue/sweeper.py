"""
Expired lease recovery.

Jobs whose worker crashed or whose handler gave up stay reserved until
their time-to-run elapses. The sweeper puts them back to waiting right
before a reservation looks for work, so a freshly expired job can be
leased again by that same reservation.
"""

import logging

from tablequeue.db.repository import JobRepository
from tablequeue.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Returns expired leases of every channel to the waiting state.

    Runs at most once per wall-clock second: the second of the last
    completed sweep is kept on the instance, so each queue instance
    throttles independently.
    """

    def __init__(self) -> None:
        self._last_swept_at: int | None = None

    @property
    def last_swept_at(self) -> int | None:
        """Unix second of the last sweep, None before the first one."""
        return self._last_swept_at

    async def sweep(self, repo: JobRepository, now: int) -> int:
        """
        Recover expired leases unless a sweep already ran this second.

        Args:
            repo: Repository bound to the reservation's transaction.
            now: Current time in unix seconds.

        Returns:
            Number of jobs returned to waiting.
        """
        if self._last_swept_at == now:
            return 0

        count = await repo.clear_expired_leases(now)
        self._last_swept_at = now

        if count > 0:
            get_metrics().record_lease_expired(count)
            logger.info(
                "Expired leases returned to waiting",
                extra={"count": count},
            )

        return count
