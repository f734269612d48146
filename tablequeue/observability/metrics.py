"""
Prometheus metrics collection.
"""

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from tablequeue.constants import (
    METRIC_HANDLER_FAILURES,
    METRIC_JOBS_PUSHED,
    METRIC_JOBS_RELEASED,
    METRIC_JOBS_RESERVED,
    METRIC_LEASE_EXPIRED,
    METRIC_LOCK_TIMEOUTS,
    METRIC_RESERVE_LATENCY,
)

# Global metrics instance
_metrics: "MetricsCollector | None" = None


class MetricsCollector:
    """
    Prometheus metrics collector for the queue.

    Collects metrics for:
    - Queue depth per derived state
    - Pushes, reservations and releases
    - Expired leases and gate timeouts
    - Handler failures
    - Reservation latency
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """
        Initialize the metrics collector.

        Args:
            registry: Optional custom registry. Uses default if not provided.
        """
        self._registry = registry or REGISTRY

        self.queue_depth = Gauge(
            "queue_depth",
            "Number of jobs in the table by derived state",
            ["channel", "status"],
            registry=self._registry,
        )

        self.jobs_pushed = Counter(
            METRIC_JOBS_PUSHED,
            "Total number of jobs pushed",
            ["channel"],
            registry=self._registry,
        )

        self.jobs_reserved = Counter(
            METRIC_JOBS_RESERVED,
            "Total number of leases granted",
            ["channel"],
            registry=self._registry,
        )

        self.jobs_released = Counter(
            METRIC_JOBS_RELEASED,
            "Total number of jobs released after successful handling",
            ["channel", "retention"],
            registry=self._registry,
        )

        self.handler_failures = Counter(
            METRIC_HANDLER_FAILURES,
            "Total number of jobs a handler did not complete",
            ["channel"],
            registry=self._registry,
        )

        self.lease_expired = Counter(
            METRIC_LEASE_EXPIRED,
            "Total number of expired leases returned to waiting",
            registry=self._registry,
        )

        self.lock_timeouts = Counter(
            METRIC_LOCK_TIMEOUTS,
            "Total number of reservation attempts that timed out on the gate",
            ["channel"],
            registry=self._registry,
        )

        self.reserve_latency = Histogram(
            METRIC_RESERVE_LATENCY,
            "Time spent in a reservation attempt in seconds",
            ["channel"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self._registry,
        )

    def record_job_pushed(self, channel: str) -> None:
        """Record a job push."""
        self.jobs_pushed.labels(channel=channel).inc()

    def record_job_reserved(self, channel: str, duration_seconds: float) -> None:
        """Record a granted lease and how long reserving took."""
        self.jobs_reserved.labels(channel=channel).inc()
        self.reserve_latency.labels(channel=channel).observe(duration_seconds)

    def record_job_released(self, channel: str, retention: str) -> None:
        """Record a release."""
        self.jobs_released.labels(channel=channel, retention=retention).inc()

    def record_handler_failure(self, channel: str) -> None:
        """Record a job left reserved by its handler."""
        self.handler_failures.labels(channel=channel).inc()

    def record_lease_expired(self, count: int = 1) -> None:
        """Record expired leases, summed over all channels."""
        self.lease_expired.inc(count)

    def record_lock_timeout(self, channel: str) -> None:
        """Record a gate timeout."""
        self.lock_timeouts.labels(channel=channel).inc()

    def update_queue_depth(self, channel: str, counts: dict[str, int]) -> None:
        """Update queue depth gauges for a channel."""
        for status, count in counts.items():
            self.queue_depth.labels(channel=channel, status=status).set(count)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


def setup_metrics() -> MetricsCollector:
    """
    Set up and return the metrics collector.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics


def get_metrics() -> MetricsCollector:
    """
    Get the metrics collector instance, creating it on first use.

    Returns:
        MetricsCollector: The metrics collector instance.
    """
    if _metrics is None:
        return setup_metrics()
    return _metrics
