"""Prometheus metrics for pipeline observability.

Metrics Defined:
- pollinate_runs_total: Counter of finished runs by result
- pollinate_run_failures_total: Counter of failed runs by stage
- pollinate_run_duration_seconds: Histogram of successful run time

The MetricsEventEmitter updates these from pipeline events. Metrics are
exposed at the `/metrics` endpoint in Prometheus format.
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from src.pollinate.events.emitter import EventEmitter
from src.pollinate.events.models import EventType, PipelineEvent


logger = logging.getLogger(__name__)


# Generation calls dominate run time; runs rarely exceed a few minutes
DEFAULT_DURATION_BUCKETS = (
    1.0,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
)


class PipelineMetrics:
    """Container for all pipeline Prometheus metrics.

    Metrics:
        runs_total: Counter of finished runs.
            Labels: repository, result (success/failure)

        run_failures_total: Counter of failed runs.
            Labels: repository, stage (where failure occurred)

        run_duration_seconds: Histogram of successful run time.
            Labels: repository
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize pipeline metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.runs_total = Counter(
            "pollinate_runs_total",
            "Total number of pipeline runs that opened a PR or failed",
            labelnames=["repository", "result"],
            registry=self.registry,
        )

        self.run_failures_total = Counter(
            "pollinate_run_failures_total",
            "Total number of pipeline runs that failed, by stage",
            labelnames=["repository", "stage"],
            registry=self.registry,
        )

        self.run_duration_seconds = Histogram(
            "pollinate_run_duration_seconds",
            "Time spent on successful pipeline runs in seconds",
            labelnames=["repository"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_run(self, repository: str, success: bool) -> None:
        result = "success" if success else "failure"
        self.runs_total.labels(repository=repository, result=result).inc()

    def record_failure(self, repository: str, stage: str) -> None:
        self.run_failures_total.labels(repository=repository, stage=stage).inc()

    def record_duration(self, repository: str, duration_seconds: float) -> None:
        self.run_duration_seconds.labels(repository=repository).observe(
            duration_seconds
        )


_default_metrics: Optional[PipelineMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> PipelineMetrics:
    """Get the global metrics instance, or a new one for a custom registry."""
    global _default_metrics

    if registry is not None:
        return PipelineMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = PipelineMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus text output for the /metrics endpoint."""
    return generate_latest(registry or REGISTRY)


class MetricsEventEmitter(EventEmitter):
    """Event emitter that updates Prometheus metrics.

    - ERROR: Records a failed run and the failing stage
    - COMPLETION: Records a successful run and its duration
    - STATE_TRANSITION: Ignored
    """

    def __init__(
        self,
        metrics: Optional[PipelineMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        self._metrics = metrics if metrics is not None else get_metrics(registry)

    @property
    def metrics(self) -> PipelineMetrics:
        return self._metrics

    async def emit(self, event: PipelineEvent) -> None:
        repository = event.repository or "unknown"

        try:
            if event.event_type == EventType.ERROR:
                self._metrics.record_run(repository, success=False)
                self._metrics.record_failure(
                    repository, event.details.get("stage", "unknown")
                )
            elif event.event_type == EventType.COMPLETION:
                self._metrics.record_run(repository, success=True)
                duration = event.details.get("duration_seconds")
                if duration is not None:
                    self._metrics.record_duration(repository, float(duration))
        except Exception as e:
            logger.error(
                "Failed to update metrics for event %s: %s",
                event.event_type.value,
                str(e),
                extra={"event_type": event.event_type.value, "run_id": event.run_id},
            )
