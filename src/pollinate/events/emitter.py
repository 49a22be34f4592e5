"""Event sinks for bridge runs.

The orchestrator reports every run through one EventEmitter. In
production that is the logging sink fanned out together with the
Prometheus sink (see create_bridge_emitter); tests use NullEventEmitter
or a mock.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from prometheus_client import CollectorRegistry

from src.pollinate.events.models import EventType, PipelineEvent


logger = logging.getLogger(__name__)


class EventEmitter(ABC):
    """A sink for pipeline events."""

    @abstractmethod
    async def emit(self, event: PipelineEvent) -> None:
        """Record one event."""

    async def close(self) -> None:
        """Release resources held by the sink."""


class LoggingEventEmitter(EventEmitter):
    """Writes one log line per event, worded for the run it describes.

    - STATE_TRANSITION: DEBUG, ``run <id>: <from> -> <to>``
    - COMPLETION: INFO, with the pull request URL and run duration
    - ERROR: ERROR, with the failing stage and exception type

    The full event is attached via ``extra`` for structured handlers.
    """

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name) if logger_name else logger

    async def emit(self, event: PipelineEvent) -> None:
        subject = event.issue_id or event.run_id
        details = event.details
        extra = event.to_log_dict()

        if event.event_type == EventType.STATE_TRANSITION:
            self._logger.debug(
                "Run %s: %s -> %s",
                subject,
                details.get("from_stage"),
                details.get("to_stage"),
                extra=extra,
            )
        elif event.event_type == EventType.COMPLETION:
            self._logger.info(
                "Run %s opened %s in %.1fs",
                subject,
                details.get("pr_url"),
                float(details.get("duration_seconds") or 0.0),
                extra=extra,
            )
        else:
            self._logger.error(
                "Run %s failed at %s: %s",
                subject,
                details.get("stage", "unknown"),
                details.get("error_type", "error"),
                extra=extra,
            )


class CompositeEventEmitter(EventEmitter):
    """Sends each event to several sinks; a failing sink is logged and skipped."""

    def __init__(self, *emitters: EventEmitter):
        self.emitters = list(emitters)

    async def emit(self, event: PipelineEvent) -> None:
        for emitter in self.emitters:
            try:
                await emitter.emit(event)
            except Exception:
                logger.exception(
                    "Event sink %s failed",
                    type(emitter).__name__,
                    extra={"run_id": event.run_id},
                )

    async def close(self) -> None:
        for emitter in self.emitters:
            await emitter.close()


class NullEventEmitter(EventEmitter):
    """Discards all events."""

    async def emit(self, event: PipelineEvent) -> None:
        pass


def create_bridge_emitter(
    registry: Optional[CollectorRegistry] = None,
) -> CompositeEventEmitter:
    """Build the sink used by the running bridge: logs plus Prometheus metrics.

    Args:
        registry: Prometheus registry; the process-wide one when None.
    """
    # metrics.py imports EventEmitter from this module
    from src.pollinate.events.metrics import MetricsEventEmitter

    return CompositeEventEmitter(
        LoggingEventEmitter(),
        MetricsEventEmitter(registry=registry),
    )
