"""Pipeline event emission and metrics.

- LoggingEventEmitter: One log line per run event
- MetricsEventEmitter: Prometheus counters and run duration
- create_bridge_emitter: Both of the above, as used by the running bridge
"""

from src.pollinate.events.emitter import (
    CompositeEventEmitter,
    EventEmitter,
    LoggingEventEmitter,
    NullEventEmitter,
    create_bridge_emitter,
)
from src.pollinate.events.metrics import (
    MetricsEventEmitter,
    PipelineMetrics,
    generate_metrics_output,
    get_metrics,
)
from src.pollinate.events.models import EventType, PipelineEvent

__all__ = [
    "CompositeEventEmitter",
    "EventEmitter",
    "EventType",
    "LoggingEventEmitter",
    "MetricsEventEmitter",
    "NullEventEmitter",
    "PipelineEvent",
    "PipelineMetrics",
    "create_bridge_emitter",
    "generate_metrics_output",
    "get_metrics",
]
