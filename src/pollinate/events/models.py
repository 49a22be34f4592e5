"""Pipeline event models for observability.

This module defines the data models for pipeline events:
- EventType: Enum of all event types emitted by the orchestrator
- PipelineEvent: Structured event with run metadata

The models use Pydantic for validation, consistent with the bridge's
approach in state/models.py and webhook/models.py.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events emitted by the orchestrator.

    Attributes:
        STATE_TRANSITION: A run moved from one stage to another.
        ERROR: A run aborted on a failure.
        COMPLETION: A run opened a pull request and posted the completion
            comment.
    """

    STATE_TRANSITION = "state_transition"
    ERROR = "error"
    COMPLETION = "completion"


class PipelineEvent(BaseModel):
    """Structured event emitted by the orchestrator.

    Attributes:
        event_type: The category of event.
        run_id: Identifier of the run that emitted the event.
        issue_id: Canonical issue identifier, once the event is parsed.
        repository: Full repository path, once the event is parsed.
        timestamp: When the event occurred (UTC timezone).
        details: Additional context specific to the event type.

    Details Field Conventions:
        For STATE_TRANSITION events:
            - from_stage: Previous stage
            - to_stage: New stage

        For ERROR events:
            - stage: Stage the run was in when it failed
            - error_type: Exception class name
            - error_message: Human-readable error description

        For COMPLETION events:
            - pr_url: URL of the pull request
            - branch: The run branch
            - duration_seconds: Total processing time
    """

    event_type: EventType = Field(
        ...,
        description="The category of event being emitted",
    )

    run_id: str = Field(
        ...,
        min_length=1,
        description="Identifier of the run that emitted the event",
    )

    issue_id: Optional[str] = Field(
        default=None,
        description='Canonical issue identifier in format "{owner}/{repo}#{number}"',
    )

    repository: Optional[str] = Field(
        default=None,
        description='Full repository path in format "{owner}/{repo}"',
    )

    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC timezone)",
    )

    details: Dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context specific to the event type",
    )

    def to_log_dict(self) -> Dict[str, Any]:
        """Convert event to a flat dictionary for structured logging."""
        return {
            "event_type": self.event_type.value,
            "run_id": self.run_id,
            "issue_id": self.issue_id,
            "repository": self.repository,
            "timestamp": self.timestamp.isoformat(),
            **self.details,
        }
