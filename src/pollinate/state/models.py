"""Pipeline run state models.

This module defines the data models for a single run's state machine:
- PipelineStage: Enum of all run stages
- StateTransition: Record of a transition with timestamp and details
- PipelineRun: Complete state of one webhook delivery's run
- VALID_TRANSITIONS: Map defining allowed transitions

Runs live only for the duration of a request; nothing is persisted.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class PipelineStage(str, Enum):
    """Stages a webhook delivery progresses through.

    Stage Flow:
        received → verified → command_found → generated → branched
        → committed → pr_created → done

    Every non-terminal stage can move to 'aborted', both on errors and on
    normal no-op exits (no command, no installation).

    Attributes:
        RECEIVED: Delivery accepted by the HTTP layer.
        VERIFIED: Signature checked and body decoded.
        COMMAND_FOUND: A command and installation were found.
        GENERATED: The AI provider produced the file set.
        BRANCHED: The run branch exists.
        COMMITTED: All files are committed to the run branch.
        PR_CREATED: The pull request is open.
        DONE: The completion comment was posted.
        ABORTED: The run stopped early, successfully or not.
    """

    RECEIVED = "received"
    VERIFIED = "verified"
    COMMAND_FOUND = "command_found"
    GENERATED = "generated"
    BRANCHED = "branched"
    COMMITTED = "committed"
    PR_CREATED = "pr_created"
    DONE = "done"
    ABORTED = "aborted"


class StateTransition(BaseModel):
    """Record of a stage transition in a run.

    Attributes:
        from_stage: The stage before the transition.
        to_stage: The stage after the transition.
        timestamp: When the transition occurred (UTC).
        details: Optional metadata (error info, branch name, PR URL).
    """

    from_stage: PipelineStage
    to_stage: PipelineStage
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    details: Dict[str, Any] = Field(default_factory=dict)


class PipelineRun(BaseModel):
    """State of a single delivery's run.

    Attributes:
        run_id: Identifier of the run (the GitHub delivery ID when known).
        repository: Full repository path, once the event is parsed.
        issue_id: Canonical issue identifier, once the event is parsed.
        current_stage: The current stage.
        state_history: Ordered list of all transitions.
        error: Error message if the run aborted on a failure.
        created_at: When the run started (UTC).
    """

    run_id: str = Field(..., min_length=1)
    repository: Optional[str] = None
    issue_id: Optional[str] = None
    current_stage: PipelineStage = PipelineStage.RECEIVED
    state_history: List[StateTransition] = Field(default_factory=list)
    error: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def elapsed_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self.created_at).total_seconds()


_FORWARD_STAGES = [
    PipelineStage.RECEIVED,
    PipelineStage.VERIFIED,
    PipelineStage.COMMAND_FOUND,
    PipelineStage.GENERATED,
    PipelineStage.BRANCHED,
    PipelineStage.COMMITTED,
    PipelineStage.PR_CREATED,
    PipelineStage.DONE,
]

# Each forward stage may advance to the next one or abort.
# DONE and ABORTED are terminal.
VALID_TRANSITIONS: Dict[PipelineStage, List[PipelineStage]] = {
    stage: [next_stage, PipelineStage.ABORTED]
    for stage, next_stage in zip(_FORWARD_STAGES, _FORWARD_STAGES[1:])
}
VALID_TRANSITIONS[PipelineStage.DONE] = []
VALID_TRANSITIONS[PipelineStage.ABORTED] = []


def is_valid_transition(from_stage: PipelineStage, to_stage: PipelineStage) -> bool:
    """Check if a stage transition is allowed.

    Example:
        >>> is_valid_transition(PipelineStage.RECEIVED, PipelineStage.VERIFIED)
        True
        >>> is_valid_transition(PipelineStage.RECEIVED, PipelineStage.GENERATED)
        False
    """
    return to_stage in VALID_TRANSITIONS.get(from_stage, [])


def is_terminal_stage(stage: PipelineStage) -> bool:
    """Check if a stage has no outgoing transitions."""
    return len(VALID_TRANSITIONS.get(stage, [])) == 0
