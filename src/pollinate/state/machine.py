"""Run state machine implementation.

This module implements the RunStateMachine class that moves a single
delivery's run through its stages, enforcing the transition map and
recording a timestamped history.
"""

import logging
from typing import Any, Dict, Optional

from src.pollinate.state.models import (
    PipelineRun,
    PipelineStage,
    StateTransition,
    is_valid_transition,
)


logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """Raised when an invalid stage transition is attempted.

    Attributes:
        from_stage: The current stage.
        to_stage: The attempted target stage.
        message: Human-readable error message.
    """

    def __init__(
        self,
        from_stage: PipelineStage,
        to_stage: PipelineStage,
        message: Optional[str] = None,
    ):
        self.from_stage = from_stage
        self.to_stage = to_stage
        self.message = message or (
            f"Invalid transition from {from_stage.value} to {to_stage.value}"
        )
        super().__init__(self.message)


class RunStateMachine:
    """State machine for one pipeline run.

    Invariants:
    - Only transitions listed in VALID_TRANSITIONS are allowed
    - Every transition is recorded with a timestamp in state_history
    - Aborting on a failure stores the error on the run

    Each delivery gets its own instance; instances are never shared.

    Example:
        >>> machine = RunStateMachine("delivery-123")
        >>> machine.transition(PipelineStage.VERIFIED)
        >>> machine.current_stage
        <PipelineStage.VERIFIED: 'verified'>
    """

    def __init__(self, run_id: str):
        self.run = PipelineRun(run_id=run_id)

    @property
    def current_stage(self) -> PipelineStage:
        return self.run.current_stage

    def bind_issue(self, issue_id: str, repository: str) -> None:
        """Attach the parsed issue to the run for logging and events."""
        self.run.issue_id = issue_id
        self.run.repository = repository

    def transition(
        self,
        to_stage: PipelineStage,
        details: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """Move the run to a new stage.

        Args:
            to_stage: The target stage.
            details: Optional metadata recorded with the transition.

        Returns:
            The recorded transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed.
        """
        from_stage = self.run.current_stage
        if not is_valid_transition(from_stage, to_stage):
            raise InvalidTransitionError(from_stage, to_stage)

        record = StateTransition(
            from_stage=from_stage,
            to_stage=to_stage,
            details=details or {},
        )
        self.run.state_history.append(record)
        self.run.current_stage = to_stage

        logger.debug(
            "Run transitioned",
            extra={
                "run_id": self.run.run_id,
                "from_stage": from_stage.value,
                "to_stage": to_stage.value,
            },
        )
        return record

    def abort(
        self,
        reason: str,
        error: Optional[str] = None,
    ) -> StateTransition:
        """Abort the run from its current stage.

        Args:
            reason: Short machine-readable reason (e.g. "no_command").
            error: Error message when aborting on a failure.
        """
        details: Dict[str, Any] = {"reason": reason}
        if error is not None:
            details["error"] = error
            self.run.error = error
        return self.transition(PipelineStage.ABORTED, details)
