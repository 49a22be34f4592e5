"""Per-run state tracking.

Each webhook delivery moves through:
- received → verified → command_found → generated → branched
- → committed → pr_created → done

with 'aborted' reachable from every non-terminal stage.
"""

from src.pollinate.state.machine import InvalidTransitionError, RunStateMachine
from src.pollinate.state.models import (
    VALID_TRANSITIONS,
    PipelineRun,
    PipelineStage,
    StateTransition,
    is_terminal_stage,
    is_valid_transition,
)

__all__ = [
    # Models
    "PipelineRun",
    "PipelineStage",
    "StateTransition",
    "VALID_TRANSITIONS",
    "is_terminal_stage",
    "is_valid_transition",
    # State machine
    "InvalidTransitionError",
    "RunStateMachine",
]
