"""GitHub webhook event models for the bridge.

This module defines the data model for inbound GitHub webhook deliveries
that can carry a generation command: issue events (the command lives in
the issue body) and issue comment events (the command lives in the comment
body).

The models use Pydantic for validation, consistent with the bridge's
configuration approach in config.py.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """Kinds of webhook deliveries the bridge reacts to.

    Values match the ``X-GitHub-Event`` header sent by GitHub.

    Attributes:
        ISSUE: An ``issues`` delivery; the command is read from the issue body.
        COMMENT: An ``issue_comment`` delivery; the command is read from the
                 comment body.
    """

    ISSUE = "issues"
    COMMENT = "issue_comment"


# Actions that may carry a new or changed command, per event kind
HANDLED_ACTIONS = {
    EventKind.ISSUE: frozenset({"opened", "edited"}),
    EventKind.COMMENT: frozenset({"created", "edited"}),
}


class InboundEvent(BaseModel):
    """Parsed GitHub webhook delivery.

    Immutable once built; lives for the duration of a single request.

    Attributes:
        kind: Which webhook event produced this delivery.
        action: The webhook action (opened, edited, created, ...).
        issue_number: The issue the delivery refers to.
        repo_owner: The repository owner (user or organization).
        repo_name: The repository name without owner prefix.
        installation_id: GitHub App installation handle, if present.
        text: Issue body or comment body scanned for a command.
        raw_body: The exact bytes received, as signed by GitHub.
        signature_header: The ``X-Hub-Signature-256`` header value.
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind = Field(
        ...,
        description="The webhook event kind",
    )

    action: str = Field(
        ...,
        min_length=1,
        description="The webhook action that triggered the delivery",
    )

    issue_number: int = Field(
        ...,
        gt=0,
        description="The issue number within the repository (positive integer)",
    )

    repo_owner: str = Field(
        ...,
        min_length=1,
        description="The repository owner (user or organization)",
    )

    repo_name: str = Field(
        ...,
        min_length=1,
        description="The repository name without owner prefix",
    )

    installation_id: Optional[int] = Field(
        default=None,
        description="GitHub App installation ID used to authenticate the run",
    )

    text: str = Field(
        default="",
        description="Issue or comment body that may contain a command",
    )

    raw_body: bytes = Field(
        default=b"",
        description="The raw request body the signature was computed over",
    )

    signature_header: Optional[str] = Field(
        default=None,
        description="The X-Hub-Signature-256 header value",
    )

    @property
    def issue_id(self) -> str:
        """Canonical issue identifier in format "{owner}/{repo}#{number}"."""
        return f"{self.repo_owner}/{self.repo_name}#{self.issue_number}"

    @property
    def full_repository(self) -> str:
        """Repository path in format "{owner}/{repo}"."""
        return f"{self.repo_owner}/{self.repo_name}"
