"""GitHub artifact models for the bridge.

This module defines the data models for the repository mutations a run
produces:
- BranchRef: The feature branch created for a run
- PRCreateRequest: Parameters for opening a pull request
- PullRequestResult: The terminal artifact of a successful run

The models use Pydantic for validation, consistent with the bridge's
approach in webhook/models.py and generator/models.py.
"""

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class BranchRef(BaseModel):
    """A branch created for a single run. Never reused.

    Attributes:
        name: Branch name without the ``refs/heads/`` prefix.
        base_sha: Commit SHA the branch was created at.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    base_sha: str = Field(..., min_length=1)

    @property
    def ref(self) -> str:
        """Fully qualified git reference."""
        return f"refs/heads/{self.name}"


class PRCreateRequest(BaseModel):
    """Parameters for opening a pull request."""

    title: str = Field(..., min_length=1)
    body: str = Field(default="")
    head_branch: str = Field(..., min_length=1)
    base_branch: str = Field(..., min_length=1)


class PullRequestResult(BaseModel):
    """A pull request opened by the bridge.

    Attributes:
        number: The pull request number.
        url: The pull request's HTML URL.
        head_branch: The branch holding the generated commits.
        base_branch: The branch the pull request targets.
    """

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., gt=0)
    url: str = Field(..., min_length=1)
    head_branch: str = Field(..., min_length=1)
    base_branch: str = Field(..., min_length=1)

    @classmethod
    def from_github_response(
        cls,
        data: Dict[str, Any],
        head_branch: str,
        base_branch: str,
    ) -> "PullRequestResult":
        """Build a result from the GitHub ``POST /pulls`` response."""
        return cls(
            number=data["number"],
            url=data["html_url"],
            head_branch=head_branch,
            base_branch=base_branch,
        )
