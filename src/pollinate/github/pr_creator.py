"""Pull request creation and issue comment text.

Builds the user-visible text the bridge posts (acknowledgement comment,
PR title and body, completion comment) and opens the pull request for a
run branch.
"""

import logging

from src.pollinate.github.client import GitHubAPIError, GitHubClient
from src.pollinate.github.models import PRCreateRequest, PullRequestResult

logger = logging.getLogger(__name__)


class PRCreationError(Exception):
    """Raised when the pull request for a run cannot be opened.

    Attributes:
        head_branch: The run branch.
        base_branch: The target branch.
        cause: The underlying API error.
    """

    def __init__(self, head_branch: str, base_branch: str, cause: Exception):
        self.head_branch = head_branch
        self.base_branch = base_branch
        self.cause = cause
        super().__init__(
            f"Failed to create pull request {head_branch} -> {base_branch}: {cause}"
        )


def build_ack_comment(instruction: str) -> str:
    return f"🤖 Generating project for: `{instruction}`..."


def build_pr_title(instruction: str) -> str:
    return f"Auto-generated project: {instruction}"


def build_pr_body(issue_number: int) -> str:
    return f"This PR was automatically created from issue #{issue_number}."


def build_completion_comment(pr_url: str) -> str:
    return f"✅ PR created: {pr_url}"


class PRCreator:
    """Opens the pull request for a run branch.

    Attributes:
        github_client: Client authenticated for the target repository.
    """

    def __init__(self, github_client: GitHubClient):
        self.github_client = github_client

    async def create_pr_for_issue(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        instruction: str,
        head_branch: str,
        base_branch: str,
    ) -> PullRequestResult:
        """Open a pull request referencing the originating issue.

        Raises:
            PRCreationError: If GitHub rejects the pull request.
        """
        request = PRCreateRequest(
            title=build_pr_title(instruction),
            body=build_pr_body(issue_number),
            head_branch=head_branch,
            base_branch=base_branch,
        )

        try:
            return await self.github_client.create_pr(owner, repo, request)
        except GitHubAPIError as e:
            logger.error(
                "Pull request creation failed",
                extra={
                    "owner": owner,
                    "repo": repo,
                    "issue_number": issue_number,
                    "head": head_branch,
                    "base": base_branch,
                    "status_code": e.status_code,
                },
            )
            raise PRCreationError(head_branch, base_branch, e) from e
