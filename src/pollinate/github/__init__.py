"""GitHub API integration for the bridge.

This module provides:
- An async REST client for comments, refs, contents and pull requests
- GitHub App installation authentication
- Branch creation and sequential file commits for a run
- Pull request creation and issue comment text
"""

from src.pollinate.github.auth import GitHubAppAuth, InstallationAuthError
from src.pollinate.github.client import BranchConflict, GitHubAPIError, GitHubClient
from src.pollinate.github.models import BranchRef, PRCreateRequest, PullRequestResult
from src.pollinate.github.mutator import (
    CommitError,
    RepositoryMutator,
    build_commit_message,
    generate_branch_name,
)
from src.pollinate.github.pr_creator import PRCreationError, PRCreator

__all__ = [
    "BranchConflict",
    "BranchRef",
    "CommitError",
    "GitHubAPIError",
    "GitHubAppAuth",
    "GitHubClient",
    "InstallationAuthError",
    "PRCreateRequest",
    "PRCreationError",
    "PRCreator",
    "PullRequestResult",
    "RepositoryMutator",
    "build_commit_message",
    "generate_branch_name",
]
