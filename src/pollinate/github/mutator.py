"""Repository mutations for a pipeline run.

The RepositoryMutator creates a fresh branch from the base branch head and
commits each generated file to it, one commit per file, strictly in the
order given. Commits are never issued concurrently: every contents call
moves the same branch ref, so overlapping writes would race.

There is no rollback. If a commit fails, the branch and any commits that
already landed stay in the repository.
"""

import logging
import time
from typing import Callable, List, Optional, Sequence

from src.pollinate.generator.models import GeneratedFile
from src.pollinate.github.client import GitHubAPIError, GitHubClient
from src.pollinate.github.models import BranchRef

logger = logging.getLogger(__name__)


BRANCH_PREFIX = "auto/"
COMMIT_MESSAGE_TEMPLATE = "chore: add AI-generated file {path}"


class CommitError(Exception):
    """Raised when committing a file to the run branch fails.

    Attributes:
        path: The file that failed to commit.
        branch: The branch being committed to.
        committed: Paths committed before the failure.
        cause: The underlying API error.
    """

    def __init__(
        self,
        path: str,
        branch: str,
        committed: Optional[List[str]] = None,
        cause: Optional[Exception] = None,
    ):
        self.path = path
        self.branch = branch
        self.committed = committed or []
        self.cause = cause
        super().__init__(f"Failed to commit {path} to {branch}: {cause}")


def generate_branch_name(now_ms: Optional[int] = None) -> str:
    """Build a run branch name from a millisecond timestamp."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{BRANCH_PREFIX}{now_ms}"


def build_commit_message(path: str) -> str:
    return COMMIT_MESSAGE_TEMPLATE.format(path=path)


class RepositoryMutator:
    """Creates a run branch and commits generated files to it.

    Attributes:
        github_client: Client authenticated for the target repository.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        branch_namer: Callable[[], str] = generate_branch_name,
    ):
        self.github_client = github_client
        self._branch_namer = branch_namer

    async def create_branch(
        self,
        owner: str,
        repo: str,
        base_branch: str,
    ) -> BranchRef:
        """Create a uniquely named branch at the base branch head.

        Raises:
            BranchConflict: If the generated name already exists.
            GitHubAPIError: If the base branch cannot be resolved.
        """
        base_sha = await self.github_client.get_branch_sha(owner, repo, base_branch)
        branch = BranchRef(name=self._branch_namer(), base_sha=base_sha)

        await self.github_client.create_ref(owner, repo, branch.name, base_sha)

        logger.info(
            "Branch created",
            extra={
                "owner": owner,
                "repo": repo,
                "branch": branch.name,
                "base_branch": base_branch,
                "base_sha": base_sha,
            },
        )
        return branch

    async def commit_files(
        self,
        files: Sequence[GeneratedFile],
        owner: str,
        repo: str,
        branch: BranchRef,
    ) -> List[str]:
        """Commit files to the branch one at a time, in order.

        Files with an empty path or empty content are skipped.

        Returns:
            The committed paths, in commit order.

        Raises:
            CommitError: On the first file that fails to commit.
        """
        committed: List[str] = []

        for generated in files:
            if not generated.path or not generated.content:
                logger.info(
                    "Skipping file with empty path or content",
                    extra={"path": generated.path, "branch": branch.name},
                )
                continue

            try:
                existing_sha = await self.github_client.get_file_sha(
                    owner, repo, generated.path, ref=branch.name
                )
                await self.github_client.create_or_update_file(
                    owner=owner,
                    repo=repo,
                    path=generated.path,
                    content=generated.content,
                    message=build_commit_message(generated.path),
                    branch=branch.name,
                    sha=existing_sha,
                )
            except GitHubAPIError as e:
                raise CommitError(
                    path=generated.path,
                    branch=branch.name,
                    committed=committed,
                    cause=e,
                ) from e

            committed.append(generated.path)

        logger.info(
            "Files committed",
            extra={
                "owner": owner,
                "repo": repo,
                "branch": branch.name,
                "file_count": len(committed),
            },
        )
        return committed

    async def materialize(
        self,
        files: Sequence[GeneratedFile],
        owner: str,
        repo: str,
        base_branch: str,
    ) -> BranchRef:
        """Create a run branch and commit all files to it.

        Args:
            files: Files to commit, in commit order.
            owner: Repository owner.
            repo: Repository name.
            base_branch: Branch to fork from.

        Returns:
            The created branch.

        Raises:
            BranchConflict: If the branch name is already taken.
            CommitError: If any file fails to commit.
            GitHubAPIError: If the base branch cannot be resolved.
        """
        branch = await self.create_branch(owner, repo, base_branch)
        await self.commit_files(files, owner, repo, branch)
        return branch
