"""GitHub API client for issue, ref, content and PR interactions.

This module provides an async wrapper around the GitHub REST API for:
- Creating comments on issues
- Resolving and creating branch references
- Creating or updating file contents on a branch
- Creating pull requests

Every call is made exactly once. Failures raise GitHubAPIError and are
left to the orchestrator to report; nothing here retries.
"""

import base64
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from src.pollinate.github.models import PRCreateRequest, PullRequestResult


logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class BranchConflict(GitHubAPIError):
    """Raised when the branch to create already exists.

    Attributes:
        branch: The branch name that collided.
    """

    def __init__(self, branch: str, **kwargs: Any):
        super().__init__(f"Branch already exists: {branch}", **kwargs)
        self.branch = branch


class GitHubClient:
    """Async GitHub API client authenticated with a single token.

    The bridge creates one client per run from an installation token, so
    clients are never shared between concurrent deliveries.

    Attributes:
        token: GitHub API token (installation token or PAT).
        base_url: Base URL for GitHub API (default: https://api.github.com).
        timeout: Request timeout in seconds, or None for no timeout.

    Example:
        >>> async with GitHubClient(token="ghs_xxx") as client:
        ...     await client.create_comment("owner", "repo", 123, "Hello!")
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            timeout: Request timeout in seconds; None disables it.
            transport: Optional httpx transport, used by tests.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "Pollinate-Bridge/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(
        self,
        exc_type: Any,
        exc_val: Any,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Make a single HTTP request.

        Args:
            method: HTTP method (GET, POST, PUT).
            path: API path (e.g., /repos/owner/repo/issues/1/comments).
            json_data: Optional JSON body for the request.
            params: Optional query parameters.

        Returns:
            The HTTP response from GitHub.

        Raises:
            GitHubAPIError: If the request fails or returns an error status.
        """
        try:
            response = await self.client.request(
                method=method,
                url=path,
                json=json_data,
                params=params,
            )
        except httpx.HTTPError as e:
            logger.error(
                "GitHub API request failed",
                extra={"path": path, "method": method, "error": str(e)},
            )
            raise GitHubAPIError(
                message=f"Request to {path} failed: {e}",
                request_url=f"{self.base_url}{path}",
            ) from e

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "GitHub API error",
                extra={
                    "status_code": response.status_code,
                    "path": path,
                    "method": method,
                    "response_body": error_body[:500],
                },
            )
            raise GitHubAPIError(
                message=f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.url),
            )

        return response

    async def create_comment(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        body: str,
    ) -> Dict[str, Any]:
        """Create a comment on an issue.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue number to comment on.
            body: Comment body in markdown format.

        Returns:
            The created comment data from GitHub API.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{owner}/{repo}/issues/{issue_number}/comments"

        logger.info(
            "Creating comment on issue",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "body_length": len(body),
            },
        )

        response = await self._request(
            method="POST",
            path=path,
            json_data={"body": body},
        )

        result = response.json()
        logger.info(
            "Comment created successfully",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "comment_id": result.get("id"),
            },
        )
        return result

    async def get_branch_sha(self, owner: str, repo: str, branch: str) -> str:
        """Resolve the commit SHA a branch currently points at.

        Raises:
            GitHubAPIError: If the branch does not exist or the request fails.
        """
        path = f"/repos/{owner}/{repo}/git/ref/heads/{quote(branch, safe='/')}"
        response = await self._request(method="GET", path=path)
        sha = response.json()["object"]["sha"]

        logger.debug(
            "Resolved branch head",
            extra={"owner": owner, "repo": repo, "branch": branch, "sha": sha},
        )
        return sha

    async def create_ref(
        self,
        owner: str,
        repo: str,
        branch: str,
        sha: str,
    ) -> Dict[str, Any]:
        """Create ``refs/heads/<branch>`` pointing at ``sha``.

        Raises:
            BranchConflict: If the reference already exists.
            GitHubAPIError: If the request fails for another reason.
        """
        path = f"/repos/{owner}/{repo}/git/refs"

        logger.info(
            "Creating branch",
            extra={"owner": owner, "repo": repo, "branch": branch, "sha": sha},
        )

        try:
            response = await self._request(
                method="POST",
                path=path,
                json_data={"ref": f"refs/heads/{branch}", "sha": sha},
            )
        except GitHubAPIError as e:
            if e.status_code == 422 and "already exists" in (e.response_body or ""):
                raise BranchConflict(
                    branch,
                    status_code=e.status_code,
                    response_body=e.response_body,
                    request_url=e.request_url,
                ) from e
            raise

        return response.json()

    async def get_file_sha(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str,
    ) -> Optional[str]:
        """Get the blob SHA of a file on a ref, or None if it does not exist.

        Raises:
            GitHubAPIError: If the request fails with anything but 404.
        """
        api_path = f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}"

        try:
            response = await self._request(
                method="GET",
                path=api_path,
                params={"ref": ref},
            )
        except GitHubAPIError as e:
            if e.status_code == 404:
                return None
            raise

        data = response.json()
        if isinstance(data, dict):
            return data.get("sha")
        # A list means the path is a directory
        return None

    async def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Commit a file to a branch.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: Repository-relative file path.
            content: File text; sent base64-encoded as UTF-8.
            message: Commit message.
            branch: Branch to commit to.
            sha: Blob SHA of the existing file when updating.

        Returns:
            The GitHub API response with ``content`` and ``commit`` data.

        Raises:
            GitHubAPIError: If the request fails.
        """
        api_path = f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}"
        encoded = base64.b64encode(content.encode("utf-8")).decode("ascii")

        payload: Dict[str, Any] = {
            "message": message,
            "content": encoded,
            "branch": branch,
        }
        if sha:
            payload["sha"] = sha

        logger.info(
            "Committing file",
            extra={
                "owner": owner,
                "repo": repo,
                "path": path,
                "branch": branch,
                "update": sha is not None,
            },
        )

        response = await self._request(
            method="PUT",
            path=api_path,
            json_data=payload,
        )
        return response.json()

    async def create_pr(
        self,
        owner: str,
        repo: str,
        request: PRCreateRequest,
    ) -> PullRequestResult:
        """Create a pull request.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            request: Pull request creation request with title, body, branches.

        Returns:
            PullRequestResult with the created PR number and URL.

        Raises:
            GitHubAPIError: If the request fails.
        """
        path = f"/repos/{owner}/{repo}/pulls"

        logger.info(
            "Creating pull request",
            extra={
                "owner": owner,
                "repo": repo,
                "title": request.title,
                "head": request.head_branch,
                "base": request.base_branch,
            },
        )

        response = await self._request(
            method="POST",
            path=path,
            json_data={
                "title": request.title,
                "body": request.body,
                "head": request.head_branch,
                "base": request.base_branch,
            },
        )

        result = PullRequestResult.from_github_response(
            response.json(),
            head_branch=request.head_branch,
            base_branch=request.base_branch,
        )

        logger.info(
            "Pull request created successfully",
            extra={
                "owner": owner,
                "repo": repo,
                "pr_number": result.number,
                "pr_url": result.url,
            },
        )
        return result
