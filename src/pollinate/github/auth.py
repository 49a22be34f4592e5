"""GitHub App authentication.

A GitHub App authenticates in two steps:

1. Sign a short-lived JWT (RS256) with the app's private key.
2. Exchange it at ``POST /app/installations/{id}/access_tokens`` for an
   installation access token scoped to one account or organization.

Each pipeline run gets its own installation token and its own
GitHubClient; nothing is cached between runs.
"""

import logging
import time
from typing import Optional

import httpx
import jwt

from src.pollinate.github.client import GitHubAPIError, GitHubClient

logger = logging.getLogger(__name__)

# GitHub rejects app JWTs valid for more than 10 minutes
JWT_LIFETIME_SECONDS = 600
# Backdate issued-at to tolerate clock drift between us and GitHub
JWT_CLOCK_DRIFT_SECONDS = 60


class InstallationAuthError(GitHubAPIError):
    """Raised when an installation access token cannot be obtained."""


class GitHubAppAuth:
    """Creates installation-authenticated GitHub clients for a GitHub App.

    Attributes:
        app_id: Numeric GitHub App ID.
        base_url: Base URL for GitHub API.
        timeout: Request timeout in seconds, or None for no timeout.
    """

    def __init__(
        self,
        app_id: int,
        private_key: str,
        base_url: str = "https://api.github.com",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_id = app_id
        self._private_key = private_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def create_app_jwt(self, now: Optional[int] = None) -> str:
        """Sign an app JWT.

        Args:
            now: Unix timestamp to issue the token at; defaults to now.

        Returns:
            The encoded RS256 JWT.
        """
        issued_at = int(time.time()) if now is None else now
        payload = {
            "iat": issued_at - JWT_CLOCK_DRIFT_SECONDS,
            "exp": issued_at + JWT_LIFETIME_SECONDS,
            "iss": str(self.app_id),
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    async def get_installation_token(self, installation_id: int) -> str:
        """Exchange an app JWT for an installation access token.

        Raises:
            InstallationAuthError: If GitHub refuses or the call fails.
        """
        url = f"{self.base_url}/app/installations/{installation_id}/access_tokens"
        headers = {
            "Authorization": f"Bearer {self.create_app_jwt()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

        logger.info(
            "Requesting installation token",
            extra={"installation_id": installation_id},
        )

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(url, headers=headers)
        except httpx.HTTPError as e:
            raise InstallationAuthError(
                message=f"Installation token request failed: {e}",
                request_url=url,
            ) from e

        if response.status_code >= 400:
            logger.error(
                "Installation token request rejected",
                extra={
                    "installation_id": installation_id,
                    "status_code": response.status_code,
                    "response_body": response.text[:500],
                },
            )
            raise InstallationAuthError(
                message=f"Installation token request failed: {response.status_code}",
                status_code=response.status_code,
                response_body=response.text,
                request_url=url,
            )

        token = response.json().get("token")
        if not isinstance(token, str) or not token:
            raise InstallationAuthError(
                message="Installation token response has no token",
                status_code=response.status_code,
                response_body=response.text,
                request_url=url,
            )
        return token

    async def installation_client(self, installation_id: int) -> GitHubClient:
        """Build a GitHubClient authenticated as an installation."""
        token = await self.get_installation_token(installation_id)
        return GitHubClient(
            token=token,
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )
