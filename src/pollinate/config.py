"""Bridge configuration using pydantic-settings.

This module defines the BridgeSettings class that reads configuration
from environment variables with the POLLINATE_ prefix. The settings object
is built once at startup and passed explicitly to the orchestrator; no
component reads the environment on its own.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_LLM_URL = "https://enter.pollinations.ai/api/generate/openai"
DEFAULT_LLM_MODEL = "openai-large"


class BridgeSettings(BaseSettings):
    """Bridge configuration from environment variables.

    All environment variables are prefixed with POLLINATE_ (e.g.,
    POLLINATE_GITHUB_APP_ID).

    Required fields (must be set via environment variables):
    - github_app_id: Numeric ID of the GitHub App
    - github_private_key: PEM private key of the GitHub App
    - github_webhook_secret: Secret shared with GitHub for HMAC signatures
    """

    model_config = SettingsConfigDict(
        env_prefix="POLLINATE_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitHub App Configuration
    # -------------------------------------------------------------------------
    github_app_id: int

    # PEM-encoded private key used to sign app JWTs
    github_private_key: str

    # Secret for validating GitHub webhook signatures
    github_webhook_secret: str

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # Branch new feature branches fork from and pull requests target
    default_base_branch: str = "main"

    # -------------------------------------------------------------------------
    # AI Provider Configuration
    # -------------------------------------------------------------------------
    llm_url: str = DEFAULT_LLM_URL

    # Optional key sent as the x-api-key header
    llm_api_key: str = ""

    llm_model: str = DEFAULT_LLM_MODEL

    llm_temperature: float = 0.7

    llm_max_tokens: int = 2000

    # -------------------------------------------------------------------------
    # HTTP Configuration
    # -------------------------------------------------------------------------
    # None disables client timeouts entirely
    http_timeout_seconds: Optional[float] = None

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"

    port: int = 3000

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_app_id")
    @classmethod
    def validate_app_id(cls, v: int) -> int:
        """Validate that the app ID is positive."""
        if v < 1:
            raise ValueError("github_app_id must be a positive integer")
        return v

    @field_validator("github_private_key")
    @classmethod
    def validate_private_key(cls, v: str) -> str:
        """Validate the private key and expand escaped newlines.

        Deployment environments often store PEM keys on a single line
        with literal ``\\n`` sequences.
        """
        if not v or not v.strip():
            raise ValueError("github_private_key cannot be empty")
        return v.replace("\\n", "\n")

    @field_validator("github_webhook_secret")
    @classmethod
    def validate_webhook_secret(cls, v: str) -> str:
        """Validate that webhook secret is not empty."""
        if not v or not v.strip():
            raise ValueError("github_webhook_secret cannot be empty")
        return v

    @field_validator("default_base_branch")
    @classmethod
    def validate_base_branch(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("default_base_branch cannot be empty")
        return v.strip()

    @field_validator("github_base_url", "llm_url")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        """Validate that a URL uses the http or https scheme."""
        if not v or not v.strip():
            raise ValueError("URL cannot be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @field_validator("llm_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("llm_temperature must be between 0 and 2")
        return v

    @field_validator("llm_max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        if v < 1:
            raise ValueError("llm_max_tokens must be at least 1")
        return v

    @field_validator("http_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("http_timeout_seconds must be positive")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v


def get_settings() -> BridgeSettings:
    """Create and return a BridgeSettings instance.

    Returns:
        BridgeSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return BridgeSettings()
