"""Project generation models for the bridge.

This module defines the data models for AI project generation:
- GeneratedFile: One (path, content) entry to commit
- GenerationOptions: Provider request parameters
- StructuredFiles / RawFallback: The two ways a provider reply can resolve

The models use Pydantic for validation, consistent with the bridge's
approach in webhook/models.py and config.py.
"""

from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.pollinate.config import DEFAULT_LLM_MODEL


FALLBACK_PATH = "generated/auto.txt"


class GenerationError(Exception):
    """Base class for project generation failures.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class ProviderError(GenerationError):
    """Raised when the AI provider call fails or returns no choices.

    Attributes:
        status_code: HTTP status code from the provider, if any.
        response_body: Response text from the provider, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause=cause)
        self.status_code = status_code
        self.response_body = response_body


class ExtractionError(GenerationError):
    """Raised when no reply text can be found in a provider response."""


class GeneratedFile(BaseModel):
    """A file produced by the AI provider, ready to commit.

    Attributes:
        path: Repository-relative path of the file.
        content: Full text content of the file.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(
        ...,
        min_length=1,
        description="Repository-relative file path",
    )

    content: str = Field(
        ...,
        description="File text content",
    )


class GenerationOptions(BaseModel):
    """Request parameters passed through unchanged to the provider."""

    model: str = Field(
        default=DEFAULT_LLM_MODEL,
        min_length=1,
        description="Provider model identifier",
    )

    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature",
    )

    max_tokens: int = Field(
        default=2000,
        ge=1,
        description="Upper bound on generated tokens",
    )


class StructuredFiles(BaseModel):
    """A reply that parsed into at least one valid file entry."""

    files: List[GeneratedFile]


class RawFallback(BaseModel):
    """A reply that did not parse; committed verbatim as a single file."""

    text: str

    def to_files(self) -> List[GeneratedFile]:
        return [GeneratedFile(path=FALLBACK_PATH, content=self.text)]


ParsedReply = Union[StructuredFiles, RawFallback]
