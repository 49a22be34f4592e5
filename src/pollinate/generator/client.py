"""AI project generator for the bridge.

This module implements the ProjectGenerator that sends a user instruction
to an OpenAI-compatible text generation endpoint (Pollinations by default)
and converts the free-form reply into an ordered list of GeneratedFile
entries.

The generator makes a single request per instruction. There is no retry:
a failed call surfaces as ProviderError and aborts the run before any
repository mutation.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from src.pollinate.generator.models import (
    GeneratedFile,
    GenerationOptions,
    ProviderError,
    RawFallback,
)
from src.pollinate.generator.parsing import (
    build_request_body,
    extract_reply_text,
    parse_reply,
)

logger = logging.getLogger(__name__)


GENERATION_SYSTEM_PROMPT = (
    "You are an AI that outputs ONLY JSON arrays of files. "
    "Each file should have 'path' and 'content'."
)


class ProjectGenerator:
    """Generates a set of source files from a free-form instruction.

    Attributes:
        llm_url: URL of the chat-completion endpoint.
        api_key: Optional key sent as the ``x-api-key`` header.
        defaults: Options used when a call does not pass its own.
        timeout: Request timeout in seconds, or None for no timeout.

    Example:
        >>> generator = ProjectGenerator(llm_url="https://enter.pollinations.ai/api/generate/openai")
        >>> files = await generator.generate("a flask hello world app")
        >>> [f.path for f in files]
        ['app.py', 'requirements.txt']
    """

    def __init__(
        self,
        llm_url: str,
        api_key: str = "",
        defaults: Optional[GenerationOptions] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the project generator.

        Args:
            llm_url: URL of the chat-completion endpoint.
            api_key: Optional provider API key.
            defaults: Default generation options.
            timeout: Request timeout in seconds; None disables it.
            transport: Optional httpx transport, used by tests.
        """
        self.llm_url = llm_url
        self.api_key = api_key
        self.defaults = defaults or GenerationOptions()
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        return headers

    def build_messages(self, instruction: str) -> List[Dict[str, str]]:
        """Build the two-message prompt for an instruction."""
        return [
            {"role": "system", "content": GENERATION_SYSTEM_PROMPT},
            {"role": "user", "content": instruction},
        ]

    async def generate(
        self,
        instruction: str,
        options: Optional[GenerationOptions] = None,
    ) -> List[GeneratedFile]:
        """Generate project files for an instruction.

        Args:
            instruction: The user instruction extracted from the issue.
            options: Generation options; the generator defaults if None.

        Returns:
            The generated files in reply order. A reply that is not a JSON
            array of files yields a single fallback file with the raw text.

        Raises:
            ProviderError: If the request fails, the status is not a
                success, or the response has no choices.
            ExtractionError: If the response carries no reply text.
        """
        opts = options or self.defaults
        body = build_request_body(
            messages=self.build_messages(instruction),
            model=opts.model,
            temperature=opts.temperature,
            max_tokens=opts.max_tokens,
        )

        logger.info(
            "Requesting project generation",
            extra={
                "model": opts.model,
                "instruction_length": len(instruction),
            },
        )

        data = await self._post(body)
        text = extract_reply_text(data)
        reply = parse_reply(text)

        if isinstance(reply, RawFallback):
            files = reply.to_files()
        else:
            files = reply.files

        logger.info(
            "Project generated",
            extra={
                "file_count": len(files),
                "fallback": isinstance(reply, RawFallback),
            },
        )
        return files

    async def _post(self, body: Dict[str, Any]) -> Any:
        """Send the generation request and decode the JSON response."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self.llm_url,
                    json=body,
                    headers=self._headers(),
                )
        except httpx.HTTPError as e:
            raise ProviderError(f"Provider request failed: {e}", cause=e)

        if not response.is_success:
            text = response.text
            logger.error(
                "Provider API error",
                extra={
                    "status_code": response.status_code,
                    "response_body": text[:500],
                },
            )
            raise ProviderError(
                f"Provider API error {response.status_code}: {text}",
                status_code=response.status_code,
                response_body=text,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"Provider returned invalid JSON: {e}",
                status_code=response.status_code,
                response_body=response.text,
                cause=e,
            )
