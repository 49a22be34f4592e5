"""Parsing of unstructured AI provider replies into file sets.

The provider returns free text. The system prompt asks for a JSON array of
``{"path": ..., "content": ...}`` objects, but nothing forces the model to
comply, so every step here degrades instead of failing:

    response JSON -> reply text -> JSON array -> normalized files
                                 \\-> RawFallback (single file, raw text)

Only a response without any reply text at all is an error.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from src.pollinate.generator.models import (
    ExtractionError,
    GeneratedFile,
    ParsedReply,
    ProviderError,
    RawFallback,
    StructuredFiles,
)

logger = logging.getLogger(__name__)


def extract_reply_text(data: Any) -> str:
    """Extract the reply text from a chat-completion style response.

    The text comes from ``choices[0].message.content`` when it is a
    non-blank string, otherwise from ``choices[0].message.content_blocks``
    joined with blank lines.

    Args:
        data: The decoded provider response.

    Returns:
        The reply text.

    Raises:
        ProviderError: If the response carries no choices.
        ExtractionError: If the first choice carries no non-blank text.
    """
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list) or not choices:
        raise ProviderError("Provider returned no choices")

    choice = choices[0] if isinstance(choices[0], dict) else {}
    message = choice.get("message")
    if not isinstance(message, dict):
        message = {}

    content = message.get("content")
    if isinstance(content, str) and content.strip():
        return content

    blocks = message.get("content_blocks")
    if isinstance(blocks, list):
        joined = "\n\n".join(_block_text(block) for block in blocks)
        if joined.strip():
            return joined

    raise ExtractionError("Couldn't extract text from provider response")


def _block_text(block: Any) -> str:
    if isinstance(block, dict):
        text = block.get("text")
        return text if isinstance(text, str) else ""
    if isinstance(block, str):
        return block
    return ""


def _strip_code_fence(text: str) -> str:
    """Remove a markdown code fence wrapped around the whole reply."""
    stripped = text.strip()

    if stripped.startswith("```json"):
        stripped = stripped[7:]
    elif stripped.startswith("```"):
        stripped = stripped[3:]
    else:
        return stripped

    if stripped.endswith("```"):
        stripped = stripped[:-3]

    return stripped.strip()


def normalize_path(path: str) -> str:
    """Make an AI-supplied path repository-relative."""
    normalized = path.strip()
    while normalized.startswith(("/", "./")):
        normalized = normalized[2:] if normalized.startswith("./") else normalized[1:]
    return normalized


def normalize_files(entries: List[Any]) -> List[GeneratedFile]:
    """Convert parsed array entries to GeneratedFile objects.

    Entries that are not objects, or lack a truthy string ``path`` and a
    truthy string ``content``, are dropped. Order is preserved.

    Args:
        entries: The decoded JSON array.

    Returns:
        The valid files, in array order.
    """
    files: List[GeneratedFile] = []

    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.debug("Dropping non-object entry at index %d", index)
            continue

        path = entry.get("path")
        content = entry.get("content")
        if not isinstance(path, str) or not isinstance(content, str):
            logger.debug("Dropping entry %d with missing path or content", index)
            continue

        path = normalize_path(path)
        if not path or not content:
            logger.debug("Dropping entry %d with empty path or content", index)
            continue

        files.append(GeneratedFile(path=path, content=content))

    return files


def parse_reply(text: str) -> ParsedReply:
    """Resolve reply text into structured files or a raw fallback.

    Args:
        text: The reply text from the provider.

    Returns:
        StructuredFiles if the text is a JSON array with at least one valid
        file entry, RawFallback carrying the unmodified text otherwise.
    """
    try:
        parsed: Optional[Any] = json.loads(_strip_code_fence(text))
    except (ValueError, RecursionError) as e:
        # RecursionError: nesting deeper than the decoder can follow
        logger.warning(
            "Provider reply is not valid JSON, using raw fallback",
            extra={"response_preview": text[:200], "error": str(e)},
        )
        return RawFallback(text=text)

    if not isinstance(parsed, list):
        logger.warning(
            "Provider reply is not a JSON array, using raw fallback",
            extra={"reply_type": type(parsed).__name__},
        )
        return RawFallback(text=text)

    files = normalize_files(parsed)
    if not files:
        logger.warning(
            "Provider reply contains no valid file entries, using raw fallback",
            extra={"entries": len(parsed)},
        )
        return RawFallback(text=text)

    if len(files) < len(parsed):
        logger.info(
            "Dropped invalid file entries from provider reply",
            extra={"kept": len(files), "dropped": len(parsed) - len(files)},
        )

    return StructuredFiles(files=files)


def build_request_body(
    messages: List[Dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int,
) -> Dict[str, Any]:
    """Build the provider request body."""
    return {
        "messages": messages,
        "model": model,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "n": 1,
        "response_format": {"type": "text"},
        "stream": False,
    }
