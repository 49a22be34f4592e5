"""Command extraction from issue and comment text.

A command is a line whose trimmed text starts, case-insensitively, with the
trigger token. Everything after the token on that line is the instruction
passed to the project generator:

    Some context the bridge ignores.
    !Pollinate add a /health endpoint returning "ok"

Only the first matching line is honored.
"""

import logging
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

TRIGGER_TOKEN = "!Pollinate"


class Command(BaseModel):
    """An instruction extracted from an issue or comment body."""

    instruction: str = Field(
        ...,
        min_length=1,
        description="Free-form instruction text following the trigger token",
    )


def extract_instruction(text: Optional[str]) -> Optional[str]:
    """Return the instruction of the first trigger line in ``text``.

    Args:
        text: Issue body or comment body. May be None.

    Returns:
        The trimmed remainder of the first line starting with the trigger
        token, or None if there is no such line or its remainder is empty.
    """
    if not text:
        return None

    token_length = len(TRIGGER_TOKEN)
    for line in text.splitlines():
        stripped = line.strip()
        if stripped[:token_length].lower() != TRIGGER_TOKEN.lower():
            continue
        instruction = stripped[token_length:].strip()
        return instruction or None

    return None


def extract_command(text: Optional[str]) -> Optional[Command]:
    """Extract a Command from free-form text.

    A missing command is a normal outcome, not an error.

    Args:
        text: Issue body or comment body. May be None.

    Returns:
        Command if a non-empty instruction was found, None otherwise.
    """
    instruction = extract_instruction(text)
    if instruction is None:
        return None

    logger.debug("Extracted command", extra={"instruction": instruction[:100]})
    return Command(instruction=instruction)
