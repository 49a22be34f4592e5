"""AI project generation for the bridge.

Sends an instruction to the text generation provider and turns the reply
into an ordered list of files. Replies that ignore the JSON-array format
degrade to a single fallback file instead of failing the run.
"""

from src.pollinate.generator.client import GENERATION_SYSTEM_PROMPT, ProjectGenerator
from src.pollinate.generator.models import (
    FALLBACK_PATH,
    ExtractionError,
    GeneratedFile,
    GenerationError,
    GenerationOptions,
    ProviderError,
    RawFallback,
    StructuredFiles,
)
from src.pollinate.generator.parsing import extract_reply_text, parse_reply

__all__ = [
    "FALLBACK_PATH",
    "GENERATION_SYSTEM_PROMPT",
    "ExtractionError",
    "GeneratedFile",
    "GenerationError",
    "GenerationOptions",
    "ProjectGenerator",
    "ProviderError",
    "RawFallback",
    "StructuredFiles",
    "extract_reply_text",
    "parse_reply",
]
