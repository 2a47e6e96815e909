"""Defensive parsing of generated JSON."""

import json
import re
from typing import Any

from backend.notekit.errors import MalformedGenerationResponseError

_FENCE_RE = re.compile(r"^```[a-zA-Z]*[ \t]*\n?(.*?)\n?```$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapping the whole text, if any.

    Args:
        text: Raw generated text

    Returns:
        Inner text of the fence, or the stripped input when not fenced
    """
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def parse_json_response(text: str | None) -> Any:
    """Parse generated text as JSON after stripping code fences.

    Args:
        text: Raw generated text

    Returns:
        Decoded JSON value

    Raises:
        MalformedGenerationResponseError: If the text is empty or not valid JSON
    """
    if text is None or not text.strip():
        raise MalformedGenerationResponseError("Empty generation response", raw_text=text)

    payload = strip_code_fences(text)
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedGenerationResponseError(
            f"Generation response is not valid JSON: {e.msg}", raw_text=text[:500]
        ) from e
