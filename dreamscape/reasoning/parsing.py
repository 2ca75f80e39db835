"""
Helpers for pulling JSON payloads out of chat-completion responses.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from dreamscape.core.errors import ResponseParseError


def response_content(response: Dict[str, Any]) -> str:
    """Text of the first choice's message."""
    try:
        content = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise ResponseParseError(f"Response has no message content: {e}") from e
    if not isinstance(content, str):
        raise ResponseParseError("Message content is not text")
    return content


def extract_json_object(content: str) -> Dict[str, Any]:
    """
    Decode the outermost JSON object in a reply.

    Surrounding prose or code fences are tolerated; anything that does not
    decode to a JSON object raises ResponseParseError.
    """
    json_start = content.find("{")
    json_end = content.rfind("}") + 1
    if json_start < 0 or json_end <= json_start:
        raise ResponseParseError("No JSON found in response")

    try:
        data = json.loads(content[json_start:json_end])
    except json.JSONDecodeError as e:
        raise ResponseParseError(f"Failed to parse response as JSON: {e}") from e

    if not isinstance(data, dict):
        raise ResponseParseError("Response JSON is not an object")
    return data
