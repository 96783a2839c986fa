"""Response parser for model output.

Models are unreliable about emitting only JSON. The parser is lenient about
surrounding prose and markdown but strict about the two recognized shapes:

    {"type": "tool_request", "tool_name": "<name>", "arguments": {...}}
    {"type": "final_answer", "content": "<text>"}

Anything else yields None. The module holds no state and is safe to call
concurrently.
"""

import json
import re
from typing import Any

from verity_server.protocol.types import FinalAnswer, ParsedIntent, ToolRequest

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def _intent_from_object(obj: Any) -> ParsedIntent:
    """Map a decoded JSON value to an intent, rejecting unknown shapes."""
    if not isinstance(obj, dict):
        return None

    kind = obj.get("type")
    if kind == "tool_request" and isinstance(obj.get("tool_name"), str):
        arguments = obj.get("arguments")
        return ToolRequest(
            tool_name=obj["tool_name"],
            arguments=dict(arguments) if isinstance(arguments, dict) else {},
        )
    if kind == "final_answer" and isinstance(obj.get("content"), str):
        return FinalAnswer(content=obj["content"])
    return None


def _parse_one(candidate: str) -> ParsedIntent:
    try:
        return _intent_from_object(json.loads(candidate))
    except (json.JSONDecodeError, RecursionError):
        return None


def extract_first_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring of text.

    Braces inside JSON string literals are not counted.

    Args:
        text: Text to scan

    Returns:
        The substring, or None if no balanced object exists
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def parse_response(raw: str) -> ParsedIntent:
    """Parse raw model output into a tool request or final answer.

    Attempts, in order: the whole (unfenced) text, its first non-empty line,
    and the first balanced JSON object inside it.

    Args:
        raw: Complete model output for one round

    Returns:
        ToolRequest, FinalAnswer, or None when nothing recognizable was found
    """
    if not raw:
        return None

    text = raw.strip()
    fence = _CODE_FENCE.search(text)
    if fence:
        text = fence.group(1).strip()

    intent = _parse_one(text)
    if intent is not None:
        return intent

    # Only the first of several line-delimited objects is honored
    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    if first_line and first_line != text:
        intent = _parse_one(first_line)
        if intent is not None:
            return intent

    candidate = extract_first_json_object(text)
    if candidate is not None:
        return _parse_one(candidate)
    return None
