"""
Tolerant JSON-object extraction for completion-service output.

Models asked for JSON still wrap it in markdown fences, prefix it with
prose, or get cut off mid-object. parse_json_object() handles those
cases and raises CompletionError for anything that is not an object.
"""

import json
import logging
import re
from typing import Any, Dict

from ..errors import CompletionError

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r'^```(?:json)?\s*')
_FENCE_CLOSE = re.compile(r'\s*```$')


def parse_json_object(response: str) -> Dict[str, Any]:
    """Parse the first JSON object out of a model response."""
    if not isinstance(response, str) or not response.strip():
        raise CompletionError("Empty completion")

    cleaned = response.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub('', cleaned)
        cleaned = _FENCE_CLOSE.sub('', cleaned).strip()

    candidate = extract_object_string(cleaned)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        # Literal newlines/tabs inside string values
        try:
            parsed = json.loads(candidate, strict=False)
        except json.JSONDecodeError as e:
            logger.warning(f"Unparseable completion: {e} | {candidate[:200]}")
            raise CompletionError(f"Completion is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise CompletionError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def extract_object_string(text: str) -> str:
    """Return the outermost {...} span, closing it if the text was truncated."""
    start = text.find('{')
    if start == -1:
        return text

    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape_next:
            escape_next = False
            continue
        if ch == '\\' and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return close_truncated(text[start:])


def close_truncated(text: str) -> str:
    """Close an open string and any unbalanced brackets, innermost first."""
    stack = []
    in_string = False
    escape_next = False
    for ch in text:
        if escape_next:
            escape_next = False
            continue
        if ch == '\\' and in_string:
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch in '{[':
            stack.append('}' if ch == '{' else ']')
        elif ch in '}]' and stack:
            stack.pop()

    if in_string:
        text += '"'
    text = text.rstrip().rstrip(',')
    return text + ''.join(reversed(stack))
