"""
Locating JSON inside free-form model output.

Models wrap JSON in markdown fences or surround it with prose. The first
balanced object or array is cut out before it reaches json.loads.
"""

import json
import re
from typing import Any, Optional

from content_worker.core.errors import EmptyResponseError, JSONParseError

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_FENCED_ANY = re.compile(r"```[^\n]*\n?([\s\S]*?)\s*```")

_CLOSERS = {"{": "}", "[": "]"}


def strip_code_fences(text: str) -> str:
    match = _FENCED_JSON.search(text)
    if match:
        return match.group(1).strip()
    match = _FENCED_ANY.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def find_balanced_json(text: str) -> Optional[str]:
    """
    Return the first balanced {...} or [...] span in `text`.

    Brackets inside JSON strings (and escaped quotes) are ignored.
    """
    start = -1
    stack: list[str] = []
    in_string = False
    escaped = False

    for i, ch in enumerate(text):
        if start == -1:
            if ch in _CLOSERS:
                start = i
                stack.append(_CLOSERS[ch])
            continue

        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack[-1] != ch:
                # Mismatched closer: restart the scan after the bad opener
                return find_balanced_json(text[start + 1 :])
            stack.pop()
            if not stack:
                return text[start : i + 1]

    return None


def extract_json_payload(raw_text: Optional[str]) -> Any:
    """
    Parse the JSON payload of a model response.

    Raises EmptyResponseError for a blank completion and JSONParseError
    (keeping the raw text) when nothing parseable is found.
    """
    if raw_text is None or not raw_text.strip():
        raise EmptyResponseError("Empty response from LLM")

    candidate = strip_code_fences(raw_text)
    span = find_balanced_json(candidate)
    if span is None and candidate != raw_text.strip():
        span = find_balanced_json(raw_text)
    if span is None:
        raise JSONParseError("No JSON object or array found in LLM response", raw_text=raw_text)

    try:
        return json.loads(span)
    except json.JSONDecodeError as e:
        raise JSONParseError(f"Failed to parse LLM response as JSON: {e}", raw_text=raw_text) from e
