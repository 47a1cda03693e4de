"""Utilities for pulling JSON out of free-form model output."""

import json
from typing import Any


def find_balanced_json(text: str, opener: str = "{") -> str | None:
    """Locate the first balanced JSON object (or array) in ``text``.

    Braces inside string literals are ignored, so values such as
    ``"selector": "div{x}"`` do not break the scan.

    Args:
        text: Text that may wrap the JSON in prose or markdown fences.
        opener: ``"{"`` for an object, ``"["`` for an array.

    Returns:
        The substring spanning the balanced value, or None if there is none.
    """
    closer = "}" if opener == "{" else "]"
    start = text.find(opener)

    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
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
            elif ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        # Unbalanced from this opener; try the next one
        start = text.find(opener, start + 1)

    return None


def extract_json_from_response(
    text: str,
    json_type: str = "object",
    default: Any = None,
) -> Any:
    """Parse the first balanced JSON value found in a model response.

    Args:
        text: Raw response text.
        json_type: "object" or "array".
        default: Returned when nothing parseable is found.

    Returns:
        The parsed value, or ``default``.
    """
    opener = "[" if json_type == "array" else "{"
    remaining = text
    while True:
        candidate = find_balanced_json(remaining, opener)
        if candidate is None:
            return default
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            # Balanced but not JSON (e.g. a JS snippet); keep scanning after it
            remaining = remaining[remaining.find(candidate) + 1:]
