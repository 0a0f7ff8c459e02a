"""
Lenient JSON extraction for model replies.

Models sometimes wrap JSON in prose or markdown fences; these helpers try a
strict parse first and then fall back to the outermost bracketed span.
"""

import json


def parse_json_object(text: str):
    """Return the dict embedded in text, or None."""
    parsed = _parse_span(text, '{', '}')
    return parsed if isinstance(parsed, dict) else None


def parse_json_array(text: str):
    """Return the list embedded in text, or None."""
    parsed = _parse_span(text, '[', ']')
    return parsed if isinstance(parsed, list) else None


def _parse_span(text: str, open_char: str, close_char: str):
    if not text:
        return None

    stripped = text.strip()
    try:
        return json.loads(stripped)
    except ValueError:
        pass

    start = stripped.find(open_char)
    end = stripped.rfind(close_char)
    if start == -1 or end == -1 or end <= start:
        return None

    candidate = stripped[start:end + 1]
    try:
        return json.loads(candidate)
    except ValueError:
        return None
