"""
Recover a JSON object from oracle text.

Model output is untrusted: it may be wrapped in markdown fences, prefixed
with prose, or not JSON at all even when JSON was requested. Every pipeline
stage goes through ``extract_json_object`` and branches on ``ParseFailure``.
"""
from dataclasses import dataclass
from typing import Any, Dict, Union
import json
import re

_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)

# Stage replies are a few hundred characters; anything past this is noise
MAX_SCAN_CHARS = 20000


@dataclass(frozen=True)
class ParseFailure:
    """Why no JSON object could be recovered."""
    reason: str
    raw: str = ""


ParseResult = Union[Dict[str, Any], ParseFailure]


def _first_balanced_object(text: str) -> Union[str, None]:
    """
    Return the earliest-starting brace-balanced ``{...}`` span, honouring
    strings. A single pass; a brace left open never hides a later object.
    """
    open_positions = []
    best = None
    in_string = False
    escaped = False
    for index, ch in enumerate(text):
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
        elif ch == "{":
            open_positions.append(index)
        elif ch == "}" and open_positions:
            start = open_positions.pop()
            if best is None or start < best[0]:
                best = (start, index)
            if not open_positions:
                # Every earlier brace is closed; nothing later can start sooner
                break
    if best is None:
        return None
    return text[best[0]:best[1] + 1]


def extract_json_object(text: str) -> ParseResult:
    """
    Extract the first well-formed JSON object from ``text``.

    Tries, in order: the whole (fence-stripped) text, the first balanced
    brace span, and the widest first-``{`` to last-``}`` span.

    Returns:
        The parsed dict, or a ParseFailure. Never raises.
    """
    if not isinstance(text, str) or not text.strip():
        return ParseFailure("empty response", raw=text if isinstance(text, str) else "")

    cleaned = _FENCE.sub("", text[:MAX_SCAN_CHARS]).strip()

    candidates = [cleaned]
    balanced = _first_balanced_object(cleaned)
    if balanced:
        candidates.append(balanced)
    first, last = cleaned.find("{"), cleaned.rfind("}")
    if first != -1 and last > first:
        candidates.append(cleaned[first:last + 1])

    saw_non_object = False
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except (ValueError, RecursionError):
            # JSONDecodeError is a ValueError; deep nesting overflows the decoder
            continue
        if isinstance(parsed, dict):
            return parsed
        saw_non_object = True

    if saw_non_object:
        return ParseFailure("JSON value is not an object", raw=text[:200])
    return ParseFailure("no JSON object found", raw=text[:200])
