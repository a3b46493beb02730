"""Recover one JSON document from a model response.

Models asked for "JSON only" still wrap answers in prose or markdown
fences. :func:`extract_structured` tries, in order:

1. the whole (trimmed, BOM-stripped) text;
2. the inner content of the first fenced code block (```` ```json ````);
3. the first balanced ``{...}`` / ``[...]`` span, scanned with awareness of
   string literals so that braces inside strings do not end the span.

The first candidate that :func:`json.loads` accepts wins.
"""
import json
import re
from typing import Any, List, Optional

from core.exceptions import MalformedResponseError

PREVIEW_CHARS = 500
_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_BOM = "\ufeff"


def find_json_span(text: str) -> Optional[str]:
    """Return the first balanced JSON object/array substring of *text*, or ``None``.

    Depth counts ``{``/``[`` against ``}``/``]`` outside string literals. A
    backslash inside a string skips the following character. ``None`` when
    there is no opening bracket, the depth goes negative, or it never returns
    to zero.
    """
    match = re.search(r"[{\[]", text)
    if not match:
        return None
    start = match.start()

    depth = 0
    in_string = False
    escaping = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaping:
                escaping = False
            elif char == "\\":
                escaping = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
            if depth < 0:
                return None
    return None


def _candidates(cleaned: str) -> List[str]:
    candidates = [cleaned]
    fenced = _FENCE_RE.search(cleaned)
    if fenced and fenced.group(1):
        candidates.append(fenced.group(1).strip())
    span = find_json_span(cleaned)
    if span:
        candidates.append(span)
    return candidates


def _preview(text: str) -> str:
    return f"{text[:PREVIEW_CHARS]}..." if len(text) > PREVIEW_CHARS else text


def extract_structured(raw_text: Any, context: str = "JSON response") -> Any:
    """Parse *raw_text* with fence and substring fallbacks.

    Raises:
        MalformedResponseError: when the text is empty or no candidate parses.
            The message carries *context*, the last parser error and a
            bounded preview of the cleaned input.
    """
    text = raw_text.strip() if isinstance(raw_text, str) else ""
    if not text:
        raise MalformedResponseError(f"{context}: empty response.")

    cleaned = text.lstrip(_BOM).strip()
    last_error: Optional[Exception] = None
    for candidate in _candidates(cleaned):
        try:
            return json.loads(candidate)
        except json.JSONDecodeError as exc:
            last_error = exc

    preview = _preview(cleaned)
    reason = str(last_error) if last_error else "Unknown parse error"
    raise MalformedResponseError(
        f"{context}: failed to parse JSON response ({reason}). Response preview: {preview}",
        preview=preview,
        reason=reason,
    )
