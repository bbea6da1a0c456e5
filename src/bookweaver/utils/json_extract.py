"""Tolerant JSON extraction from model output.

Models asked for "only JSON" still wrap it in code fences or add a sentence around it. These
helpers try the strict reading first and then progressively looser ones, returning None
instead of raising.
"""

from __future__ import annotations

import json
import re
from typing import Any

from bookweaver.logging import get_logger

logger = get_logger(__name__)

_FENCE_JSON_RE = re.compile(r"```json\s*\n?(.*?)\n?```", re.DOTALL | re.IGNORECASE)
_FENCE_ANY_RE = re.compile(r"```[\w-]*\s*\n?(.*?)\n?```", re.DOTALL)


def _fenced_body(text: str) -> str | None:
    m = _FENCE_JSON_RE.search(text) or _FENCE_ANY_RE.search(text)
    return m.group(1).strip() if m else None


def _balanced_span(text: str, open_ch: str, close_ch: str) -> str | None:
    """Return the first balanced `open_ch ... close_ch` span, honoring JSON strings."""

    start = text.find(open_ch)
    while start != -1:
        depth = 0
        in_str = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_str = False
                continue
            if ch == '"':
                in_str = True
            elif ch == open_ch:
                depth += 1
            elif ch == close_ch:
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        start = text.find(open_ch, start + 1)
    return None


def _extract(text: str, kind: type, open_ch: str, close_ch: str) -> Any | None:
    if not text:
        return None

    cleaned = text.strip()
    candidates: list[str] = []
    fenced = _fenced_body(cleaned)
    if fenced:
        candidates.append(fenced)
    candidates.append(cleaned)
    span = _balanced_span(cleaned, open_ch, close_ch)
    if span:
        candidates.append(span)

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, kind):
            return data
    logger.debug("no JSON %s found in model output (len=%d)", kind.__name__, len(cleaned))
    return None


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Extract the first JSON object from model output, or None."""

    return _extract(text, dict, "{", "}")


def extract_json_array(text: str) -> list[Any] | None:
    """Extract the first JSON array from model output, or None."""

    return _extract(text, list, "[", "]")
