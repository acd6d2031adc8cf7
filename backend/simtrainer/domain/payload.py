"""
Tagged parse result for JSON payloads coming back from an LLM.

Callers branch on ``isinstance(result, ParseFailure)`` to take their
deterministic fallback path instead of catching exceptions.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class ParsedPayload:
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ParseFailure:
    reason: str
    raw: str | None = None


ParseResult = Union[ParsedPayload, ParseFailure]

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.I)


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text.strip()).strip()


def parse_json_object(raw: str | None) -> ParseResult:
    """Parse ``raw`` into a JSON object, tolerating a markdown code fence around it."""
    if raw is None or not raw.strip():
        return ParseFailure("empty response", raw)
    try:
        data = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as e:
        return ParseFailure(f"invalid JSON: {e}", raw)
    if not isinstance(data, dict):
        return ParseFailure(f"expected a JSON object, got {type(data).__name__}", raw)
    return ParsedPayload(data)


# ---------------------------------------------------------------------------
# Field coercion helpers for loosely-typed model output
# ---------------------------------------------------------------------------

def safe_bool(val: Any) -> bool:
    """Coerce model output to bool; the string "false" stays False."""
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        return val.strip().lower() in ("true", "yes", "1")
    if isinstance(val, (int, float)):
        return val != 0
    return False


def safe_int(val: Any, default: int) -> int:
    if isinstance(val, bool):
        return default
    try:
        return int(round(float(val)))
    except (TypeError, ValueError):
        return default


def safe_str_list(val: Any) -> list[str]:
    if not isinstance(val, list):
        return []
    return [str(v) for v in val if v is not None and str(v).strip()]
