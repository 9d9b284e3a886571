"""Turn free-form model output into an action envelope."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

OK = "ok"
MALFORMED = "malformed"
EMPTY = "empty"

_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_ACTION_RE = re.compile(r'"action"\s*:\s*"([A-Za-z_]+)"')
# The reason may be cut off mid-string by a truncated response
_REASON_RE = re.compile(r'"reason"\s*:\s*"((?:[^"\\]|\\.)*)')


@dataclass
class ParseResult:
    status: str
    action: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == OK


def extract_text(content: Any) -> str:
    """Content is either a string or a list of ``{"type": "text", "text": ...}`` blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, dict) and isinstance(block.get("text"), str):
                parts.append(block["text"])
            elif isinstance(block, str):
                parts.append(block)
        return "".join(parts)
    return ""


def _from_object(obj: Any) -> Optional[ParseResult]:
    if not isinstance(obj, dict):
        return None
    action = obj.get("action")
    if not isinstance(action, str) or not action.strip():
        return None
    reason = obj.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = "no_reason_given"
    return ParseResult(OK, action.strip(), reason.strip())


def _strict(text: str) -> Optional[ParseResult]:
    try:
        parsed = _from_object(json.loads(text))
        if parsed is not None:
            return parsed
    except ValueError:
        pass
    match = _OBJECT_RE.search(text)
    if match is None:
        return None
    try:
        return _from_object(json.loads(match.group(0)))
    except ValueError:
        return None


def _partial(text: str) -> Optional[ParseResult]:
    action = _ACTION_RE.search(text)
    if action is None:
        return None
    reason = _REASON_RE.search(text)
    reason_text = reason.group(1).strip() if reason else ""
    return ParseResult(OK, action.group(1), reason_text or "partial_response")


def parse_action_envelope(content: Any) -> ParseResult:
    """Strict JSON first, then a best-effort recovery from truncated text."""
    text = extract_text(content).strip()
    if not text:
        return ParseResult(EMPTY)
    parsed = _strict(text) or _partial(text)
    if parsed is None:
        return ParseResult(MALFORMED)
    return parsed
