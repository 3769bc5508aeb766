"""
Server-Sent Event helpers
--------------------------
Downstream (to the browser):
    : processing                                   keep-alive comment, sent once
    data: {"source": "docs", "content": "..."}     one per forwarded increment
    data: [DONE]                                   terminal marker, sent once

Upstream (from the completion provider):
    data: {"choices": [{"delta": {"content": "<token>"}}]}
    data: [DONE]

Payloads are serialised with orjson, which keeps non-ASCII text as-is.
"""
from __future__ import annotations

from typing import Any, Optional

import orjson

from docqa.schemas import AnswerSource

KEEPALIVE = ": processing\n\n"
DONE_MARKER = "[DONE]"
DONE_EVENT = f"data: {DONE_MARKER}\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def _data(payload: Any) -> str:
    return f"data: {orjson.dumps(payload).decode('utf-8')}\n\n"


def format_event(source: AnswerSource, content: str) -> str:
    return _data({"source": source.value, "content": content})


def format_error_event(message: str, source: Optional[AnswerSource] = None) -> str:
    payload: dict[str, Any] = {"error": message}
    if source is not None:
        payload["source"] = source.value
    return _data(payload)


def parse_data_line(line: str) -> Optional[str]:
    """Return the payload of a `data:` line, or None for any other line."""
    stripped = line.strip()
    if not stripped.startswith("data:"):
        return None
    return stripped[len("data:"):].strip()


def extract_delta_content(payload: str) -> Optional[str]:
    """
    Pull choices[0].delta.content out of one upstream payload.

    Malformed or partial JSON is treated as not-yet-complete and skipped.
    """
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError:
        return None
    try:
        content = data["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None
    return content if isinstance(content, str) and content else None
