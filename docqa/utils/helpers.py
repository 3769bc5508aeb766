"""Shared utility functions."""
from __future__ import annotations

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def clean_text(text: str) -> str:
    """Remove control characters (keeps newlines and tabs)."""
    return _CONTROL_CHARS.sub("", text)


def truncate_text(text: str, max_chars: int = 80) -> str:
    """Truncate text for log lines and terminal display."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."
