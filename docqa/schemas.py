"""
Core types shared by retrieval, streaming and serving.
"""
from __future__ import annotations

from enum import Enum


class AnswerSource(str, Enum):
    """Where an answer comes from; also the `source` field of every SSE event."""

    DOCS = "docs"          # grounded in retrieved document context
    GENERAL = "openai"     # general-knowledge answer, no document context
