"""
Chunk schema - the atomic unit that gets embedded and indexed.

A chunk has no identity beyond its position in the corpus and its text.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Chunk(BaseModel):
    """An immutable text window cut from the concatenated corpus."""

    model_config = ConfigDict(frozen=True)

    chunk_index: int = Field(ge=0)       # Position within the corpus
    text: str                            # The actual text to embed
