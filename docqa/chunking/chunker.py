"""
Fixed-Window Chunker
---------------------
Cuts the concatenated corpus into consecutive windows of at most
`chunk_size` characters.  Windows do not overlap and are not aligned to
sentence or word boundaries, so every character of the corpus lands in
exactly one chunk.
"""
from __future__ import annotations

from loguru import logger

from docqa.chunking.schemas import Chunk

CHUNK_SIZE = 1000


def split_chunks(text: str, chunk_size: int = CHUNK_SIZE) -> list[Chunk]:
    """
    Split text into ordered Chunk objects.

    Args:
        text: Full corpus text.
        chunk_size: Maximum characters per chunk.

    Returns:
        List of chunks; empty when text is empty.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")

    chunks = [
        Chunk(chunk_index=i, text=text[start: start + chunk_size])
        for i, start in enumerate(range(0, len(text), chunk_size))
    ]
    logger.debug(f"[Chunker] {len(text)} chars -> {len(chunks)} chunk(s) of <= {chunk_size}")
    return chunks
