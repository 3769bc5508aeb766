"""
In-Memory Similarity Index
---------------------------
Holds (embedding, chunk) pairs in insertion order and ranks every chunk
against a query by cosine similarity.

The index is append-only and lives for the lifetime of the serving
process; nothing is persisted.  Queries never mutate it, so concurrent
requests may share one instance.
"""
from __future__ import annotations

from typing import Sequence

import numpy as np
from loguru import logger

from docqa.chunking.schemas import Chunk
from docqa.errors import EmptyIndex

ScoredChunk = tuple[Chunk, float]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|); 0.0 when either vector has zero length."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class SimilarityIndex:
    """
    Naive exhaustive cosine-similarity index backed by a NumPy matrix.

    Usage:
        index = SimilarityIndex()
        index.add(embeddings, chunks)
        ranked = index.score_query(query_vec)   # [(Chunk, score), ...]
    """

    def __init__(self) -> None:
        self._matrix: np.ndarray | None = None
        self._norms: np.ndarray | None = None
        self.chunks: list[Chunk] = []

    # --- Build ----------------------------------------------------------------

    def add(self, embeddings: Sequence[Sequence[float]], chunks: Sequence[Chunk]) -> None:
        """Append parallel embeddings and chunks (aligned by position)."""
        if len(embeddings) != len(chunks):
            raise ValueError(
                f"Mismatch: {len(chunks)} chunks vs {len(embeddings)} embeddings"
            )
        if not chunks:
            return

        block = np.asarray(embeddings, dtype=np.float64)
        if block.ndim != 2:
            raise ValueError("Embeddings must all have the same length")
        if self._matrix is not None and block.shape[1] != self._matrix.shape[1]:
            raise ValueError(
                f"Dimension mismatch: index has {self._matrix.shape[1]}, got {block.shape[1]}"
            )

        self._matrix = block if self._matrix is None else np.vstack([self._matrix, block])
        self._norms = np.linalg.norm(self._matrix, axis=1)
        self.chunks.extend(chunks)
        logger.info(f"[SimilarityIndex] Added {len(chunks)} vectors | total={len(self.chunks)}")

    # --- Search ---------------------------------------------------------------

    def score_query(self, query_vec: Sequence[float]) -> list[ScoredChunk]:
        """
        Rank every chunk against the query.

        Returns:
            List of (Chunk, cosine_score) sorted descending; ties keep
            insertion order.

        Raises:
            EmptyIndex: when no vectors have been added.
        """
        if self._matrix is None:
            raise EmptyIndex("Similarity index has no vectors")

        q = np.asarray(query_vec, dtype=np.float64)
        if q.shape != (self._matrix.shape[1],):
            raise ValueError(
                f"Query has {q.size} dimensions, index has {self._matrix.shape[1]}"
            )

        denom = self._norms * np.linalg.norm(q)
        dots = self._matrix @ q
        scores = np.divide(dots, denom, out=np.zeros_like(dots), where=denom != 0)

        order = np.argsort(-scores, kind="stable")
        return [(self.chunks[i], float(scores[i])) for i in order]

    # --- Introspection --------------------------------------------------------

    @property
    def dimensions(self) -> int:
        return 0 if self._matrix is None else int(self._matrix.shape[1])

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    def __len__(self) -> int:
        return len(self.chunks)
