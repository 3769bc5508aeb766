"""
Retrieval Policy
-----------------
Turns a ranked score list into a routing decision:

    topScore < min_docs_score            -> general-knowledge mode
    otherwise                            -> document mode, with chunks chosen by
                                            an adaptive threshold

Adaptive threshold:
    topScore > 0.9  -> 0.75
    topScore > 0.8  -> 0.70
    otherwise       -> min_chunk_score

Chunks at or above the threshold are kept (at most top_k).  If none pass,
the top_k best chunks are used unfiltered, so document mode always has
context when the index is non-empty.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from docqa.chunking.schemas import Chunk
from docqa.config import Settings
from docqa.embedding.vector_index import ScoredChunk
from docqa.schemas import AnswerSource

MIN_SCORE_FOR_DOCS = 0.25
DEFAULT_CHUNK_THRESHOLD = 0.2

# (top score must exceed, threshold to apply), checked in order
_THRESHOLD_TIERS: tuple[tuple[float, float], ...] = (
    (0.9, 0.75),
    (0.8, 0.70),
)


def adaptive_threshold(top_score: float, default: float = DEFAULT_CHUNK_THRESHOLD) -> float:
    for floor, threshold in _THRESHOLD_TIERS:
        if top_score > floor:
            return threshold
    return default


@dataclass(frozen=True)
class RetrievalDecision:
    source: AnswerSource
    top_score: float
    chunks: list[Chunk] = field(default_factory=list)
    threshold: float | None = None
    used_fallback: bool = False

    @property
    def context(self) -> str:
        return "\n\n".join(chunk.text for chunk in self.chunks)


class RetrievalPolicy:
    """Decides docs-vs-general routing and which chunks form the context."""

    def __init__(
        self,
        top_k: int = 4,
        min_docs_score: float = MIN_SCORE_FOR_DOCS,
        min_chunk_score: float = DEFAULT_CHUNK_THRESHOLD,
    ) -> None:
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")
        self.top_k = top_k
        self.min_docs_score = min_docs_score
        self.min_chunk_score = min_chunk_score

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetrievalPolicy":
        return cls(
            top_k=settings.top_k,
            min_docs_score=settings.min_docs_score,
            min_chunk_score=settings.min_chunk_score,
        )

    def decide(self, scores: list[ScoredChunk]) -> RetrievalDecision:
        """
        Args:
            scores: (Chunk, score) pairs sorted descending; may be empty.
        """
        top_score = scores[0][1] if scores else 0.0

        if top_score < self.min_docs_score:
            logger.info(
                f"[Retrieval] Low confidence (topScore={top_score:.4f}) - general knowledge mode"
            )
            return RetrievalDecision(source=AnswerSource.GENERAL, top_score=top_score)

        threshold = adaptive_threshold(top_score, self.min_chunk_score)
        filtered = [chunk for chunk, score in scores if score >= threshold][: self.top_k]
        used_fallback = not filtered
        chosen = filtered or [chunk for chunk, _ in scores[: self.top_k]]

        logger.info(
            f"[Retrieval] Using docs | {len(chosen)} chunk(s) "
            f"({'fallback topK' if used_fallback else 'filtered'}) | "
            f"topScore={top_score:.4f} threshold={threshold:.4f}"
        )
        return RetrievalDecision(
            source=AnswerSource.DOCS,
            top_score=top_score,
            chunks=chosen,
            threshold=threshold,
            used_fallback=used_fallback,
        )
