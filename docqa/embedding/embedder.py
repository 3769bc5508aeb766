"""
Embedding Client with LangSmith instrumentation
-------------------------------------------------
Wraps the provider's OpenAI-compatible /embeddings endpoint with:
  - One request per text (ingestion embeds chunk by chunk)
  - LangSmith run tracing for cost / latency observability
  - Token usage counters
  - No automatic retries: a failed call surfaces immediately
"""
from __future__ import annotations

import time
from typing import Any, Optional

import openai
from langsmith import traceable
from loguru import logger
from openai import OpenAI

from docqa.config import Settings
from docqa.errors import EmbeddingFailure, UpstreamHTTPFailure


class Embedder:
    """
    Produces raw (un-normalised) embedding vectors.

    The similarity index computes full cosine similarity, so vectors are
    stored exactly as the provider returns them.
    """

    def __init__(self, settings: Settings, client: Optional[Any] = None) -> None:
        self.model = settings.embedding_model
        self._client = client or OpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            max_retries=0,
            timeout=settings.request_timeout_s,
        )
        self.total_tokens_used: int = 0
        self.total_api_calls: int = 0

    @traceable(name="embed_text", run_type="embedding")
    def embed_text(self, text: str) -> list[float]:
        """Embed a single string. Raises EmbeddingFailure / UpstreamHTTPFailure."""
        # Empty input is rejected by most providers
        safe_text = text if text.strip() else " "
        start = time.perf_counter()
        try:
            response = self._client.embeddings.create(model=self.model, input=safe_text)
        except openai.APIStatusError as exc:
            logger.error(f"[Embedder] Provider error {exc.status_code}: {exc.message}")
            raise UpstreamHTTPFailure(exc.status_code, exc.message) from exc
        except openai.APIConnectionError as exc:
            raise EmbeddingFailure(f"Embedding request failed: {exc}") from exc
        elapsed = time.perf_counter() - start
        self.total_api_calls += 1

        data = getattr(response, "data", None)
        if not data or not getattr(data[0], "embedding", None):
            logger.error(f"[Embedder] No vector in response: {response!r}")
            raise EmbeddingFailure("Failed to get embedding")

        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", 0) or 0
        self.total_tokens_used += tokens
        logger.debug(f"[Embedder] API call: {len(safe_text)} chars, {tokens} tokens, {elapsed:.2f}s")
        return list(data[0].embedding)

    def embed_query(self, text: str) -> list[float]:
        return self.embed_text(text)

    def usage_summary(self) -> dict:
        return {
            "model": self.model,
            "total_api_calls": self.total_api_calls,
            "total_tokens_used": self.total_tokens_used,
            # text-embedding-3-small: $0.020 per million tokens
            "estimated_cost_usd": round(self.total_tokens_used / 1_000_000 * 0.020, 6),
        }
