"""
Question Answering Pipeline
----------------------------
Orchestrates one question from routing to streamed answer:

    question
        |
        v
    Chitchat classifier ---(greeting / short)---> general prompt
        |
        v
    query embedding + SimilarityIndex.score_query
        |
        v
    RetrievalPolicy ---(low confidence / empty index)---> general prompt
        |
        v
    document prompt (context + literal fallback instruction)
        |
        v
    StreamController (docs mode buffers and strips, general mode relays)
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Optional

from loguru import logger

from docqa.config import Settings
from docqa.embedding.embedder import Embedder
from docqa.embedding.vector_index import ScoredChunk, SimilarityIndex
from docqa.errors import EmptyIndex
from docqa.generation.client import CompletionClient
from docqa.generation.prompts import build_docs_prompt, build_general_prompt
from docqa.ingestion.pipeline import build_index
from docqa.retrieval.chitchat import classify
from docqa.retrieval.policy import RetrievalDecision, RetrievalPolicy
from docqa.schemas import AnswerSource
from docqa.streaming.channel import EventChannel
from docqa.streaming.controller import StreamController
from docqa.streaming.session import StreamSession
from docqa.utils.helpers import truncate_text


@dataclass(frozen=True)
class AnswerPlan:
    """Routing outcome for one question; everything the controller needs."""

    question: str
    source: AnswerSource
    prompt: str
    decision: Optional[RetrievalDecision] = None
    chitchat: bool = False

    @property
    def messages(self) -> list[dict[str, str]]:
        return [{"role": "user", "content": self.prompt}]


class DocumentQA:
    """
    Shared, read-only-after-ingestion question answering service.

    Usage:
        qa = DocumentQA(settings, embedder, completions)
        await qa.ensure_index()
        plan = await qa.plan("What does the warranty cover?")
        await qa.stream_plan(plan, channel)
    """

    def __init__(
        self,
        settings: Settings,
        embedder: Embedder,
        completions: CompletionClient,
        index: Optional[SimilarityIndex] = None,
        policy: Optional[RetrievalPolicy] = None,
    ) -> None:
        self.settings = settings
        self.embedder = embedder
        self.completions = completions
        self.index = index
        self.policy = policy or RetrievalPolicy.from_settings(settings)
        self._index_lock = asyncio.Lock()

    async def ensure_index(self) -> SimilarityIndex:
        """Build the index on first use; ingestion failures propagate."""
        if self.index is not None:
            return self.index
        # Concurrent first requests share one build
        async with self._index_lock:
            if self.index is None:
                logger.info("[DocumentQA] Index not ready - loading now...")
                loop = asyncio.get_running_loop()
                index, _ = await loop.run_in_executor(None, partial(build_index, self.settings, self.embedder))
                self.index = index
        return self.index

    async def plan(self, question: str) -> AnswerPlan:
        chitchat = classify(question)
        if chitchat.is_chitchat:
            logger.info(f"[DocumentQA] Chitchat ({chitchat.reason}) - routing to general prompt")
            return AnswerPlan(
                question=question,
                source=AnswerSource.GENERAL,
                prompt=build_general_prompt(question),
                chitchat=True,
            )

        try:
            scores = await self._rank(question)
        except EmptyIndex:
            logger.info("[DocumentQA] Index is empty - no document context")
            scores = []

        logger.debug(
            f"[DocumentQA] Scores (top first): "
            f"{[round(score, 4) for _, score in scores[: max(self.policy.top_k, 5)]]}"
        )
        decision = self.policy.decide(scores)
        if decision.source is AnswerSource.DOCS:
            prompt = build_docs_prompt(question, decision.context)
        else:
            prompt = build_general_prompt(question)
        return AnswerPlan(question=question, source=decision.source, prompt=prompt, decision=decision)

    async def _rank(self, question: str) -> list[ScoredChunk]:
        index = await self.ensure_index()
        if index.is_empty:
            raise EmptyIndex("No documents ingested")
        loop = asyncio.get_running_loop()
        query_vec = await loop.run_in_executor(None, partial(self.embedder.embed_query, question))
        return index.score_query(query_vec)

    async def stream_plan(self, plan: AnswerPlan, channel: EventChannel) -> StreamSession:
        logger.info(
            f"[DocumentQA] Streaming | source={plan.source.value} | "
            f"question={truncate_text(plan.question)!r}"
        )
        controller = StreamController(plan.source, channel, self.settings.streaming)
        return await controller.run(
            partial(self.completions.open_stream, plan.messages, temperature=self.settings.temperature)
        )

    async def stream_answer(self, question: str, channel: EventChannel) -> StreamSession:
        return await self.stream_plan(await self.plan(question), channel)
