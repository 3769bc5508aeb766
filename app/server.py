"""
Document Q&A - Web API Server
------------------------------
FastAPI server that streams answers over server-sent events.

Endpoints:
  POST /ask-docs              -> docs-first answer, SSE stream
  POST /v1/chat/completions   -> raw provider passthrough, SSE stream
  GET  /api/health            -> index status and active configuration

Run from the project root:
    uvicorn app.server:app --port 5000
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Coroutine, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from loguru import logger
from pydantic import BaseModel

from docqa.config import load_settings
from docqa.embedding.embedder import Embedder
from docqa.errors import DocQAError
from docqa.generation.client import CompletionClient
from docqa.ingestion.pipeline import build_index
from docqa.serving.pipeline import DocumentQA
from docqa.streaming.channel import EventChannel
from docqa.streaming.passthrough import relay_chat_completion
from docqa.streaming.sse import SSE_HEADERS, format_error_event
from docqa.utils.helpers import truncate_text
from docqa.utils.logger import setup_logger

# ---------------------------------------------------------------------------
# Pipeline singleton
# ---------------------------------------------------------------------------

_qa: Optional[DocumentQA] = None

# Strong references to in-flight stream controllers
_stream_tasks: set[asyncio.Task] = set()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline once at startup; ingestion failure is retried lazily."""
    global _qa
    settings = load_settings()
    setup_logger(settings.log_level, settings.log_file)

    completions = CompletionClient(settings)
    embedder = Embedder(settings)
    _qa = DocumentQA(settings, embedder, completions)

    logger.info("[Server] Loading docs...")
    loop = asyncio.get_running_loop()
    try:
        _qa.index, report = await loop.run_in_executor(None, partial(build_index, settings, embedder))
        logger.info(f"[Server] Docs loaded | {report.chunks} chunks from {len(report.files)} file(s)")
    except DocQAError as exc:
        logger.error(f"[Server] Failed to load docs on startup: {exc}")

    yield

    for task in list(_stream_tasks):
        task.cancel()
    await completions.aclose()
    _qa = None
    logger.info("[Server] Pipeline unloaded.")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Document Q&A Streaming API",
    description="Docs-first question answering with streamed responses",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class AskRequest(BaseModel):
    question: Optional[str] = None


class ChatCompletionRequest(BaseModel):
    model: Optional[str] = None
    messages: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_pipeline() -> DocumentQA:
    if _qa is None:
        raise HTTPException(status_code=503, detail="Pipeline not ready")
    return _qa


def _spawn(coro: Coroutine) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _stream_tasks.add(task)
    task.add_done_callback(_stream_tasks.discard)
    return task


def _sse(body) -> StreamingResponse:
    return StreamingResponse(body, media_type="text/event-stream", headers=SSE_HEADERS)


async def _error_stream(message: str):
    yield format_error_event(message)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/api/health")
async def health():
    qa = _require_pipeline()
    return {
        "status": "ok",
        "index_ready": qa.index is not None,
        "vectors": len(qa.index) if qa.index is not None else 0,
        "model": qa.settings.model,
        "top_k": qa.settings.top_k,
    }


@app.post("/ask-docs")
async def ask_docs(request: AskRequest):
    """
    Answer a question from the ingested documents, streaming the reply.

    Routing (chitchat, retrieval, prompt) happens before the controller
    starts; a failure there is sent as a single error event with no
    [DONE].  After that the controller owns every remaining outcome.
    """
    qa = _require_pipeline()
    question = (request.question or "").strip()
    if not question:
        raise HTTPException(status_code=400, detail="Missing question")

    logger.info(f"[API] ask-docs | question={truncate_text(question)!r}")
    try:
        plan = await qa.plan(question)
    except DocQAError as exc:
        logger.error(f"[API] ask-docs failed before streaming: {exc}")
        return _sse(_error_stream(str(exc)))

    channel = EventChannel()
    _spawn(qa.stream_plan(plan, channel))
    return _sse(channel.stream())


@app.post("/v1/chat/completions")
async def chat_completions(request: ChatCompletionRequest):
    """General chat: relay the provider's stream unchanged."""
    qa = _require_pipeline()
    model = request.model or qa.settings.model
    logger.info(f"[API] General chat stream | model={model}")
    return _sse(relay_chat_completion(qa.completions, request.messages, model))
