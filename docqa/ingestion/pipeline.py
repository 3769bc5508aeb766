"""
Ingestion Pipeline - Load, Chunk, Embed, Index
------------------------------------------------
Reads the corpus directory, cuts the concatenated text into fixed
windows, embeds every window with one provider call each, and returns a
populated in-memory SimilarityIndex.

Any EmbeddingFailure aborts the whole build: a half-embedded index is
never returned.  The caller decides on a fallback.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from docqa.chunking.chunker import split_chunks
from docqa.config import Settings
from docqa.embedding.embedder import Embedder
from docqa.embedding.vector_index import SimilarityIndex
from docqa.ingestion.loaders import load_corpus_text
from docqa.utils.helpers import truncate_text


@dataclass
class IngestReport:
    """Summary of one index build."""

    docs_dir: str
    files: list[str] = field(default_factory=list)
    chars: int = 0
    chunks: int = 0
    dimensions: int = 0
    usage: dict = field(default_factory=dict)


def build_index(
    settings: Settings,
    embedder: Embedder,
    console: Console | None = None,
) -> tuple[SimilarityIndex, IngestReport]:
    """
    Build the similarity index from settings.docs_dir.

    Args:
        settings: Immutable service settings.
        embedder: Embedding client (one call per chunk).
        console: When given, a rich progress bar is rendered on it.

    Returns:
        (index, report).  An empty or missing corpus yields an empty index.
    """
    logger.info(f"[Ingest] Loading documents from {settings.docs_dir}")
    text, files = load_corpus_text(settings.docs_dir)
    chunks = split_chunks(text, settings.chunk_size)
    report = IngestReport(docs_dir=settings.docs_dir, files=files, chars=len(text), chunks=len(chunks))

    logger.info(f"[Ingest] {len(chunks)} chunks from {len(files)} file(s)")
    if chunks:
        logger.debug(f"[Ingest] First chunk: {truncate_text(chunks[0].text, 200)!r}")

    index = SimilarityIndex()
    if not chunks:
        return index, report

    embeddings: list[list[float]] = []
    if console is None:
        for chunk in chunks:
            embeddings.append(embedder.embed_text(chunk.text))
    else:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"[cyan]Embedding {len(chunks)} chunks...[/cyan]", total=len(chunks))
            for chunk in chunks:
                embeddings.append(embedder.embed_text(chunk.text))
                progress.advance(task)

    index.add(embeddings, chunks)
    report.dimensions = index.dimensions
    report.usage = embedder.usage_summary()
    logger.info(
        f"[Ingest] Index ready | {len(index)} vectors | dims={index.dimensions} | "
        f"tokens={report.usage['total_tokens_used']}"
    )
    return index, report
