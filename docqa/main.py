"""
Document Q&A - CLI Entry Point
-------------------------------
Exposes Typer commands for serving and local inspection.

Usage:
    python -m docqa.main serve                  # Start the SSE API server
    python -m docqa.main ingest                 # Build the index and show a summary
    python -m docqa.main ask "What is covered?" # Stream one answer to the terminal
    python -m docqa.main classify "hello"       # Show chitchat routing
"""
from __future__ import annotations

import asyncio
from typing import Optional

import orjson
import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from docqa.config import Settings, load_settings
from docqa.embedding.embedder import Embedder
from docqa.errors import DocQAError
from docqa.generation.client import CompletionClient
from docqa.ingestion.pipeline import build_index
from docqa.retrieval.chitchat import classify as classify_question
from docqa.serving.pipeline import DocumentQA
from docqa.streaming.channel import EventChannel
from docqa.streaming.sse import DONE_MARKER, parse_data_line
from docqa.utils.logger import setup_logger

app = typer.Typer(
    name="docqa",
    help="Document Q&A with streamed answers",
    add_completion=False,
)
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to config YAML")


def _settings(config: Optional[str]) -> Settings:
    try:
        settings = load_settings(config)
    except DocQAError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    # Console logging only; the server lifespan adds the file sink
    setup_logger(settings.log_level, None)
    return settings


# --- Commands -----------------------------------------------------------------

@app.command()
def serve(
    config: Optional[str] = ConfigOption,
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
) -> None:
    """Start the FastAPI server (settings are re-read by the app lifespan)."""
    import uvicorn

    settings = _settings(config)
    uvicorn.run(
        "app.server:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


@app.command()
def ingest(config: Optional[str] = ConfigOption) -> None:
    """Load, chunk and embed the corpus; nothing is persisted."""
    settings = _settings(config)
    embedder = Embedder(settings)
    try:
        index, report = build_index(settings, embedder, console=console)
    except DocQAError as exc:
        console.print(f"[red]Ingestion failed:[/red] {exc}")
        raise typer.Exit(1)

    table = Table("Field", "Value", box=box.SIMPLE, show_header=False)
    table.add_row("Docs dir", report.docs_dir)
    table.add_row("Files", ", ".join(report.files) or "-")
    table.add_row("Characters", f"{report.chars:,}")
    table.add_row("Chunks", f"{report.chunks:,}")
    table.add_row("Vectors", f"{len(index):,}")
    table.add_row("Dimensions", str(report.dimensions))
    if report.usage:
        table.add_row("Tokens", f"{report.usage['total_tokens_used']:,}")
        table.add_row("Est. cost", f"${report.usage['estimated_cost_usd']:.5f}")
    console.print(Panel(table, title="[bold green]Ingestion[/bold green]", expand=False))


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to answer"),
    config: Optional[str] = ConfigOption,
) -> None:
    """Answer one question, streaming the reply as it arrives."""
    settings = _settings(config)
    try:
        asyncio.run(_ask_async(settings, question))
    except DocQAError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)


@app.command()
def classify(question: str = typer.Argument(..., help="Message to classify")) -> None:
    """Show whether a message bypasses retrieval as chitchat."""
    result = classify_question(question)
    verdict = "[yellow]chitchat[/yellow]" if result.is_chitchat else "[green]question[/green]"
    reason = f" ({result.reason})" if result.reason else ""
    console.print(f"{verdict}{reason}")


# --- Async helpers ------------------------------------------------------------

async def _ask_async(settings: Settings, question: str) -> None:
    completions = CompletionClient(settings)
    qa = DocumentQA(settings, Embedder(settings), completions)
    try:
        with console.status("[cyan]Routing question...[/cyan]"):
            plan = await qa.plan(question)
        console.print(f"[dim]source={plan.source.value}[/dim]")

        channel = EventChannel()
        task = asyncio.create_task(qa.stream_plan(plan, channel))
        async for event in channel.stream():
            payload = parse_data_line(event)
            if payload is None or payload == DONE_MARKER:
                continue
            data = orjson.loads(payload)
            if "error" in data:
                console.print(f"\n[red]{data['error']}[/red]")
            else:
                console.print(data["content"], end="", markup=False, highlight=False)
        await task
        console.print()
    finally:
        await completions.aclose()


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
