"""CLI entry point — Typer app for fundrag commands.

Usage:
    fundrag ingest deck.txt --title "Q3 LP Update" --fund-id fund-1
    fundrag search "capital call schedule" --fund-id fund-1
    fundrag ask fund-1 "How did NAV move last quarter?"
    fundrag panel fund-1 --benchmark PME-US
    fundrag status
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

app = typer.Typer(
    name="fundrag",
    help="Fund insights RAG — ingest, search, ask, panel.",
    no_args_is_help=True,
)

console = Console()

_state: dict[str, Path | None] = {"config": None}

_INGEST_PATH = typer.Argument(..., help="Path to an extracted-text file")


def _services():
    from fundrag.app import build_services
    from fundrag.config import load_settings

    return build_services(load_settings(_state["config"]))


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/] {exc}")
    raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Settings YAML file"),
) -> None:
    """Configure logging and settings for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose)],
    )
    _state["config"] = config


@app.command()
def ingest(
    path: Annotated[Path, _INGEST_PATH],
    title: str = typer.Option(..., "--title", "-t", help="Document title"),
    document_id: str | None = typer.Option(
        None, "--document-id", help="Stable document id (re-ingest replaces)",
    ),
    fund_id: str | None = typer.Option(None, "--fund-id", "-f", help="Owning fund"),
    strategy_id: str | None = typer.Option(None, "--strategy-id", help="Owning strategy"),
    doc_type: str | None = typer.Option(None, "--doc-type", "-d", help="Document type tag"),
    as_of: str | None = typer.Option(None, "--as-of", help="As-of date (YYYY-MM-DD)"),
    chunk_size: int | None = typer.Option(None, "--chunk-size", help="Characters per chunk"),
    overlap: int | None = typer.Option(None, "--overlap", help="Characters of overlap"),
) -> None:
    """Chunk, embed and store a text file as one document."""
    from fundrag.errors import FundRagError
    from fundrag.pipeline.schemas import IngestRequest, parse_request

    body = {
        "document": {
            "id": document_id,
            "title": title,
            "fundId": fund_id,
            "strategyId": strategy_id,
            "docType": doc_type,
            "asOfDate": as_of,
            "sourceSystem": "cli",
        },
        "text": path.read_text(encoding="utf-8"),
        "chunkSize": chunk_size,
        "overlap": overlap,
    }
    try:
        request = parse_request(IngestRequest, body)
        result = _services().ingest.ingest(request)
    except FundRagError as exc:
        _fail(exc)

    console.print(f"\n[bold green]Ingested:[/] {path.name}")
    console.print(f"  Document: {result.document_id}")
    console.print(f"  Chunks: {result.chunks_inserted}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search text"),
    fund_id: str | None = typer.Option(None, "--fund-id", "-f", help="Filter by fund"),
    doc_type: list[str] | None = typer.Option(None, "--doc-type", "-d", help="Filter by type"),
    limit: int = typer.Option(10, "--limit", "-k", help="Maximum results (1-50)"),
) -> None:
    """Rank stored chunks against a query."""
    from fundrag.errors import FundRagError
    from fundrag.pipeline.schemas import SearchRequest, parse_request

    try:
        request = parse_request(
            SearchRequest,
            {"query": query, "fund_id": fund_id, "doc_types": doc_type, "limit": limit},
        )
        results = _services().query.search(request)
    except FundRagError as exc:
        _fail(exc)

    table = Table(title=f"Results for '{query}'")
    table.add_column("#", style="cyan")
    table.add_column("Similarity")
    table.add_column("Document")
    table.add_column("Excerpt")

    for i, r in enumerate(results, 1):
        table.add_row(
            str(i),
            f"{r.similarity:.3f}" if r.similarity is not None else "",
            r.document.title,
            r.text[:80].replace("\n", " "),
        )

    console.print(table)


@app.command()
def ask(
    fund_id: str = typer.Argument(..., help="Fund to ask about"),
    question: str = typer.Argument(..., help="Question to ask"),
    benchmark: list[str] | None = typer.Option(
        None, "--benchmark", "-b", help="Benchmark code to include",
    ),
) -> None:
    """Answer a question about a fund with cited sources."""
    from fundrag.errors import FundRagError
    from fundrag.pipeline.schemas import AnswerRequest, parse_request

    try:
        request = parse_request(
            AnswerRequest,
            {"fund_id": fund_id, "question": question, "benchmark_codes": benchmark},
        )
        result = _services().query.answer(request)
    except FundRagError as exc:
        _fail(exc)

    console.print(f"\n[bold]Q:[/] {question}")
    console.print(f"\n[bold green]A:[/] {result.answer.answer}")

    if result.answer.cited:
        console.print("\n---\n[bold]Sources:[/]")
        for s in result.answer.cited:
            console.print(f"- {s.marker} {s.label}")

    if result.unavailable:
        console.print(f"\n[yellow]Unavailable context:[/] {', '.join(result.unavailable)}")

    console.print(
        f"\n[dim]Model: {result.answer.model} | Context chunks: {len(result.chunks)}[/]",
    )


@app.command()
def panel(
    fund_id: str = typer.Argument(..., help="Fund to summarise"),
    benchmark: list[str] | None = typer.Option(
        None, "--benchmark", "-b", help="Benchmark code to include",
    ),
) -> None:
    """Generate the performance / risk / liquidity / changes cards."""
    from fundrag.errors import FundRagError
    from fundrag.pipeline.schemas import PanelRequest, parse_request

    try:
        request = parse_request(PanelRequest, {"fund_id": fund_id, "benchmark_codes": benchmark})
        result = _services().query.panel(request)
    except FundRagError as exc:
        _fail(exc)

    for card in result.panel.cards:
        console.print(f"\n[bold cyan]{card.type}[/] [bold]{card.title}[/]")
        console.print(card.summary)

    if result.panel.degraded:
        console.print("\n[yellow]Response was not valid card JSON; showing raw text.[/]")


@app.command()
def document(
    document_id: str = typer.Argument(..., help="Document id"),
) -> None:
    """Show a stored document and its chunk count."""
    from fundrag.errors import FundRagError

    try:
        services = _services()
        doc = services.store.get_document(document_id)
        chunks = services.store.count_chunks(document_id)
    except FundRagError as exc:
        _fail(exc)

    table = Table(title=doc.title)
    table.add_column("Field", style="cyan")
    table.add_column("Value")

    for key, value in doc.to_dict().items():
        table.add_row(key, "" if value is None else str(value))
    table.add_row("chunks", str(chunks))

    console.print(table)


@app.command("init-db")
def init_db() -> None:
    """Create the pgvector extension, tables and indexes."""
    from fundrag.config import load_settings
    from fundrag.errors import ConfigurationError, FundRagError
    from fundrag.store.factory import build_store

    settings = load_settings(_state["config"])
    try:
        store = build_store(settings.store, dimension=settings.embedding.dimension)
        init_schema = getattr(store, "init_schema", None)
        if init_schema is None:
            raise ConfigurationError(f"{store.store_name()} has no schema to initialise")
        init_schema()
    except FundRagError as exc:
        _fail(exc)

    console.print(
        f"[bold green]Schema ready[/] (vector dimension {settings.embedding.dimension})",
    )


@app.command()
def status() -> None:
    """Show system status (providers, stores, active settings)."""
    from fundrag.config import load_settings
    from fundrag.embeddings.factory import available_providers as emb_providers
    from fundrag.llm.factory import available_providers as llm_providers
    from fundrag.store.factory import available_stores

    settings = load_settings(_state["config"])

    console.print("\n[bold green]fund-insights-rag[/] v0.1.0\n")

    table = Table(title="Available Components")
    table.add_column("Layer", style="cyan")
    table.add_column("Available")
    table.add_column("Configured")

    table.add_row(
        "Embedding Providers",
        ", ".join(emb_providers()),
        f"{settings.embedding.provider} ({settings.embedding.model}, dim={settings.embedding.dimension})",
    )
    table.add_row("LLM Providers", ", ".join(llm_providers()), f"{settings.llm.provider} ({settings.llm.model})")
    table.add_row("Document Stores", ", ".join(available_stores()), settings.store.backend)
    table.add_row(
        "Chunking",
        "window",
        f"size={settings.chunking.chunk_size}, overlap={settings.chunking.overlap}",
    )

    console.print(table)


if __name__ == "__main__":
    app()
