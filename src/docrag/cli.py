"""Command line interface for DocRAG."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from docrag.answer import extract_heuristics
from docrag.config import AppConfig
from docrag.embedding.encoder import EmbeddingModel
from docrag.errors import DocRagError
from docrag.index.storage import SQLiteIndexStore
from docrag.service import RagService

console = Console()
app = typer.Typer(help="DocRAG - local retrieval over your documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _config(db: Optional[Path], model: Optional[str] = None, **overrides) -> AppConfig:
    defaults = AppConfig()
    return AppConfig(
        db_path=db if db is not None else defaults.db_path,
        model_name=model or defaults.model_name,
        **overrides,
    )


def _open_service(config: AppConfig) -> RagService:
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)
    try:
        store = SQLiteIndexStore(resolved_db)
    except DocRagError as exc:
        _fail(exc)
    embedder = EmbeddingModel(config.embedding_config())
    return RagService(store, embedder, config=config)


def _require_index(config: AppConfig) -> None:
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Index not found: {resolved_db}")


def _fail(exc: DocRagError) -> NoReturn:
    console.print(f"[red]Error:[/red] {exc}")
    raise typer.Exit(code=1)


@app.command()
def index(
    inputs: List[Path] = typer.Argument(
        ..., help="Files to index (PDF, DOCX or text).", exists=True, dir_okay=False
    ),
    doc_id: Optional[str] = typer.Option(
        None, "--doc-id", help="Document id (single file only; defaults to the file stem)"
    ),
    db: Path = typer.Option(None, "--db", help="SQLite index path"),
    model: str = typer.Option(AppConfig().model_name, help="Sentence-transformer model name"),
    chunk_chars: int = typer.Option(AppConfig().chunk_chars, help="Chunk size in characters"),
    overlap: int = typer.Option(AppConfig().overlap, help="Chunk overlap"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Index files, replacing any previous index of the same document id."""
    _setup_logging(verbose)
    if doc_id is not None and len(inputs) > 1:
        raise typer.BadParameter("--doc-id can only be used with a single file")

    try:
        config = _config(db, model, chunk_chars=chunk_chars, overlap=overlap)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    service = _open_service(config)
    console.print(f"Indexing into [bold]{service.store.db_path}[/bold]...")

    async def run() -> None:
        for path in inputs:
            document_id = doc_id or path.stem
            result = await service.reindex_document(document_id, path.read_bytes(), path.name)
            note = " [yellow](truncated)[/yellow]" if result.truncated else ""
            if result.degraded:
                note += " [yellow](partial text)[/yellow]"
            console.print(f"{document_id}: {result.chunk_count} chunks{note}")

    try:
        asyncio.run(run())
    except DocRagError as exc:
        _fail(exc)
    finally:
        service.store.close()


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    db: Path = typer.Option(None, "--db", help="SQLite index path"),
    model: str = typer.Option(AppConfig().model_name, help="Sentence-transformer model name"),
    top_k: int = typer.Option(AppConfig().top_k, help="Number of results to display"),
    doc_id: Optional[str] = typer.Option(None, "--doc-id", help="Restrict to one document"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show the best-matching chunks for a query."""
    _setup_logging(verbose)
    config = _config(db, model)
    _require_index(config)
    service = _open_service(config)
    try:
        results = asyncio.run(service.retrieve(query, top_k=top_k, document_id=doc_id))
    except DocRagError as exc:
        _fail(exc)
    finally:
        service.store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Document")
    table.add_column("Range")
    table.add_column("Snippet")

    for result in results:
        chunk = result.chunk
        table.add_row(
            f"{result.score:.4f}", chunk.document_id, f"{chunk.start}-{chunk.end}", chunk.text[:180]
        )

    console.print(table)


@app.command()
def ask(
    query: str = typer.Argument(..., help="Question about the indexed documents"),
    db: Path = typer.Option(None, "--db", help="SQLite index path"),
    model: str = typer.Option(AppConfig().model_name, help="Sentence-transformer model name"),
    top_k: int = typer.Option(AppConfig().top_k, help="Passages to retrieve"),
    doc_id: Optional[str] = typer.Option(None, "--doc-id", help="Restrict to one document"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Answer a question from the indexed documents."""
    _setup_logging(verbose)
    config = _config(db, model)
    _require_index(config)
    service = _open_service(config)
    try:
        answer = asyncio.run(service.ask(query, top_k=top_k, document_id=doc_id))
    except DocRagError as exc:
        _fail(exc)
    finally:
        service.store.close()

    console.print(answer.answer)
    for source in answer.sources:
        start, end = source.range
        console.print(f"[dim]- {source.document_id} [{start}, {end})[/dim]")


@app.command()
def delete(
    doc_id: str = typer.Argument(..., help="Document id"),
    db: Path = typer.Option(None, "--db", help="SQLite index path"),
) -> None:
    """Remove a document's chunks, vectors and metadata."""
    config = _config(db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Index not found, nothing to delete.[/yellow]")
        return
    try:
        with SQLiteIndexStore(resolved_db) as store:
            removed = store.delete_document(doc_id)
    except DocRagError as exc:
        _fail(exc)
    console.print(f"Removed {removed} chunks of {doc_id}.")


@app.command()
def chunks(
    doc_id: str = typer.Argument(..., help="Document id"),
    db: Path = typer.Option(None, "--db", help="SQLite index path"),
) -> None:
    """List the stored chunks of a document."""
    resolved_db = _config(db).resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Index not found.[/yellow]")
        return
    try:
        with SQLiteIndexStore(resolved_db) as store:
            records = store.list_chunks(doc_id)
    except DocRagError as exc:
        _fail(exc)
    if not records:
        console.print(f"[yellow]No chunks stored for {doc_id}.[/yellow]")
        return
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Range")
    table.add_column("Text")
    for chunk in records:
        table.add_row(f"{chunk.start}-{chunk.end}", chunk.text[:120])
    console.print(table)


@app.command()
def info(
    doc_id: str = typer.Argument(..., help="Document id"),
    db: Path = typer.Option(None, "--db", help="SQLite index path"),
) -> None:
    """Show stored metadata and title/author/year guesses for a document."""
    resolved_db = _config(db).resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Index not found.[/yellow]")
        return
    try:
        with SQLiteIndexStore(resolved_db) as store:
            meta = store.get_document_meta(doc_id) or {}
            chunk_count = len(store.list_chunks(doc_id))
            facts = extract_heuristics(store, doc_id)
    except DocRagError as exc:
        _fail(exc)
    if not meta and not chunk_count:
        console.print(f"[yellow]Unknown document {doc_id}.[/yellow]")
        return
    console.print(f"[bold]{doc_id}[/bold] ({chunk_count} chunks)")
    for key, value in {**meta, **facts}.items():
        console.print(f"{key}: {value}")


@app.command()
def documents(
    db: Path = typer.Option(None, "--db", help="SQLite index path"),
) -> None:
    """List indexed documents."""
    resolved_db = _config(db).resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Index not found.[/yellow]")
        return
    try:
        with SQLiteIndexStore(resolved_db) as store:
            rows = store.list_documents()
    except DocRagError as exc:
        _fail(exc)
    if not rows:
        console.print("[yellow]No documents indexed.[/yellow]")
        return
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Document")
    table.add_column("Chunks")
    for row in rows:
        table.add_row(row["document_id"], str(row["chunk_count"]))
    console.print(table)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite index path"),
) -> None:
    """Start the HTTP API."""
    import uvicorn

    from docrag.web.app import app as web_app, configure

    config = _config(db)
    configure(config)
    console.print(
        f"Starting web interface on http://{host}:{port} (index: {config.resolve_db_path(Path.cwd())})"
    )
    uvicorn.run(web_app, host=host, port=port, reload=False, log_level="info")
