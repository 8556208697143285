"""Command line interface for repochat."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import typer
import uvicorn
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from repochat.chat.schemas import ChatRequest
from repochat.chat.service import ChatService
from repochat.config import AppConfig, parse_repositories
from repochat.generation.ollama import OllamaGenerator
from repochat.index.indexer import Indexer
from repochat.index.retrieval import RetrievalOrchestrator
from repochat.index.search import Searcher, group_by_file
from repochat.index.storage import SQLiteChunkStore
from repochat.sources.github import GitHubSource
from repochat.web.app import app as web_app


console = Console()
app = typer.Typer(help="repochat - ask questions about GitHub repository documentation")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _load_config(db: Path | None) -> AppConfig:
    config = AppConfig.from_env()
    if db is not None:
        config.db_path = db
    return config


def _open_existing_store(config: AppConfig) -> SQLiteChunkStore:
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    return SQLiteChunkStore(resolved_db)


@app.command()
def index(
    repos: Optional[str] = typer.Option(
        None, "--repos", help="Comma separated owner/name[@branch] entries"
    ),
    reprocess: bool = typer.Option(False, "--reprocess", help="Drop stored chunks before indexing"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Index the configured GitHub repositories."""
    _setup_logging(verbose)
    config = _load_config(db)
    if repos:
        try:
            config.repositories = parse_repositories(repos)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

    if not config.repositories:
        console.print("[yellow]No repositories configured.[/yellow]")
        return

    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    store = SQLiteChunkStore(resolved_db)
    source = GitHubSource(config.github_base_url, config.github_token)
    indexer = Indexer(
        source,
        store,
        config.repositories,
        chunk_chars=config.chunk_chars,
        batch_size=config.batch_size,
        max_workers=config.max_workers,
    )

    console.print(f"Indexing into [bold]{resolved_db}[/bold]...")
    try:
        stats = indexer.index(force=reprocess)
    finally:
        source.close()
        store.close()

    if stats is None:
        console.print("[yellow]Indexing already in progress.[/yellow]")
        return
    console.print(
        f"Inserted: {stats.inserted}, updated: {stats.updated}, "
        f"skipped: {stats.skipped}, failed: {stats.failed}"
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    relaxed: bool = typer.Option(False, "--relaxed", help="Broad chunk search with synonyms"),
    top_k: int = typer.Option(10, help="Number of results to display"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Rank indexed files (or chunks, with --relaxed) against a query."""
    _setup_logging(verbose)
    store = _open_existing_store(_load_config(db))
    searcher = Searcher(store)

    table = Table(show_header=True, header_style="bold magenta")
    try:
        if relaxed:
            chunks = searcher.find_relevant_chunks_relaxed(query, top_k)
            if not chunks:
                console.print("[yellow]No matches found.[/yellow]")
                return
            table.add_column("File")
            table.add_column("Chunk")
            table.add_column("Snippet")
            for chunk in chunks:
                snippet = chunk.content.replace("\n", " ")
                table.add_row(chunk.file_path, str(chunk.chunk_index), snippet[:180])
        else:
            ranking = [item for item in searcher.rank_files(query) if item.score > 0][:top_k]
            if not ranking:
                console.print("[yellow]No matches found.[/yellow]")
                return
            table.add_column("Score")
            table.add_column("File")
            for item in ranking:
                table.add_row(f"{item.score:.2f}", item.file_path)
    finally:
        store.close()

    console.print(table)


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question about the indexed documentation"),
    normal: bool = typer.Option(False, "--normal", help="Disable fast mode and use every fallback"),
    full_content: bool = typer.Option(False, "--full-content", help="Answer from the whole best file"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Answer a question from the indexed documentation."""
    _setup_logging(verbose)
    config = _load_config(db)
    try:
        request = ChatRequest(message=question, fast_mode=not normal, full_content=full_content)
    except ValidationError as exc:
        raise typer.BadParameter(exc.errors()[0]["msg"]) from exc

    store = _open_existing_store(config)
    generator = OllamaGenerator(
        config.ollama_base_url, config.model_name, timeout=config.generator_timeout
    )
    chat = ChatService(
        RetrievalOrchestrator(Searcher(store)), generator, model_name=config.model_name, max_workers=1
    )
    try:
        response = chat.process_message(request)
    finally:
        chat.shutdown()
        generator.close()
        store.close()

    if not response.success:
        console.print(f"[red]{response.error_message}[/red]")
        raise typer.Exit(code=1)

    console.print(response.response)
    sources = ", ".join(response.source_files) or "none"
    console.print(
        f"[dim]model: {response.model_used} | sources: {sources} | {response.response_time_ms}ms[/dim]"
    )


@app.command()
def stats(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show what is stored in the chunk database."""
    config = _load_config(db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        console.print("[yellow]Database not found, nothing indexed yet.[/yellow]")
        return

    store = SQLiteChunkStore(resolved_db)
    try:
        chunks = store.find_all()
        size = store.size_on_disk_bytes()
    finally:
        store.close()

    console.print(f"Database: {resolved_db}")
    console.print(f"Files: {len(group_by_file(chunks))}, chunks: {len(chunks)}")
    console.print(f"Size on disk: {size if size >= 0 else 'unknown'} bytes")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Start the HTTP API."""
    config = _load_config(db)
    resolved_db = config.resolve_db_path(Path.cwd())
    if db is not None:
        os.environ["REPOCHAT_DB_PATH"] = str(resolved_db)
    if not resolved_db.exists():
        console.print("[yellow]Warning: database not found, it will be created on startup.[/yellow]")

    console.print(f"Starting web interface on http://{host}:{port} (database: {resolved_db})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
