"""Command line interface for hads."""

from __future__ import annotations

import logging
import threading
import webbrowser
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from hads import __version__
from hads.config import AppConfig
from hads.index.indexer import SearchIndex
from hads.store import DocumentStore
from hads.web.app import create_app

console = Console()
app = typer.Typer(help="hads - browse, search and edit a folder of documents")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _open_index(root: Path) -> SearchIndex:
    resolved_root = AppConfig(root=root).resolve_root(Path.cwd())
    if not resolved_root.is_dir():
        raise typer.BadParameter(f"Not a directory: {resolved_root}")
    return SearchIndex(DocumentStore(resolved_root))


@app.command()
def serve(
    root: Path = typer.Argument(Path("."), help="Root folder of the documents to serve."),
    host: str = typer.Option(AppConfig().host, "--host", "-h", help="Host address to bind to"),
    port: int = typer.Option(AppConfig().port, "--port", "-p", help="Port number to listen on"),
    open_browser: bool = typer.Option(False, "--open", "-o", help="Open default browser on start"),
    no_index: bool = typer.Option(False, "--no-index", help="Skip the startup search index build"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Serve a folder of documents over HTTP."""
    import uvicorn

    _setup_logging(verbose)
    config = AppConfig(
        root=root,
        host=host,
        port=port,
        open_browser=open_browser,
        index_on_startup=not no_index,
    )
    resolved_root = config.resolve_root(Path.cwd())
    if not resolved_root.is_dir():
        raise typer.BadParameter(f"Not a directory: {resolved_root}")

    web_app = create_app(config)
    console.print(
        f"hads {__version__} serving [bold]{resolved_root}[/bold] at "
        f"{config.server_url} (press CTRL+C to exit)"
    )
    if config.open_browser:
        threading.Timer(1.0, webbrowser.open, args=(config.server_url,)).start()

    uvicorn.run(
        web_app,
        host=config.host,
        port=config.port,
        reload=False,
        log_level="debug" if verbose else "info",
    )


@app.command()
def index(
    root: Path = typer.Argument(Path("."), help="Root folder of the documents to index."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Build the search index once and report what was indexed."""
    _setup_logging(verbose)
    search_index = _open_index(root)

    console.print(f"Indexing [bold]{search_index.store.root}[/bold]...")
    stats = search_index.build()
    console.print(
        f"Indexed: {stats.indexed}, skipped: {stats.skipped}, failed: {stats.failed}"
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    root: Path = typer.Argument(Path("."), help="Root folder of the documents to search."),
    limit: int = typer.Option(10, help="Number of results to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Search the documents under a folder."""
    _setup_logging(verbose)
    search_index = _open_index(root)
    search_index.build()

    results = search_index.search(query, limit=max(limit, 1))
    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Document")
    table.add_column("Title")
    table.add_column("Snippet")

    for result in results:
        table.add_row(f"{result.score:.3f}", result.route, result.title, result.excerpt[:180])

    console.print(table)
