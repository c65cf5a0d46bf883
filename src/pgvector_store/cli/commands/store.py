"""Store management and search commands."""

from typing import List, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy.exc import DBAPIError

from pgvector_store.cli.app import app
from pgvector_store.cli.commands.command_utils import run_with_cleanup
from pgvector_store.config import get_config
from pgvector_store.filter.expressions import has_any_label
from pgvector_store.repository.search_errors import (
    EmbeddingDependenciesMissingError,
    EmbeddingUnavailableError,
)
from pgvector_store.schemas.search import SearchRetrievalMode, TextSimilaritySearchRequest
from pgvector_store.store import PgVectorStore

console = Console()


def _snippet(value: Optional[str], width: int = 80) -> str:
    if not value:
        return ""
    flat = " ".join(value.split())
    return flat if len(flat) <= width else f"{flat[: width - 1]}…"


async def _provision() -> PgVectorStore:
    return await PgVectorStore.create(get_config(), provision=True)


async def _search(
    query: str,
    mode: SearchRetrievalMode,
    top_k: int,
    threshold: float,
    labels: List[str],
):
    store = await PgVectorStore.create(get_config(), provision=False)
    request = TextSimilaritySearchRequest(query=query, top_k=top_k, similarity_threshold=threshold)
    entity_filter = has_any_label(labels) if labels else None
    return await store.search(request, mode, entity_filter=entity_filter)


async def _info():
    store = await PgVectorStore.create(get_config(), provision=False)
    return await store.info()


@app.command()
def provision():
    """Create extensions, the content element table, its trigger and indexes."""
    config = get_config()
    try:
        run_with_cleanup(_provision())
    except DBAPIError as e:
        logger.error(f"Provisioning failed: {e}")
        console.print(
            f"[red]Error:[/red] provisioning {config.qualified_table} failed: {escape(str(e.orig))}"
        )
        raise typer.Exit(1)
    console.print(f"[green]Provisioned[/green] {config.qualified_table}")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    mode: SearchRetrievalMode = typer.Option(
        SearchRetrievalMode.HYBRID, "--mode", "-m", help="Retrieval strategy"
    ),
    top_k: int = typer.Option(10, "--top-k", "-k", min=1, help="Maximum number of results"),
    threshold: float = typer.Option(
        0.0, "--threshold", "-t", min=0.0, max=1.0, help="Minimum score"
    ),
    label: Optional[List[str]] = typer.Option(
        None, "--label", "-l", help="Only chunks carrying any of these labels"
    ),
):
    """Search chunks and print them ranked by score."""
    try:
        results = run_with_cleanup(_search(query, mode, top_k, threshold, label or []))
    except (EmbeddingUnavailableError, EmbeddingDependenciesMissingError) as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    if not results:
        console.print("[yellow]No results[/yellow]")
        return

    table = Table(title=f"{mode.value} search: {escape(query)}")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Id", style="cyan")
    table.add_column("Text")
    for result in results:
        table.add_row(f"{result.score:.3f}", result.match.id, escape(_snippet(result.match.text)))
    console.print(table)


@app.command()
def info():
    """Show element counts for the configured table."""
    config = get_config()
    repository_info = run_with_cleanup(_info())

    table = Table(title=f"{config.name} ({config.qualified_table})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Chunks", str(repository_info.chunk_count))
    table.add_row("Documents", str(repository_info.document_count))
    table.add_row("Content elements", str(repository_info.content_element_count))
    table.add_row("Has embeddings", "yes" if repository_info.has_embeddings else "no")
    console.print(table)
