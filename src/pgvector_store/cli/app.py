from typing import Optional

import typer

from pgvector_store.config import get_config
from pgvector_store.logging_setup import setup_logging


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        import pgvector_store

        typer.echo(f"pgvector-store version: {pgvector_store.__version__}")
        raise typer.Exit()


app = typer.Typer(name="pgvector-store", no_args_is_help=True)


@app.callback()
def app_callback(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Log level (defaults to PGVECTOR_STORE_LOG_LEVEL)"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """pgvector-store - content storage with vector, lexical and fuzzy search on PostgreSQL."""
    setup_logging(log_level or get_config().log_level)
