"""CLI commands for pgvector-store."""

from pgvector_store.cli.commands import store

__all__ = ["store"]
