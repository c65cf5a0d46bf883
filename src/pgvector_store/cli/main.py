"""Main CLI entry point for pgvector-store."""  # pragma: no cover

from pgvector_store.cli.app import app  # pragma: no cover

# Register commands
from pgvector_store.cli.commands import store  # noqa: F401  # pragma: no cover


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
