"""pgvector-store - content element storage with vector, lexical and fuzzy retrieval on PostgreSQL."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pgvector-store")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
