"""Shared fixtures for unit tests.

Unit tests never touch a database: ``fake_session`` replaces
``db.scoped_session`` with a session that records every statement and returns
canned rows.
"""

from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest

from pgvector_store import db
from pgvector_store.config import PgVectorStoreConfig


class StubEmbeddingProvider:
    """Deterministic stub for unit tests."""

    model_name = "stub"
    dimensions = 4

    def __init__(self):
        self.queries: list[str] = []
        self.documents: list[list[str]] = []

    async def embed_query(self, text: str) -> list[float]:
        self.queries.append(text)
        return [0.1, 0.2, 0.3, 0.4]

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        self.documents.append(list(texts))
        return [[float(len(text)), 0.0, 0.0, 1.0] for text in texts]


class FakeResult:
    def __init__(self, rows: list[Any]):
        self._rows = rows

    def fetchall(self) -> list[Any]:
        return list(self._rows)

    def fetchone(self) -> Optional[Any]:
        return self._rows[0] if self._rows else None

    def scalar(self) -> Any:
        return self._rows[0] if self._rows else None

    def mappings(self) -> "FakeResult":
        return self

    def one(self) -> Any:
        assert len(self._rows) == 1
        return self._rows[0]


class RecordingSession:
    """Records (sql, params) for each execute call and returns queued rows."""

    def __init__(self):
        self.calls: list[tuple[str, Any]] = []
        self.rows: list[Any] = []

    async def execute(self, statement, params=None):
        self.calls.append((str(statement), params))
        return FakeResult(self.rows)

    @property
    def last_sql(self) -> str:
        return self.calls[-1][0]

    @property
    def last_params(self) -> Any:
        return self.calls[-1][1]


def chunk_row(
    id: str,
    text: str = "some text",
    score: float = 0.5,
    metadata: Any = None,
    labels: Optional[list[str]] = None,
    **extra: Any,
) -> SimpleNamespace:
    """A row shaped like a search query result for a chunk."""
    values = {
        "id": id,
        "uri": None,
        "text": text,
        "urtext": text,
        "title": None,
        "parent_id": None,
        "labels": labels if labels is not None else ["Chunk", "ContentElement", "Retrievable"],
        "metadata": metadata if metadata is not None else {},
        "score": score,
    }
    values.update(extra)
    return SimpleNamespace(**values)


@pytest.fixture
def config() -> PgVectorStoreConfig:
    return PgVectorStoreConfig(embedding_dimension=4)


@pytest.fixture
def stub_provider() -> StubEmbeddingProvider:
    return StubEmbeddingProvider()


@pytest.fixture
def session_maker():
    return MagicMock()


@pytest.fixture
def fake_session(monkeypatch) -> RecordingSession:
    session = RecordingSession()

    @asynccontextmanager
    async def _scoped_session(session_maker):
        yield session

    monkeypatch.setattr(db, "scoped_session", _scoped_session)
    return session


@pytest.fixture
def make_row():
    return chunk_row
