"""Fixtures for tests against a real pgvector-enabled Postgres.

A session-scoped ``pgvector/pgvector:pg16`` container is started with
testcontainers; every test gets a freshly provisioned table. Tests are
skipped when Docker is unavailable.
"""

import shutil

import pytest
import pytest_asyncio
from sqlalchemy import text
from testcontainers.postgres import PostgresContainer

from pgvector_store import db
from pgvector_store.config import PgVectorStoreConfig
from pgvector_store.db import engine_session_factory
from pgvector_store.repository.named_entity_repository import NamedEntityRepository
from pgvector_store.store import PgVectorStore


class KeywordEmbeddingProvider:
    """Embeds text as keyword presence over a tiny fixed vocabulary.

    Texts sharing vocabulary words end up close in cosine distance, which is
    enough to exercise vector and hybrid search without a model.
    """

    model_name = "keyword-stub"
    vocabulary = ("kubernetes", "container", "machine", "learning", "java", "python")
    dimensions = len(vocabulary)

    def _embed(self, text: str) -> list[float]:
        lowered = text.lower()
        vector = [1.0 if word in lowered else 0.0 for word in self.vocabulary]
        # Avoid zero vectors, which have no cosine distance
        return vector if any(vector) else [0.01] * self.dimensions

    async def embed_query(self, text: str) -> list[float]:
        return self._embed(text)

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]


def _docker_available() -> bool:
    return shutil.which("docker") is not None


@pytest.fixture(scope="session")
def pgvector_container():
    if not _docker_available():
        pytest.skip("Docker not available for Postgres testcontainer")

    with PostgresContainer("pgvector/pgvector:pg16") as pg:
        yield pg


@pytest.fixture
def store_config(pgvector_container) -> PgVectorStoreConfig:
    sync_url = pgvector_container.get_connection_url()
    async_url = sync_url.replace("postgresql+psycopg2", "postgresql+asyncpg")
    return PgVectorStoreConfig(
        database_url=async_url,
        embedding_dimension=KeywordEmbeddingProvider.dimensions,
    )


@pytest_asyncio.fixture
async def session_maker(store_config):
    async with engine_session_factory(store_config.database_url) as (engine, session_maker):
        async with db.scoped_session(session_maker) as session:
            await session.execute(text(f"DROP TABLE IF EXISTS {store_config.qualified_table}"))
        yield session_maker


@pytest_asyncio.fixture
async def store(store_config, session_maker) -> PgVectorStore:
    return await PgVectorStore.create(
        store_config, KeywordEmbeddingProvider(), session_maker=session_maker
    )


@pytest_asyncio.fixture
async def lexical_store(store_config, session_maker) -> PgVectorStore:
    """A store without an embedding provider."""
    store = PgVectorStore(session_maker, store_config)
    await store.provision()
    return store


@pytest_asyncio.fixture
async def named_entities(store_config, session_maker) -> NamedEntityRepository:
    async with db.scoped_session(session_maker) as session:
        await session.execute(
            text(f"DROP TABLE IF EXISTS {store_config.qualified_relationship_table}")
        )
        await session.execute(
            text(f"DROP TABLE IF EXISTS {store_config.qualified_named_entity_table}")
        )
    return await NamedEntityRepository.create(
        store_config, KeywordEmbeddingProvider(), session_maker=session_maker
    )
