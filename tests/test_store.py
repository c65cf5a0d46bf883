"""Tests for the PgVectorStore facade."""

from unittest.mock import AsyncMock, patch

import pytest

from pgvector_store.repository.content_element_repository import ContentElementRepository
from pgvector_store.schemas.content import Chunk, Document
from pgvector_store.schemas.search import SearchRetrievalMode, TextSimilaritySearchRequest
from pgvector_store.store import PgVectorStore


@pytest.mark.asyncio
async def test_create_provisions_by_default(session_maker, config):
    with patch.object(ContentElementRepository, "provision", new=AsyncMock()) as provision:
        store = await PgVectorStore.create(config, session_maker=session_maker)

    provision.assert_awaited_once()
    assert store.name == "pgvector-store"
    assert store.embedding_provider is None


@pytest.mark.asyncio
async def test_create_without_provisioning(session_maker, config, stub_provider):
    with patch.object(ContentElementRepository, "provision", new=AsyncMock()) as provision:
        store = await PgVectorStore.create(
            config, stub_provider, provision=False, session_maker=session_maker
        )

    provision.assert_not_awaited()
    assert store.embedding_provider is stub_provider


def test_supports_only_chunks(session_maker, config):
    store = PgVectorStore(session_maker, config)

    assert store.supports_type(Chunk)
    assert store.supports_type("Chunk")
    assert not store.supports_type(Document)


def test_syntax_notes_are_exposed(session_maker, config):
    assert "to_tsquery" in PgVectorStore(session_maker, config).lucene_syntax_notes


@pytest.mark.asyncio
async def test_write_chunks_embeds_text(session_maker, config, stub_provider):
    store = PgVectorStore(session_maker, config, stub_provider)
    store.repository.persist_chunks_with_embeddings = AsyncMock()
    chunks = [Chunk(id="c1", text="one"), Chunk(id="c2", text="three")]

    await store.write_chunks(chunks)

    assert stub_provider.documents == [["one", "three"]]
    store.repository.persist_chunks_with_embeddings.assert_awaited_once_with(
        chunks, [[3.0, 0.0, 0.0, 1.0], [5.0, 0.0, 0.0, 1.0]]
    )


@pytest.mark.asyncio
async def test_write_chunks_without_provider(session_maker, config):
    store = PgVectorStore(session_maker, config)
    store.repository.persist_chunks_with_embeddings = AsyncMock()
    chunks = [Chunk(id="c1", text="one")]

    await store.write_chunks(chunks)

    store.repository.persist_chunks_with_embeddings.assert_awaited_once_with(chunks, None)


@pytest.mark.asyncio
async def test_search_delegates_to_service(session_maker, config):
    store = PgVectorStore(session_maker, config)
    store.search_service.search = AsyncMock(return_value=[])
    request = TextSimilaritySearchRequest(query="kubernetes")

    await store.search(request, SearchRetrievalMode.TEXT)

    store.search_service.search.assert_awaited_once_with(
        request, SearchRetrievalMode.TEXT, Chunk, None, None
    )
