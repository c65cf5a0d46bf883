"""Public entry point: a content element store with vector, lexical and fuzzy search."""

from typing import Optional, Sequence

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgvector_store import db
from pgvector_store.config import PgVectorStoreConfig, get_config
from pgvector_store.filter.expressions import EntityFilter, PropertyFilter
from pgvector_store.repository.content_element_repository import ContentElementRepository
from pgvector_store.repository.embedding_provider import EmbeddingProvider, embed_chunks
from pgvector_store.repository.embedding_provider_factory import create_embedding_provider
from pgvector_store.repository.sql_fragment import SqlFragment
from pgvector_store.repository.tsquery import LUCENE_SYNTAX_NOTES
from pgvector_store.schemas.content import (
    Chunk,
    ContentElement,
    ContentElementRepositoryInfo,
    Document,
    DocumentDeletionResult,
)
from pgvector_store.schemas.search import (
    SearchRetrievalMode,
    SimilarityResult,
    TextSimilaritySearchRequest,
)
from pgvector_store.services.search_service import EntityType, SearchService


class PgVectorStore:
    """Content element store backed by PostgreSQL with pgvector and pg_trgm.

    Only chunks are searched. Vector and hybrid search need an embedding
    provider; lexical and fuzzy search work without one.

    Example::

        store = await PgVectorStore.create(config, provider)
        await store.write_chunks(chunks)
        results = await store.search(TextSimilaritySearchRequest(query="kubernetes"))
    """

    lucene_syntax_notes = LUCENE_SYNTAX_NOTES

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        config: PgVectorStoreConfig,
        embedding_provider: Optional[EmbeddingProvider] = None,
    ):
        self.config = config
        self.embedding_provider = embedding_provider
        self.repository = ContentElementRepository(session_maker, config)
        self.search_service = SearchService(session_maker, config, embedding_provider)

    @classmethod
    async def create(
        cls,
        config: Optional[PgVectorStoreConfig] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        *,
        provision: bool = True,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> "PgVectorStore":
        """Build a store, provisioning its schema unless told not to.

        Without an explicit provider, the one named in config is used (if any).
        """
        config = config or get_config()
        if session_maker is None:
            _, session_maker = db.get_or_create_db(config)
        if embedding_provider is None:
            embedding_provider = create_embedding_provider(config)

        store = cls(session_maker, config, embedding_provider)
        if provision:
            await store.provision()
        logger.info(
            f"Created store {config.name} on {config.qualified_table} "
            f"(embeddings: {embedding_provider.model_name if embedding_provider else 'disabled'})"
        )
        return store

    @property
    def name(self) -> str:
        return self.config.name

    def supports_type(self, entity_type: EntityType) -> bool:
        return entity_type is Chunk or entity_type == "Chunk"

    async def provision(self) -> None:
        await self.repository.provision()

    # Writes

    async def save(
        self, element: ContentElement, embedding: Optional[Sequence[float]] = None
    ) -> ContentElement:
        return await self.repository.save(element, embedding)

    async def write_chunks(self, chunks: Sequence[Chunk]) -> None:
        """Embed chunk text (when a provider is configured) and persist the chunks."""
        embeddings = None
        if self.embedding_provider is not None and chunks:
            model_name = self.embedding_provider.model_name
            logger.debug(f"Embedding {len(chunks)} chunks with {model_name}")
            embeddings = await embed_chunks(
                self.embedding_provider, chunks, self.config.embedding_dimension
            )
        await self.repository.persist_chunks_with_embeddings(chunks, embeddings)

    async def delete_root_and_descendants(self, uri: str) -> Optional[DocumentDeletionResult]:
        return await self.repository.delete_root_and_descendants(uri)

    # Lookups

    async def find_by_id(self, element_id: str) -> Optional[ContentElement]:
        return await self.repository.find_by_id(element_id)

    async def find_all_chunks_by_id(self, ids: Sequence[str]) -> list[Chunk]:
        return await self.repository.find_all_chunks_by_id(ids)

    async def find_content_root_by_uri(self, uri: str) -> Optional[Document]:
        return await self.repository.find_content_root_by_uri(uri)

    async def exists_root_with_uri(self, uri: str) -> bool:
        return await self.repository.exists_root_with_uri(uri)

    async def info(self) -> ContentElementRepositoryInfo:
        return await self.repository.info()

    # Search

    async def search(
        self,
        request: TextSimilaritySearchRequest,
        mode: SearchRetrievalMode = SearchRetrievalMode.HYBRID,
        entity_type: EntityType = Chunk,
        property_filter: Optional[PropertyFilter] = None,
        entity_filter: Optional[EntityFilter] = None,
    ) -> list[SimilarityResult[Chunk]]:
        return await self.search_service.search(
            request, mode, entity_type, property_filter, entity_filter
        )

    async def vector_search(self, request, entity_type: EntityType = Chunk):
        return await self.search_service.vector_search(request, entity_type)

    async def text_search(self, request, entity_type: EntityType = Chunk):
        return await self.search_service.text_search(request, entity_type)

    async def fuzzy_search(self, request, entity_type: EntityType = Chunk):
        return await self.search_service.fuzzy_search(request, entity_type)

    async def hybrid_search(self, request, entity_type: EntityType = Chunk):
        return await self.search_service.hybrid_search(request, entity_type)

    async def vector_search_with_filter(
        self, request, predicate: SqlFragment, entity_type: EntityType = Chunk
    ):
        return await self.search_service.vector_search_with_filter(request, predicate, entity_type)

    async def text_search_with_filter(
        self, request, predicate: SqlFragment, entity_type: EntityType = Chunk
    ):
        return await self.search_service.text_search_with_filter(request, predicate, entity_type)
