"""Strategy selection and fallback for chunk searches."""

from typing import Optional, Union

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgvector_store.config import PgVectorStoreConfig
from pgvector_store.filter.expressions import EntityFilter, PropertyFilter
from pgvector_store.repository.embedding_provider import EmbeddingProvider
from pgvector_store.repository.search_errors import (
    EmbeddingUnavailableError,
    UnsupportedEntityTypeError,
)
from pgvector_store.repository.search_strategies import STRATEGY_TYPES, SearchStrategy
from pgvector_store.repository.sql_filter_converter import SqlFilterConverter
from pgvector_store.repository.sql_fragment import EMPTY, SqlFragment
from pgvector_store.schemas.content import CHUNK_LABEL, ENTITY_TYPES, Chunk, ContentElement
from pgvector_store.schemas.search import (
    SearchRetrievalMode,
    SimilarityResult,
    TextSimilaritySearchRequest,
)

EntityType = Union[type[ContentElement], str]

# Strategies tried in order until one returns results
FALLBACK_CHAINS: dict[SearchRetrievalMode, tuple[SearchRetrievalMode, ...]] = {
    SearchRetrievalMode.VECTOR: (SearchRetrievalMode.VECTOR,),
    SearchRetrievalMode.TEXT: (SearchRetrievalMode.TEXT,),
    SearchRetrievalMode.FUZZY: (SearchRetrievalMode.FUZZY,),
    SearchRetrievalMode.HYBRID: (SearchRetrievalMode.HYBRID, SearchRetrievalMode.FUZZY),
}

EMBEDDING_MODES = frozenset({SearchRetrievalMode.VECTOR, SearchRetrievalMode.HYBRID})


def _entity_type_name(entity_type: EntityType) -> str:
    return entity_type if isinstance(entity_type, str) else entity_type.__name__


def _resolve_entity_type(entity_type: EntityType) -> Optional[type[ContentElement]]:
    """Look up a label name, or pass an entity class through."""
    if isinstance(entity_type, str):
        return ENTITY_TYPES.get(entity_type)
    return entity_type


class SearchService:
    """Runs chunk searches, walking the fallback chain for the requested mode.

    Hybrid search that finds nothing re-runs the same request as a fuzzy
    search. Every other mode runs exactly one strategy.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        config: PgVectorStoreConfig,
        embedding_provider: Optional[EmbeddingProvider] = None,
        filter_converter: Optional[SqlFilterConverter] = None,
    ):
        self.config = config
        self.embedding_provider = embedding_provider
        self.filter_converter = filter_converter or SqlFilterConverter()
        self.strategies: dict[SearchRetrievalMode, SearchStrategy] = {
            mode: strategy_type(session_maker, config, embedding_provider)
            for mode, strategy_type in STRATEGY_TYPES.items()
        }

    def _check_preconditions(self, mode: SearchRetrievalMode, entity_type: EntityType) -> None:
        requested = _entity_type_name(entity_type)
        if _resolve_entity_type(entity_type) is not Chunk:
            raise UnsupportedEntityTypeError(f"{mode.value} search", requested, CHUNK_LABEL)
        if mode in EMBEDDING_MODES and self.embedding_provider is None:
            raise EmbeddingUnavailableError(mode.value, requested)

    async def run(
        self,
        request: TextSimilaritySearchRequest,
        mode: SearchRetrievalMode,
        predicate: SqlFragment = EMPTY,
        entity_type: EntityType = Chunk,
    ) -> list[SimilarityResult[Chunk]]:
        """Run the fallback chain for mode with an already compiled predicate."""
        self._check_preconditions(mode, entity_type)

        chain = FALLBACK_CHAINS[mode]
        results: list[SimilarityResult[Chunk]] = []
        for step, strategy_mode in enumerate(chain):
            logger.debug(f"Running {strategy_mode.value} search for {request.query!r}")
            results = await self.strategies[strategy_mode].search(request, predicate)
            if results:
                break
            if step + 1 < len(chain):
                logger.debug(
                    f"{strategy_mode.value} search found nothing, "
                    f"falling back to {chain[step + 1].value}"
                )
        return results

    async def search(
        self,
        request: TextSimilaritySearchRequest,
        mode: SearchRetrievalMode = SearchRetrievalMode.HYBRID,
        entity_type: EntityType = Chunk,
        property_filter: Optional[PropertyFilter] = None,
        entity_filter: Optional[EntityFilter] = None,
    ) -> list[SimilarityResult[Chunk]]:
        """Search with optional metadata and label filters."""
        self._check_preconditions(mode, entity_type)
        predicate = self.filter_converter.combine_filters(property_filter, entity_filter)
        return await self.run(request, mode, predicate, entity_type)

    async def vector_search(
        self, request: TextSimilaritySearchRequest, entity_type: EntityType = Chunk
    ) -> list[SimilarityResult[Chunk]]:
        return await self.run(request, SearchRetrievalMode.VECTOR, entity_type=entity_type)

    async def text_search(
        self, request: TextSimilaritySearchRequest, entity_type: EntityType = Chunk
    ) -> list[SimilarityResult[Chunk]]:
        return await self.run(request, SearchRetrievalMode.TEXT, entity_type=entity_type)

    async def fuzzy_search(
        self, request: TextSimilaritySearchRequest, entity_type: EntityType = Chunk
    ) -> list[SimilarityResult[Chunk]]:
        return await self.run(request, SearchRetrievalMode.FUZZY, entity_type=entity_type)

    async def hybrid_search(
        self, request: TextSimilaritySearchRequest, entity_type: EntityType = Chunk
    ) -> list[SimilarityResult[Chunk]]:
        return await self.run(request, SearchRetrievalMode.HYBRID, entity_type=entity_type)

    async def vector_search_with_filter(
        self,
        request: TextSimilaritySearchRequest,
        predicate: SqlFragment,
        entity_type: EntityType = Chunk,
    ) -> list[SimilarityResult[Chunk]]:
        return await self.run(request, SearchRetrievalMode.VECTOR, predicate, entity_type)

    async def text_search_with_filter(
        self,
        request: TextSimilaritySearchRequest,
        predicate: SqlFragment,
        entity_type: EntityType = Chunk,
    ) -> list[SimilarityResult[Chunk]]:
        return await self.run(request, SearchRetrievalMode.TEXT, predicate, entity_type)
