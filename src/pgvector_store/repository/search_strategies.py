"""Ranked retrieval strategies over the content element table.

Each strategy issues exactly one query and returns chunks with a score on the
0-1 scale, where 1.0 is a perfect match:

- vector: ``1 - cosine distance``
- lexical: ``rank / (rank + k)`` over ``ts_rank``, k = ``lexical_rank_saturation``
- fuzzy: best trigram similarity between the query and any token of the text
- hybrid: ``vector_weight * vector + fts_weight * lexical`` over lexical matches

Scores are clamped to [0, 1] in SQL and again when rows are mapped.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgvector_store import db
from pgvector_store.config import PgVectorStoreConfig
from pgvector_store.repository.content_element_repository import (
    ELEMENT_COLUMNS,
    format_pgvector_literal,
    row_to_element,
)
from pgvector_store.repository.embedding_provider import EmbeddingProvider
from pgvector_store.repository.search_errors import EmbeddingUnavailableError
from pgvector_store.repository.sql_fragment import EMPTY, SqlFragment
from pgvector_store.repository.tsquery import prepare_query
from pgvector_store.schemas.content import CHUNK_LABEL, Chunk
from pgvector_store.schemas.search import (
    SearchRetrievalMode,
    SimilarityResult,
    TextSimilaritySearchRequest,
)

# Lexical score on the 0-1 scale, shared by every path that ranks lexically
LEXICAL_SCORE_SQL = "(ts_rank(tsv, tsq) / (ts_rank(tsv, tsq) + :lexical_k))"

VECTOR_SIMILARITY_SQL = (
    "GREATEST(0.0, LEAST(1.0, 1.0 - (embedding <=> CAST(:query_embedding AS vector))))"
)


def clamp_score(value: Any) -> float:
    return min(1.0, max(0.0, float(value or 0.0)))


def chunk_restriction(predicate: SqlFragment = EMPTY) -> SqlFragment:
    """Scope a query to chunks, conjoined with an optional compiled filter."""
    return SqlFragment(":entity_label = ANY(labels)", {"entity_label": CHUNK_LABEL}).and_(
        predicate
    )


class SearchStrategy(ABC):
    """One ranked retrieval algorithm over chunks."""

    mode: SearchRetrievalMode

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        config: PgVectorStoreConfig,
        embedding_provider: Optional[EmbeddingProvider] = None,
    ):
        self.session_maker = session_maker
        self.config = config
        self.embedding_provider = embedding_provider
        self.table = config.qualified_table

    def effective_threshold(self, request: TextSimilaritySearchRequest) -> float:
        return request.similarity_threshold

    @abstractmethod
    async def build_query(
        self, request: TextSimilaritySearchRequest, restriction: SqlFragment
    ) -> tuple[str, dict[str, Any]]:
        """Return the SQL text and its bound parameters."""

    async def search(
        self,
        request: TextSimilaritySearchRequest,
        predicate: SqlFragment = EMPTY,
    ) -> list[SimilarityResult[Chunk]]:
        sql, params = await self.build_query(request, chunk_restriction(predicate))
        logger.trace(f"{self.mode.value} search SQL: {sql} params: {params}")

        try:
            async with db.scoped_session(self.session_maker) as session:
                result = await session.execute(text(sql), params)
                rows = result.fetchall()
        except Exception as exc:
            logger.error(f"{self.mode.value} search failed: {exc}")
            raise

        return self.to_results(rows, self.effective_threshold(request))

    def to_results(self, rows: Sequence[Any], threshold: float) -> list[SimilarityResult[Chunk]]:
        """Map ranked rows to results, dropping any below the threshold."""
        results = [
            SimilarityResult(match=row_to_element(row), score=clamp_score(row.score))
            for row in rows
        ]
        kept = [result for result in results if result.score >= threshold]
        kept.sort(key=lambda result: result.score, reverse=True)
        logger.debug(
            f"{self.mode.value} search kept {len(kept)} of {len(results)} results "
            f"at threshold {threshold}"
        )
        return kept  # type: ignore[return-value]

    async def embed_query(self, request: TextSimilaritySearchRequest) -> str:
        if self.embedding_provider is None:
            raise EmbeddingUnavailableError(self.mode.value, CHUNK_LABEL)
        embedding = await self.embedding_provider.embed_query(request.query.strip())
        return format_pgvector_literal(embedding)


class VectorSearchStrategy(SearchStrategy):
    """Nearest neighbours by cosine distance.

    Caller thresholds above ``vector_similarity_ceiling`` are lowered to the
    ceiling, since raw cosine similarities between a short query and a chunk
    rarely come close to 1.
    """

    mode = SearchRetrievalMode.VECTOR

    def effective_threshold(self, request: TextSimilaritySearchRequest) -> float:
        return min(request.similarity_threshold, self.config.vector_similarity_ceiling)

    async def build_query(self, request, restriction):
        query_embedding = await self.embed_query(request)
        where = restriction.append_to("embedding IS NOT NULL")
        sql = f"""
            SELECT {ELEMENT_COLUMNS}, {VECTOR_SIMILARITY_SQL} AS score
            FROM {self.table}
            WHERE {where}
            ORDER BY embedding <=> CAST(:query_embedding AS vector)
            LIMIT :top_k
        """
        return sql, restriction.bind(query_embedding=query_embedding, top_k=request.top_k)


class LexicalSearchStrategy(SearchStrategy):
    """Full-text search ranked by ts_rank."""

    mode = SearchRetrievalMode.TEXT

    async def build_query(self, request, restriction):
        prepared = prepare_query(request.query)
        where = restriction.append_to("tsv @@ tsq")
        sql = f"""
            SELECT {ELEMENT_COLUMNS}, {LEXICAL_SCORE_SQL} AS score
            FROM {self.table}, {prepared.sql()} AS tsq
            WHERE {where}
            ORDER BY score DESC, id
            LIMIT :top_k
        """
        return sql, restriction.bind(
            query=prepared.text,
            lexical_k=self.config.lexical_rank_saturation,
            top_k=request.top_k,
        )


class FuzzySearchStrategy(SearchStrategy):
    """Trigram similarity against individual tokens of the chunk text.

    A chunk scores the best similarity of any of its tokens, which tolerates
    misspellings that full-text search cannot. Results are gated by the
    store's ``fuzzy_threshold`` rather than the caller's threshold.
    """

    mode = SearchRetrievalMode.FUZZY

    def effective_threshold(self, request: TextSimilaritySearchRequest) -> float:
        return self.config.fuzzy_threshold

    async def build_query(self, request, restriction):
        where = restriction.append_to("fuzzy.score >= :fuzzy_threshold")
        sql = f"""
            SELECT {ELEMENT_COLUMNS}, fuzzy.score AS score
            FROM {self.table}
            CROSS JOIN LATERAL (
                SELECT MAX(similarity(token, :query)) AS score
                FROM unnest(tokens) AS token
            ) AS fuzzy
            WHERE {where}
            ORDER BY fuzzy.score DESC, id
            LIMIT :top_k
        """
        return sql, restriction.bind(
            query=request.query.strip().lower(),
            fuzzy_threshold=self.config.fuzzy_threshold,
            top_k=request.top_k,
        )


class HybridSearchStrategy(SearchStrategy):
    """Weighted fusion of vector similarity and lexical score.

    Only chunks that match the query lexically and carry an embedding are
    candidates; they are ranked by the fused score in the same query.
    """

    mode = SearchRetrievalMode.HYBRID

    async def build_query(self, request, restriction):
        query_embedding = await self.embed_query(request)
        prepared = prepare_query(request.query)
        where = restriction.append_to("tsv @@ tsq AND embedding IS NOT NULL")
        sql = f"""
            SELECT {ELEMENT_COLUMNS},
                GREATEST(0.0, LEAST(1.0,
                    :vector_weight * {VECTOR_SIMILARITY_SQL}
                    + :fts_weight * {LEXICAL_SCORE_SQL}
                )) AS score
            FROM {self.table}, {prepared.sql()} AS tsq
            WHERE {where}
            ORDER BY score DESC, id
            LIMIT :top_k
        """
        return sql, restriction.bind(
            query=prepared.text,
            query_embedding=query_embedding,
            lexical_k=self.config.lexical_rank_saturation,
            vector_weight=self.config.vector_weight,
            fts_weight=self.config.fts_weight,
            top_k=request.top_k,
        )


STRATEGY_TYPES: dict[SearchRetrievalMode, type[SearchStrategy]] = {
    SearchRetrievalMode.VECTOR: VectorSearchStrategy,
    SearchRetrievalMode.TEXT: LexicalSearchStrategy,
    SearchRetrievalMode.FUZZY: FuzzySearchStrategy,
    SearchRetrievalMode.HYBRID: HybridSearchStrategy,
}
