"""PostgreSQL persistence and search for named entities.

Entities live in their own table with a pgvector embedding of
``name: description``. Relationships are directed, named edges in a second
table and disappear with either endpoint. Metadata and label filters compile
through the same ``SqlFilterConverter`` as chunk search.

A repository created with ``with_context_scope`` restricts label lookups,
searches and relationship navigation to entities whose ``context_id`` matches.
"""

import json
from typing import Any, Mapping, Optional, Protocol, TypeVar

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgvector_store import db
from pgvector_store.config import PgVectorStoreConfig, get_config
from pgvector_store.filter.expressions import EntityFilter, PropertyFilter
from pgvector_store.models.named_entities import provisioning_statements
from pgvector_store.repository.content_element_repository import (
    format_pgvector_literal,
    load_json_object,
)
from pgvector_store.repository.embedding_provider import EmbeddingProvider, check_dimensions
from pgvector_store.repository.search_errors import EmbeddingUnavailableError
from pgvector_store.repository.search_strategies import VECTOR_SIMILARITY_SQL, clamp_score
from pgvector_store.repository.sql_filter_converter import SqlFilterConverter
from pgvector_store.repository.sql_fragment import EMPTY, SqlFragment
from pgvector_store.schemas.named_entity import (
    NamedEntityData,
    RelationshipData,
    RelationshipDirection,
)
from pgvector_store.schemas.search import SimilarityResult, TextSimilaritySearchRequest

ENTITY_COLUMNS = "id, name, description, uri, labels, properties, metadata"

NAMED_ENTITY_SYNTAX_NOTES = "PostgreSQL substring matching on name and description fields"

T = TypeVar("T")


class NativeEntityLookup(Protocol[T]):
    """Lookup for entity types that are stored natively elsewhere."""

    async def find_by_id(self, id: str) -> Optional[T]: ...

    async def find_all(self) -> list[T]: ...


def row_to_named_entity(row: Any) -> NamedEntityData:
    return NamedEntityData(
        id=row.id,
        name=row.name,
        description=row.description or "",
        uri=row.uri,
        labels=frozenset(row.labels or ()),
        properties=load_json_object(row.properties),
        metadata=load_json_object(row.metadata),
    )


def like_pattern(query: str) -> str:
    """Case-folded substring pattern with LIKE wildcards in the query escaped."""
    escaped = query.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class NamedEntityRepository:
    """Stores named entities and their relationships, with vector and text search."""

    lucene_syntax_notes = NAMED_ENTITY_SYNTAX_NOTES

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        config: PgVectorStoreConfig,
        embedding_provider: Optional[EmbeddingProvider] = None,
        *,
        context_id: Optional[str] = None,
        native_lookups: Optional[Mapping[type, NativeEntityLookup]] = None,
        filter_converter: Optional[SqlFilterConverter] = None,
    ):
        self.session_maker = session_maker
        self.config = config
        self.embedding_provider = embedding_provider
        self.context_id = context_id
        self.native_lookups = dict(native_lookups or {})
        self.filter_converter = filter_converter or SqlFilterConverter()
        self.table = config.qualified_named_entity_table
        self.relationship_table = config.qualified_relationship_table

    @classmethod
    async def create(
        cls,
        config: Optional[PgVectorStoreConfig] = None,
        embedding_provider: Optional[EmbeddingProvider] = None,
        *,
        provision: bool = True,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> "NamedEntityRepository":
        config = config or get_config()
        if session_maker is None:
            _, session_maker = db.get_or_create_db(config)
        repository = cls(session_maker, config, embedding_provider)
        if provision:
            await repository.provision()
        return repository

    def with_context_scope(self, context_id: str) -> "NamedEntityRepository":
        """A view of this repository limited to one context."""
        return NamedEntityRepository(
            self.session_maker,
            self.config,
            self.embedding_provider,
            context_id=context_id,
            native_lookups=self.native_lookups,
            filter_converter=self.filter_converter,
        )

    def _scoped(self, predicate: SqlFragment = EMPTY) -> SqlFragment:
        if self.context_id is None:
            return predicate
        return SqlFragment("context_id = :context_id", {"context_id": self.context_id}).and_(
            predicate
        )

    async def provision(self) -> None:
        logger.info(
            f"Provisioning named entity tables {self.table} and {self.relationship_table}"
        )
        async with db.scoped_session(self.session_maker) as session:
            for statement in provisioning_statements(self.config):
                await session.execute(text(statement))

    async def save(self, entity: NamedEntityData) -> NamedEntityData:
        """Insert or replace an entity by id, embedding it when a provider is configured."""
        embedding = None
        if self.embedding_provider is not None:
            vector = await self.embedding_provider.embed_query(entity.embeddable_value())
            check_dimensions([vector], self.config.embedding_dimension)
            embedding = format_pgvector_literal(vector)

        async with db.scoped_session(self.session_maker) as session:
            await session.execute(
                text(
                    f"""
                    INSERT INTO {self.table} (
                        id, name, description, uri, labels, properties, metadata,
                        context_id, embedding
                    ) VALUES (
                        :id, :name, :description, :uri, CAST(:labels AS text[]),
                        CAST(:properties AS jsonb), CAST(:metadata AS jsonb),
                        :context_id, CAST(:embedding AS vector)
                    )
                    ON CONFLICT (id) DO UPDATE SET
                        name = EXCLUDED.name,
                        description = EXCLUDED.description,
                        uri = EXCLUDED.uri,
                        labels = EXCLUDED.labels,
                        properties = EXCLUDED.properties,
                        metadata = EXCLUDED.metadata,
                        context_id = EXCLUDED.context_id,
                        embedding = EXCLUDED.embedding,
                        updated_at = NOW()
                    """
                ),
                {
                    "id": entity.id,
                    "name": entity.name,
                    "description": entity.description,
                    "uri": entity.uri,
                    "labels": sorted(entity.labels),
                    "properties": json.dumps(entity.properties),
                    "metadata": json.dumps(entity.metadata),
                    "context_id": entity.context_id,
                    "embedding": embedding,
                },
            )
        logger.debug(f"Saved named entity {entity.id} ({entity.name})")
        return entity

    async def find_by_id(self, entity_id: str) -> Optional[NamedEntityData]:
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(f"SELECT {ENTITY_COLUMNS} FROM {self.table} WHERE id = :id"),
                {"id": entity_id},
            )
            row = result.fetchone()
        return row_to_named_entity(row) if row else None

    async def delete(self, entity_id: str) -> bool:
        """Delete an entity and its relationships. False when no such entity exists."""
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(f"DELETE FROM {self.table} WHERE id = :id RETURNING id"),
                {"id": entity_id},
            )
            deleted = result.fetchall()
        return bool(deleted)

    async def find_by_label(self, label: str) -> list[NamedEntityData]:
        restriction = self._scoped()
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT {ENTITY_COLUMNS} FROM {self.table}
                    WHERE {restriction.append_to(":label = ANY(labels)")}
                    ORDER BY name, id
                    """
                ),
                restriction.bind(label=label),
            )
            return [row_to_named_entity(row) for row in result.fetchall()]

    async def _search(
        self, sql: str, params: dict[str, Any], threshold: float
    ) -> list[SimilarityResult[NamedEntityData]]:
        logger.trace(f"Named entity search SQL: {sql} params: {params}")
        try:
            async with db.scoped_session(self.session_maker) as session:
                result = await session.execute(text(sql), params)
                rows = result.fetchall()
        except Exception as exc:
            logger.error(f"Named entity search failed: {exc}")
            raise

        results = [
            SimilarityResult(match=row_to_named_entity(row), score=clamp_score(row.score))
            for row in rows
        ]
        kept = [result for result in results if result.score >= threshold]
        kept.sort(key=lambda result: result.score, reverse=True)
        return kept

    async def vector_search(
        self,
        request: TextSimilaritySearchRequest,
        metadata_filter: Optional[PropertyFilter] = None,
        entity_filter: Optional[EntityFilter] = None,
    ) -> list[SimilarityResult[NamedEntityData]]:
        """Entities nearest the query by cosine distance."""
        if self.embedding_provider is None:
            raise EmbeddingUnavailableError("vector", "NamedEntity")

        vector = await self.embedding_provider.embed_query(request.query.strip())
        check_dimensions([vector], self.config.embedding_dimension)

        restriction = self._scoped(
            self.filter_converter.combine_filters(metadata_filter, entity_filter)
        )
        sql = f"""
            SELECT {ENTITY_COLUMNS}, {VECTOR_SIMILARITY_SQL} AS score
            FROM {self.table}
            WHERE {restriction.append_to("embedding IS NOT NULL")}
            ORDER BY embedding <=> CAST(:query_embedding AS vector)
            LIMIT :top_k
        """
        params = restriction.bind(
            query_embedding=format_pgvector_literal(vector), top_k=request.top_k
        )
        return await self._search(sql, params, request.similarity_threshold)

    async def text_search(
        self,
        request: TextSimilaritySearchRequest,
        metadata_filter: Optional[PropertyFilter] = None,
        entity_filter: Optional[EntityFilter] = None,
    ) -> list[SimilarityResult[NamedEntityData]]:
        """Case-insensitive substring match on name or description. Every match scores 1.0."""
        restriction = self._scoped(
            self.filter_converter.combine_filters(metadata_filter, entity_filter)
        )
        where = restriction.append_to(
            "(LOWER(name) LIKE :pattern OR LOWER(description) LIKE :pattern)"
        )
        sql = f"""
            SELECT {ENTITY_COLUMNS}, 1.0 AS score
            FROM {self.table}
            WHERE {where}
            ORDER BY name, id
            LIMIT :top_k
        """
        params = restriction.bind(
            pattern=like_pattern(request.query.strip()), top_k=request.top_k
        )
        return await self._search(sql, params, request.similarity_threshold)

    async def create_relationship(
        self, source_id: str, target_id: str, relationship: RelationshipData
    ) -> None:
        """Add a relationship. Fails if the same named edge already exists."""
        await self._write_relationship(source_id, target_id, relationship, merge=False)

    async def merge_relationship(
        self, source_id: str, target_id: str, relationship: RelationshipData
    ) -> None:
        """Add a relationship, or replace the properties of an existing one."""
        await self._write_relationship(source_id, target_id, relationship, merge=True)

    async def _write_relationship(
        self, source_id: str, target_id: str, relationship: RelationshipData, merge: bool
    ) -> None:
        sql = f"""
            INSERT INTO {self.relationship_table}
                (source_id, target_id, relationship_name, properties)
            VALUES (:source_id, :target_id, :relationship_name, CAST(:properties AS jsonb))
        """
        if merge:
            sql += """
            ON CONFLICT (source_id, target_id, relationship_name)
            DO UPDATE SET properties = EXCLUDED.properties
            """
        async with db.scoped_session(self.session_maker) as session:
            await session.execute(
                text(sql),
                {
                    "source_id": source_id,
                    "target_id": target_id,
                    "relationship_name": relationship.name,
                    "properties": json.dumps(relationship.properties),
                },
            )
        logger.debug(f"{source_id} -[{relationship.name}]-> {target_id}")

    async def find_related(
        self,
        source_id: str,
        relationship_name: str,
        direction: RelationshipDirection = RelationshipDirection.OUTGOING,
    ) -> list[NamedEntityData]:
        """Entities joined to source_id by relationship_name in the given direction."""
        related: list[str] = []
        if direction in (RelationshipDirection.OUTGOING, RelationshipDirection.BOTH):
            related.append(
                f"SELECT target_id FROM {self.relationship_table} "
                "WHERE source_id = :source_id AND relationship_name = :relationship_name"
            )
        if direction in (RelationshipDirection.INCOMING, RelationshipDirection.BOTH):
            related.append(
                f"SELECT source_id FROM {self.relationship_table} "
                "WHERE target_id = :source_id AND relationship_name = :relationship_name"
            )

        restriction = self._scoped()
        where = restriction.append_to(f"id IN ({' UNION '.join(related)})")
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(f"SELECT {ENTITY_COLUMNS} FROM {self.table} WHERE {where} ORDER BY name, id"),
                restriction.bind(source_id=source_id, relationship_name=relationship_name),
            )
            return [row_to_named_entity(row) for row in result.fetchall()]

    def is_native_type(self, entity_type: type) -> bool:
        return entity_type in self.native_lookups

    async def find_native_by_id(self, entity_id: str, entity_type: type[T]) -> Optional[T]:
        """Look up a natively stored entity; None when the type has no registered lookup."""
        lookup = self.native_lookups.get(entity_type)
        if lookup is None:
            return None
        return await lookup.find_by_id(entity_id)

    async def find_native_all(self, entity_type: type[T]) -> Optional[list[T]]:
        lookup = self.native_lookups.get(entity_type)
        if lookup is None:
            return None
        return await lookup.find_all()
