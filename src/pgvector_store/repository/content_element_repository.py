"""PostgreSQL persistence for content elements."""

import json
from typing import Any, Optional, Sequence

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pgvector_store import db
from pgvector_store.config import PgVectorStoreConfig
from pgvector_store.models.content_elements import provisioning_statements
from pgvector_store.schemas.content import (
    CHUNK_LABEL,
    CONTENT_ELEMENT_LABEL,
    DOCUMENT_LABEL,
    Chunk,
    ContentElement,
    ContentElementRepositoryInfo,
    Document,
    DocumentDeletionResult,
    GenericContentElement,
)

# Columns every element query selects so rows can be mapped back to entities
ELEMENT_COLUMNS = "id, uri, text, urtext, title, parent_id, labels, metadata"


def format_pgvector_literal(vector: Sequence[float]) -> str:
    if not vector:
        return "[]"
    values = ",".join(f"{float(value):.12g}" for value in vector)
    return f"[{values}]"


def load_json_object(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    return json.loads(value)


def row_to_element(row: Any) -> ContentElement:
    """Map a row selected with ELEMENT_COLUMNS to the matching entity type."""
    stored_labels = set(row.labels or ())
    metadata = load_json_object(row.metadata)

    if CHUNK_LABEL in stored_labels:
        element: ContentElement = Chunk(
            id=row.id,
            uri=row.uri,
            metadata=metadata,
            text=row.text or "",
            urtext=row.urtext,
            parent_id=row.parent_id,
        )
    elif DOCUMENT_LABEL in stored_labels:
        element = Document(
            id=row.id, uri=row.uri, metadata=metadata, title=row.title, text=row.text
        )
    else:
        element = GenericContentElement(
            id=row.id, uri=row.uri, metadata=metadata, text=row.text, parent_id=row.parent_id
        )

    implied = {CONTENT_ELEMENT_LABEL, *element.kind_labels}
    element.labels = frozenset(stored_labels - implied)
    return element


def _insert_params(element: ContentElement, embedding: Optional[Sequence[float]]) -> dict:
    return {
        "id": element.id,
        "uri": element.uri,
        "text": getattr(element, "text", None),
        "urtext": getattr(element, "urtext", None),
        "title": getattr(element, "title", None),
        "parent_id": getattr(element, "parent_id", None),
        "labels": sorted(element.all_labels()),
        "metadata": json.dumps(element.metadata),
        "embedding": format_pgvector_literal(embedding) if embedding else None,
    }


class ContentElementRepository:
    """Stores content elements and answers non-search lookups.

    All SQL runs through ``db.scoped_session`` so failures roll back and
    propagate to the caller unchanged.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        config: PgVectorStoreConfig,
    ):
        self.session_maker = session_maker
        self.config = config
        self.table = config.qualified_table

    async def provision(self) -> None:
        """Create extensions, table, trigger and indexes. Safe to run repeatedly."""
        logger.info(f"Provisioning content element table {self.table}")
        async with db.scoped_session(self.session_maker) as session:
            for statement in provisioning_statements(self.config):
                await session.execute(text(statement))
        logger.info(f"Provisioned {self.table} with {self.config.embedding_dimension}-d embeddings")

    def _upsert_sql(self) -> str:
        return f"""
            INSERT INTO {self.table} (
                id, uri, text, urtext, title, parent_id, labels, metadata, embedding
            ) VALUES (
                :id, :uri, :text, :urtext, :title, :parent_id,
                CAST(:labels AS text[]), CAST(:metadata AS jsonb), CAST(:embedding AS vector)
            )
            ON CONFLICT (id) DO UPDATE SET
                uri = EXCLUDED.uri,
                text = EXCLUDED.text,
                urtext = EXCLUDED.urtext,
                title = EXCLUDED.title,
                parent_id = EXCLUDED.parent_id,
                labels = EXCLUDED.labels,
                metadata = EXCLUDED.metadata,
                embedding = EXCLUDED.embedding,
                ingestion_timestamp = NOW()
        """

    async def save(
        self, element: ContentElement, embedding: Optional[Sequence[float]] = None
    ) -> ContentElement:
        """Insert or replace an element by id."""
        async with db.scoped_session(self.session_maker) as session:
            await session.execute(text(self._upsert_sql()), _insert_params(element, embedding))
        logger.debug(f"Saved {type(element).__name__} {element.id}")
        return element

    async def persist_chunks_with_embeddings(
        self,
        chunks: Sequence[Chunk],
        embeddings: Optional[Sequence[Optional[Sequence[float]]]] = None,
    ) -> None:
        """Upsert chunks in one transaction, pairing each with its embedding by position."""
        if embeddings is not None and len(embeddings) != len(chunks):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(chunks)} chunks"
            )
        if not chunks:
            return

        rows = [
            _insert_params(chunk, embeddings[index] if embeddings is not None else None)
            for index, chunk in enumerate(chunks)
        ]
        async with db.scoped_session(self.session_maker) as session:
            await session.execute(text(self._upsert_sql()), rows)
        logger.info(f"Persisted {len(rows)} chunks to {self.table}")

    async def find_by_id(self, element_id: str) -> Optional[ContentElement]:
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(f"SELECT {ELEMENT_COLUMNS} FROM {self.table} WHERE id = :id"),
                {"id": element_id},
            )
            row = result.fetchone()
        return row_to_element(row) if row else None

    async def find_all_chunks_by_id(self, ids: Sequence[str]) -> list[Chunk]:
        """Chunks with the given ids, in the order the ids were given."""
        if not ids:
            return []
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT {ELEMENT_COLUMNS} FROM {self.table}
                    WHERE id = ANY(CAST(:ids AS text[])) AND :label = ANY(labels)
                    """
                ),
                {"ids": list(ids), "label": CHUNK_LABEL},
            )
            by_id = {row.id: row_to_element(row) for row in result.fetchall()}
        return [by_id[element_id] for element_id in ids if element_id in by_id]  # type: ignore[misc]

    async def find_content_root_by_uri(self, uri: str) -> Optional[Document]:
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT {ELEMENT_COLUMNS} FROM {self.table}
                    WHERE uri = :uri AND :label = ANY(labels)
                    ORDER BY ingestion_timestamp DESC
                    LIMIT 1
                    """
                ),
                {"uri": uri, "label": DOCUMENT_LABEL},
            )
            row = result.fetchone()
        return row_to_element(row) if row else None  # type: ignore[return-value]

    async def exists_root_with_uri(self, uri: str) -> bool:
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT EXISTS (
                        SELECT 1 FROM {self.table} WHERE uri = :uri AND :label = ANY(labels)
                    )
                    """
                ),
                {"uri": uri, "label": DOCUMENT_LABEL},
            )
            return bool(result.scalar())

    async def delete_root_and_descendants(self, uri: str) -> Optional[DocumentDeletionResult]:
        """Delete a content root and everything reachable through parent_id.

        Returns None when no root with this URI exists.
        """
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(
                    f"""
                    WITH RECURSIVE tree AS (
                        SELECT id FROM {self.table}
                        WHERE uri = :uri AND :label = ANY(labels)
                        UNION
                        SELECT child.id FROM {self.table} child
                        JOIN tree ON child.parent_id = tree.id
                    )
                    DELETE FROM {self.table} WHERE id IN (SELECT id FROM tree)
                    RETURNING id
                    """
                ),
                {"uri": uri, "label": DOCUMENT_LABEL},
            )
            deleted = result.fetchall()

        if not deleted:
            logger.debug(f"No content root found for {uri}")
            return None
        logger.info(f"Deleted content root {uri} and {len(deleted) - 1} descendants")
        return DocumentDeletionResult(root_uri=uri, deleted_count=len(deleted))

    async def info(self) -> ContentElementRepositoryInfo:
        async with db.scoped_session(self.session_maker) as session:
            result = await session.execute(
                text(
                    f"""
                    SELECT
                        COUNT(*) FILTER (WHERE :chunk = ANY(labels)) AS chunk_count,
                        COUNT(*) FILTER (WHERE :document = ANY(labels)) AS document_count,
                        COUNT(*) AS content_element_count,
                        COUNT(embedding) AS embedding_count
                    FROM {self.table}
                    """
                ),
                {"chunk": CHUNK_LABEL, "document": DOCUMENT_LABEL},
            )
            row = result.mappings().one()

        return ContentElementRepositoryInfo(
            chunk_count=int(row["chunk_count"]),
            document_count=int(row["document_count"]),
            content_element_count=int(row["content_element_count"]),
            has_embeddings=int(row["embedding_count"]) > 0,
        )
