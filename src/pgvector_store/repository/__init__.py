from pgvector_store.repository.content_element_repository import ContentElementRepository
from pgvector_store.repository.embedding_provider import EmbeddingProvider
from pgvector_store.repository.named_entity_repository import NamedEntityRepository
from pgvector_store.repository.sql_filter_converter import SqlFilterConverter
from pgvector_store.repository.sql_fragment import EMPTY, SqlFragment

__all__ = [
    "ContentElementRepository",
    "EMPTY",
    "EmbeddingProvider",
    "NamedEntityRepository",
    "SqlFilterConverter",
    "SqlFragment",
]
