from pgvector_store.schemas.content import (
    Chunk,
    ContentElement,
    ContentElementRepositoryInfo,
    Document,
    DocumentDeletionResult,
    GenericContentElement,
)
from pgvector_store.schemas.named_entity import (
    NamedEntityData,
    RelationshipData,
    RelationshipDirection,
)
from pgvector_store.schemas.search import (
    SearchRetrievalMode,
    SimilarityResult,
    TextSimilaritySearchRequest,
)

__all__ = [
    "Chunk",
    "ContentElement",
    "ContentElementRepositoryInfo",
    "Document",
    "DocumentDeletionResult",
    "GenericContentElement",
    "NamedEntityData",
    "RelationshipData",
    "RelationshipDirection",
    "SearchRetrievalMode",
    "SimilarityResult",
    "TextSimilaritySearchRequest",
]
