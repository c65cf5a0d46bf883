"""Content elements held by the store.

A Document is a content root identified by its URI. Chunks hang off a root (or
another chunk) through ``parent_id`` and are the only elements that are
searched. Labels combine the element's own extra labels with the labels
implied by its kind, so a Chunk is always labelled ``Chunk``.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

CONTENT_ELEMENT_LABEL = "ContentElement"
CHUNK_LABEL = "Chunk"
DOCUMENT_LABEL = "Document"


@dataclass
class ContentElement:
    id: str
    uri: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    labels: frozenset[str] = frozenset()

    kind_labels: ClassVar[tuple[str, ...]] = ()

    def all_labels(self) -> set[str]:
        return {CONTENT_ELEMENT_LABEL, *self.kind_labels, *self.labels}


@dataclass
class Chunk(ContentElement):
    text: str = ""
    urtext: Optional[str] = None
    parent_id: Optional[str] = None

    kind_labels: ClassVar[tuple[str, ...]] = (CHUNK_LABEL, "Retrievable")

    def __post_init__(self):
        if self.urtext is None:
            self.urtext = self.text


@dataclass
class Document(ContentElement):
    """A content root. ``text`` holds the full body when the loader kept it."""

    title: Optional[str] = None
    text: Optional[str] = None

    kind_labels: ClassVar[tuple[str, ...]] = (DOCUMENT_LABEL, "ContentRoot")


@dataclass
class GenericContentElement(ContentElement):
    """Any stored element that is neither a chunk nor a document."""

    text: Optional[str] = None
    parent_id: Optional[str] = None


ENTITY_TYPES: dict[str, type[ContentElement]] = {
    "Chunk": Chunk,
    "Document": Document,
    "ContentElement": GenericContentElement,
}


@dataclass(frozen=True)
class ContentElementRepositoryInfo:
    chunk_count: int
    document_count: int
    content_element_count: int
    has_embeddings: bool
    is_persistent: bool = True


@dataclass(frozen=True)
class DocumentDeletionResult:
    root_uri: str
    deleted_count: int
