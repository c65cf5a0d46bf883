"""Named entities and the relationships between them.

Named entities (people, products, organisations...) live in their own table
beside the content elements. An entity may belong to a context, recorded as
``metadata["context_id"]``, so one table can hold several isolated graphs.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

CONTEXT_ID_KEY = "context_id"


@dataclass
class NamedEntityData:
    id: str
    name: str
    description: str = ""
    uri: Optional[str] = None
    labels: frozenset[str] = frozenset()
    properties: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def context_id(self) -> Optional[str]:
        value = self.metadata.get(CONTEXT_ID_KEY)
        return value if isinstance(value, str) else None

    def embeddable_value(self) -> str:
        """Text embedded for vector search."""
        if self.description:
            return f"{self.name}: {self.description}"
        return self.name


class RelationshipDirection(str, Enum):
    OUTGOING = "OUTGOING"
    INCOMING = "INCOMING"
    BOTH = "BOTH"


@dataclass(frozen=True)
class RelationshipData:
    name: str
    properties: dict[str, Any] = field(default_factory=dict)
