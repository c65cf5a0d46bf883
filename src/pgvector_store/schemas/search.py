"""Search request and result types."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class SearchRetrievalMode(str, Enum):
    """Ranked retrieval strategies."""

    VECTOR = "vector"
    TEXT = "text"
    FUZZY = "fuzzy"
    HYBRID = "hybrid"


class TextSimilaritySearchRequest(BaseModel):
    """One search call: query text, result count and minimum score."""

    model_config = ConfigDict(frozen=True)

    query: str = Field(..., min_length=1, description="Query text")
    top_k: int = Field(default=10, gt=0, description="Maximum number of results")
    similarity_threshold: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Minimum score on the 0-1 scale"
    )

    @field_validator("query")
    @classmethod
    def validate_query(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be blank")
        return value


@dataclass(frozen=True)
class SimilarityResult(Generic[T]):
    """A matched element and its normalized score in [0, 1]."""

    match: T
    score: float
