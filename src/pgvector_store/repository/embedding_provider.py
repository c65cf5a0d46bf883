"""Embedding boundary used by chunk writes and by vector and hybrid search."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional, Protocol, Sequence

from loguru import logger

from pgvector_store.config import PgVectorStoreConfig
from pgvector_store.schemas.content import Chunk


class EmbeddingProvider(Protocol):
    """Turns text into fixed-dimension vectors.

    ``dimensions`` must match the store's ``embedding_dimension`` so that
    embeddings fit the vector column.
    """

    model_name: str
    dimensions: int

    async def embed_query(self, text: str) -> list[float]:
        """Embed a search query."""
        ...

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Embed chunk texts in order."""
        ...


def check_dimensions(vectors: Sequence[Sequence[float]], expected: int) -> None:
    """Fail when a model returns vectors that would not fit the vector column."""
    for vector in vectors:
        if len(vector) != expected:
            raise RuntimeError(
                f"Embedding model returned {len(vector)}-dimensional vectors "
                f"but the store expects {expected} dimensions."
            )


async def embed_chunks(
    provider: EmbeddingProvider, chunks: Sequence[Chunk], dimensions: int
) -> list[list[float]]:
    """Embed chunk text, one vector per chunk, each sized for the vector column."""
    if not chunks:
        return []
    vectors = await provider.embed_documents([chunk.text for chunk in chunks])
    if len(vectors) != len(chunks):
        raise RuntimeError(
            f"{provider.model_name} returned {len(vectors)} embeddings for {len(chunks)} chunks"
        )
    check_dimensions(vectors, dimensions)
    return vectors


class ConfiguredEmbeddingProvider(ABC):
    """Model-backed provider sized and batched from the store config.

    Subclasses say how to load their backend (a local model or an API client)
    and how to embed one batch with it. The backend is loaded once, off the
    event loop, on first use.
    """

    default_model: ClassVar[str]

    def __init__(self, config: PgVectorStoreConfig, model_name: Optional[str] = None):
        self.model_name = model_name or config.embedding_model or self.default_model
        self.dimensions = config.embedding_dimension
        self.batch_size = config.embedding_batch_size
        self._backend: Any = None
        self._backend_lock = asyncio.Lock()

    @abstractmethod
    def load_backend(self) -> Any:
        """Import and construct the backend. Runs in a worker thread."""

    @abstractmethod
    async def embed_batch(self, backend: Any, texts: list[str]) -> list[list[float]]:
        """Embed at most ``batch_size`` texts, in order."""

    async def backend(self) -> Any:
        if self._backend is None:
            async with self._backend_lock:
                if self._backend is None:
                    self._backend = await asyncio.to_thread(self.load_backend)
        return self._backend

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        backend = await self.backend()
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            logger.trace(f"Embedding batch of {len(batch)} with {self.model_name}")
            vectors.extend(await self.embed_batch(backend, batch))

        check_dimensions(vectors, self.dimensions)
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        (vector,) = await self.embed_documents([text])
        return vector
