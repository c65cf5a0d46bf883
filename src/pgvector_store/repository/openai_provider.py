"""Embeddings from the OpenAI API."""

import os
from typing import Any, Optional

from pgvector_store.config import PgVectorStoreConfig
from pgvector_store.repository.embedding_provider import ConfiguredEmbeddingProvider
from pgvector_store.repository.search_errors import EmbeddingDependenciesMissingError


class OpenAIEmbeddingProvider(ConfiguredEmbeddingProvider):
    """Embeds chunks with OpenAI's embeddings endpoint.

    The API key comes from ``OPENAI_API_KEY`` unless one is passed in.
    """

    default_model = "text-embedding-3-small"

    def __init__(
        self,
        config: PgVectorStoreConfig,
        model_name: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
    ):
        super().__init__(config, model_name)
        self.api_key = api_key
        self.timeout = timeout

    def load_backend(self) -> Any:
        try:
            from openai import AsyncOpenAI
        except ImportError as exc:  # pragma: no cover
            raise EmbeddingDependenciesMissingError(
                "openai is not installed. "
                "Install the extra: pip install 'pgvector-store[openai]'"
            ) from exc

        api_key = self.api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise EmbeddingDependenciesMissingError(
                f"{self.model_name} embeddings require OPENAI_API_KEY."
            )
        return AsyncOpenAI(api_key=api_key, timeout=self.timeout)

    async def embed_batch(self, backend: Any, texts: list[str]) -> list[list[float]]:
        response = await backend.embeddings.create(model=self.model_name, input=texts)
        # Items carry their input position; order is not guaranteed
        ordered = sorted(response.data, key=lambda item: item.index)
        if [item.index for item in ordered] != list(range(len(texts))):
            raise RuntimeError(
                f"{self.model_name} returned {len(ordered)} embeddings for {len(texts)} texts"
            )
        return [[float(value) for value in item.embedding] for item in ordered]
