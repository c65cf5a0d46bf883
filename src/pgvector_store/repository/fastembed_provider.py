"""Local ONNX embeddings via FastEmbed."""

import asyncio
from typing import Any

from loguru import logger

from pgvector_store.repository.embedding_provider import ConfiguredEmbeddingProvider
from pgvector_store.repository.search_errors import EmbeddingDependenciesMissingError

# Short names accepted in PGVECTOR_STORE_EMBEDDING_MODEL
MODEL_ALIASES = {
    "bge-small-en-v1.5": "BAAI/bge-small-en-v1.5",
    "bge-base-en-v1.5": "BAAI/bge-base-en-v1.5",
}


class FastEmbedEmbeddingProvider(ConfiguredEmbeddingProvider):
    """Embeds chunks with a locally cached FastEmbed model."""

    default_model = "bge-small-en-v1.5"

    def load_backend(self) -> Any:
        try:
            from fastembed import TextEmbedding  # type: ignore[import-not-found]
        except ImportError as exc:  # pragma: no cover
            raise EmbeddingDependenciesMissingError(
                "fastembed is not installed. "
                "Install the extra: pip install 'pgvector-store[fastembed]'"
            ) from exc

        resolved = MODEL_ALIASES.get(self.model_name, self.model_name)
        logger.info(f"Loading FastEmbed model {resolved} for {self.dimensions}-d vectors")
        return TextEmbedding(model_name=resolved)

    async def embed_batch(self, backend: Any, texts: list[str]) -> list[list[float]]:
        def _embed() -> list[list[float]]:
            return [
                [float(value) for value in vector]
                for vector in backend.embed(texts, batch_size=self.batch_size)
            ]

        return await asyncio.to_thread(_embed)
