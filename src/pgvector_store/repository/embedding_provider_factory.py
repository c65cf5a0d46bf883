"""Factory for the configured embedding provider."""

from typing import Optional

from pgvector_store.config import PgVectorStoreConfig
from pgvector_store.repository.embedding_provider import (
    ConfiguredEmbeddingProvider,
    EmbeddingProvider,
)
from pgvector_store.repository.fastembed_provider import FastEmbedEmbeddingProvider
from pgvector_store.repository.openai_provider import OpenAIEmbeddingProvider

PROVIDER_TYPES: dict[str, type[ConfiguredEmbeddingProvider]] = {
    "fastembed": FastEmbedEmbeddingProvider,
    "openai": OpenAIEmbeddingProvider,
}


def create_embedding_provider(config: PgVectorStoreConfig) -> Optional[EmbeddingProvider]:
    """Build the provider named by config, or None when embeddings are disabled."""
    if config.embedding_provider is None:
        return None

    provider_type = PROVIDER_TYPES.get(config.embedding_provider)
    if provider_type is None:
        raise ValueError(f"Unsupported embedding provider: {config.embedding_provider}")
    return provider_type(config)
