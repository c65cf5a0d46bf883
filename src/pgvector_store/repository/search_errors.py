"""Typed errors for search contract violations and missing capabilities."""


class UnsupportedEntityTypeError(ValueError):
    """Raised when a search is requested for an entity kind the store does not hold."""

    def __init__(self, operation: str, requested: str, supported: str):
        self.operation = operation
        self.requested = requested
        self.supported = supported
        super().__init__(
            f"{operation} only supports {supported} entities, got: {requested}"
        )


class UnsupportedFilterError(TypeError):
    """Raised when a filter expression node has no SQL lowering."""


class EmbeddingUnavailableError(RuntimeError):
    """Raised when vector or hybrid search is requested without an embedding provider."""

    def __init__(self, strategy: str, entity_type: str):
        self.strategy = strategy
        self.entity_type = entity_type
        super().__init__(
            f"{strategy} search over {entity_type} requires an embedding capability, "
            "but no embedding provider is configured. "
            "Set PGVECTOR_STORE_EMBEDDING_PROVIDER or use text/fuzzy search instead."
        )


class EmbeddingDependenciesMissingError(RuntimeError):
    """Raised when an embedding provider's library or credentials are unavailable."""
