"""DDL for the named entity and relationship tables."""

from pgvector_store.config import PgVectorStoreConfig


def entity_table_ddl(config: PgVectorStoreConfig) -> str:
    return f"""
        CREATE TABLE IF NOT EXISTS {config.qualified_named_entity_table} (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            uri TEXT,
            labels TEXT[] NOT NULL DEFAULT '{{}}',
            properties JSONB NOT NULL DEFAULT '{{}}',
            metadata JSONB NOT NULL DEFAULT '{{}}',
            context_id TEXT,
            embedding vector({config.embedding_dimension}),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """


def relationship_table_ddl(config: PgVectorStoreConfig) -> str:
    entities = config.qualified_named_entity_table
    return f"""
        CREATE TABLE IF NOT EXISTS {config.qualified_relationship_table} (
            source_id TEXT NOT NULL REFERENCES {entities} (id) ON DELETE CASCADE,
            target_id TEXT NOT NULL REFERENCES {entities} (id) ON DELETE CASCADE,
            relationship_name TEXT NOT NULL,
            properties JSONB NOT NULL DEFAULT '{{}}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (source_id, target_id, relationship_name)
        )
    """


def index_statements(config: PgVectorStoreConfig) -> list[str]:
    table = config.named_entity_table
    entities = config.qualified_named_entity_table
    relationships = config.qualified_relationship_table
    return [
        f"CREATE INDEX IF NOT EXISTS idx_{table}_labels ON {entities} USING GIN (labels)",
        f"CREATE INDEX IF NOT EXISTS idx_{table}_metadata ON {entities} USING GIN (metadata)",
        f"CREATE INDEX IF NOT EXISTS idx_{table}_context_id ON {entities} (context_id)",
        f"""
        CREATE INDEX IF NOT EXISTS idx_{table}_embedding_hnsw
        ON {entities} USING hnsw (embedding vector_cosine_ops)
        """,
        f"""
        CREATE INDEX IF NOT EXISTS idx_{config.relationship_table}_target
        ON {relationships} (target_id, relationship_name)
        """,
    ]


def provisioning_statements(config: PgVectorStoreConfig) -> list[str]:
    """Statements creating both tables and their indexes, in execution order."""
    return [
        "CREATE EXTENSION IF NOT EXISTS vector",
        f"CREATE SCHEMA IF NOT EXISTS {config.schema_name}",
        entity_table_ddl(config),
        relationship_table_ddl(config),
        *index_statements(config),
    ]
