"""DDL for the content element table and its supporting objects.

The trigger keeps the derived search columns (``tsv``, ``clean_text`` and
``tokens``) in step with ``text`` on every write, so lexical and fuzzy search
never see stale data.
"""

from pgvector_store.config import PgVectorStoreConfig

EXTENSIONS = ("vector", "pg_trgm")


def table_ddl(config: PgVectorStoreConfig) -> str:
    return f"""
        CREATE TABLE IF NOT EXISTS {config.qualified_table} (
            id TEXT PRIMARY KEY,
            uri TEXT,
            text TEXT,
            urtext TEXT,
            title TEXT,
            clean_text TEXT,
            tokens TEXT[],
            tsv TSVECTOR,
            parent_id TEXT,
            labels TEXT[] NOT NULL DEFAULT '{{}}',
            metadata JSONB NOT NULL DEFAULT '{{}}',
            embedding vector({config.embedding_dimension}),
            ingestion_timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """


def trigger_function_name(config: PgVectorStoreConfig) -> str:
    return f"{config.schema_name}.{config.content_element_table}_search_columns"


def trigger_function_ddl(config: PgVectorStoreConfig) -> str:
    return f"""
        CREATE OR REPLACE FUNCTION {trigger_function_name(config)}()
        RETURNS trigger AS $$
        BEGIN
            NEW.tsv := to_tsvector('english', COALESCE(NEW.text, ''));
            NEW.clean_text := regexp_replace(LOWER(COALESCE(NEW.text, '')), '[^a-z0-9\\s]', '', 'g');
            NEW.tokens := array_remove(regexp_split_to_array(NEW.clean_text, '\\s+'), '');
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
    """


def trigger_statements(config: PgVectorStoreConfig) -> list[str]:
    trigger = f"{config.content_element_table}_search_columns_trigger"
    return [
        f"DROP TRIGGER IF EXISTS {trigger} ON {config.qualified_table}",
        f"""
        CREATE TRIGGER {trigger}
        BEFORE INSERT OR UPDATE OF text ON {config.qualified_table}
        FOR EACH ROW EXECUTE FUNCTION {trigger_function_name(config)}()
        """,
    ]


def index_statements(config: PgVectorStoreConfig) -> list[str]:
    table = config.content_element_table
    qualified = config.qualified_table
    return [
        f"CREATE INDEX IF NOT EXISTS idx_{table}_tsv ON {qualified} USING GIN (tsv)",
        f"CREATE INDEX IF NOT EXISTS idx_{table}_text_trgm ON {qualified} USING GIN (text gin_trgm_ops)",
        f"CREATE INDEX IF NOT EXISTS idx_{table}_metadata ON {qualified} USING GIN (metadata)",
        f"CREATE INDEX IF NOT EXISTS idx_{table}_labels ON {qualified} USING GIN (labels)",
        f"CREATE INDEX IF NOT EXISTS idx_{table}_parent_id ON {qualified} (parent_id)",
        f"CREATE INDEX IF NOT EXISTS idx_{table}_uri ON {qualified} (uri)",
        f"""
        CREATE INDEX IF NOT EXISTS idx_{table}_embedding_hnsw
        ON {qualified} USING hnsw (embedding vector_cosine_ops)
        """,
    ]


def provisioning_statements(config: PgVectorStoreConfig) -> list[str]:
    """All statements needed to provision the store, in execution order."""
    return [
        *(f"CREATE EXTENSION IF NOT EXISTS {name}" for name in EXTENSIONS),
        f"CREATE SCHEMA IF NOT EXISTS {config.schema_name}",
        table_ddl(config),
        trigger_function_ddl(config),
        *trigger_statements(config),
        *index_statements(config),
    ]
