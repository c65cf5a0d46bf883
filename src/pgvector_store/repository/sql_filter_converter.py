"""Lowers filter expressions to parameterized PostgreSQL predicates.

Metadata filters target the JSONB ``metadata`` column, entity filters target the
``labels`` TEXT[] column. For example::

    converter = SqlFilterConverter()
    fragment = converter.convert(eq("owner", "alice") & gte("score", 0.8))
    # fragment.sql == "(metadata @> CAST(:_filter_0 AS jsonb)) AND "
    #                 "((metadata->>'score')::numeric >= :_filter_1)"
    # fragment.params == {"_filter_0": '{"owner":"alice"}', "_filter_1": 0.8}
"""

import json
from typing import Any, Optional

from loguru import logger

from pgvector_store.filter.expressions import (
    And,
    Contains,
    ContainsIgnoreCase,
    EndsWith,
    EntityFilter,
    Eq,
    EqIgnoreCase,
    Gt,
    Gte,
    HasAnyLabel,
    In,
    Like,
    Lt,
    Lte,
    Ne,
    Nin,
    Not,
    Or,
    PropertyFilter,
    StartsWith,
)
from pgvector_store.repository.search_errors import UnsupportedFilterError
from pgvector_store.repository.sql_fragment import EMPTY, SqlFragment

NUMERIC_OPERATORS = {Gt: ">", Gte: ">=", Lt: "<", Lte: "<="}


class ParamCounter:
    """Hands out parameter names for a single compilation pass."""

    def __init__(self, prefix: str):
        self.prefix = prefix
        self._count = 0

    def next(self) -> str:
        name = f"{self.prefix}{self._count}"
        self._count += 1
        return name


def _as_text(value: Any) -> str:
    """Render a value the way ->> renders the same JSON value."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_jsonb(document: dict[str, Any]) -> str:
    return json.dumps(document, separators=(",", ":"))


def _join(filters: tuple[PropertyFilter, ...], operator: str, counter: ParamCounter) -> SqlFragment:
    fragments = [_lower(child, counter) for child in filters]
    if len(fragments) == 1:
        return fragments[0]
    params: dict[str, Any] = {}
    for fragment in fragments:
        params.update(fragment.params)
    return SqlFragment(f" {operator} ".join(f"({f.sql})" for f in fragments), params)


def _lower(node: PropertyFilter, counter: ParamCounter) -> SqlFragment:
    match node:
        case Eq(key=key, value=value):
            name = counter.next()
            # JSONB containment uses the GIN index on metadata
            return SqlFragment(
                f"metadata @> CAST(:{name} AS jsonb)", {name: _to_jsonb({key: value})}
            )
        case Ne(key=key, value=value):
            name = counter.next()
            return SqlFragment(
                f"NOT (metadata @> CAST(:{name} AS jsonb))", {name: _to_jsonb({key: value})}
            )
        case Gt() | Gte() | Lt() | Lte():
            name = counter.next()
            operator = NUMERIC_OPERATORS[type(node)]
            return SqlFragment(
                f"(metadata->>'{node.key}')::numeric {operator} :{name}", {name: node.value}
            )
        case In(key=key, values=values):
            name = counter.next()
            return SqlFragment(
                f"metadata->>'{key}' = ANY(:{name})", {name: [_as_text(v) for v in values]}
            )
        case Nin(key=key, values=values):
            name = counter.next()
            return SqlFragment(
                f"NOT (metadata->>'{key}' = ANY(:{name}))", {name: [_as_text(v) for v in values]}
            )
        case Contains(key=key, value=value):
            name = counter.next()
            return SqlFragment(f"metadata->>'{key}' LIKE :{name}", {name: f"%{value}%"})
        case ContainsIgnoreCase(key=key, value=value):
            name = counter.next()
            return SqlFragment(
                f"LOWER(metadata->>'{key}') LIKE :{name}", {name: f"%{str(value).lower()}%"}
            )
        case EqIgnoreCase(key=key, value=value):
            name = counter.next()
            return SqlFragment(f"LOWER(metadata->>'{key}') = :{name}", {name: str(value).lower()})
        case StartsWith(key=key, value=value):
            name = counter.next()
            return SqlFragment(f"metadata->>'{key}' LIKE :{name}", {name: f"{value}%"})
        case EndsWith(key=key, value=value):
            name = counter.next()
            return SqlFragment(f"metadata->>'{key}' LIKE :{name}", {name: f"%{value}"})
        case Like(key=key, pattern=pattern):
            name = counter.next()
            return SqlFragment(f"metadata->>'{key}' ~ :{name}", {name: pattern})
        case And(filters=filters):
            return _join(filters, "AND", counter)
        case Or(filters=filters):
            return _join(filters, "OR", counter)
        case Not(filter=inner):
            fragment = _lower(inner, counter)
            return SqlFragment(f"NOT ({fragment.sql})", fragment.params)
        case HasAnyLabel(labels=labels):
            name = counter.next()
            # Array overlap uses the GIN index on labels
            return SqlFragment(f"labels && CAST(:{name} AS text[])", {name: list(labels)})
        case _:
            raise UnsupportedFilterError(f"Unsupported filter type: {type(node).__name__}")


class SqlFilterConverter:
    """Converts PropertyFilter and EntityFilter trees to SQL fragments.

    Every leaf allocates one parameter named ``{param_prefix}{n}`` from a counter
    that lives for a single call, so names are unique within one compiled
    predicate and concurrent conversions never share state.
    """

    def __init__(self, param_prefix: str = "_filter_"):
        self.param_prefix = param_prefix

    def convert(self, filter: Optional[PropertyFilter]) -> SqlFragment:
        """Convert a metadata filter, or return EMPTY for None."""
        if filter is None:
            return EMPTY
        return _lower(filter, ParamCounter(self.param_prefix))

    def convert_entity_filter(self, filter: Optional[EntityFilter]) -> SqlFragment:
        """Convert an entity (label) filter, or return EMPTY for None."""
        if filter is None:
            return EMPTY
        return _lower(filter, ParamCounter(self.param_prefix))

    def combine_filters(
        self,
        metadata_filter: Optional[PropertyFilter],
        entity_filter: Optional[EntityFilter],
    ) -> SqlFragment:
        """Convert and conjoin a metadata filter and an entity filter.

        Both share one counter so their parameter names cannot collide.
        """
        if metadata_filter is None and entity_filter is None:
            return EMPTY

        counter = ParamCounter(self.param_prefix)
        fragments = [
            _lower(f, counter) for f in (metadata_filter, entity_filter) if f is not None
        ]
        if len(fragments) == 1:
            combined = fragments[0]
        else:
            metadata, entity = fragments
            combined = metadata.and_(entity)

        logger.trace(f"Compiled filter: {combined.sql} params: {dict(combined.params)}")
        return combined
