"""Filter expressions for restricting searches by metadata and labels."""

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
    all_of,
    any_of,
    contains,
    contains_ignore_case,
    ends_with,
    eq,
    eq_ignore_case,
    gt,
    gte,
    has_any_label,
    in_,
    like,
    lt,
    lte,
    ne,
    nin,
    not_,
    starts_with,
)

__all__ = [
    "And",
    "Contains",
    "ContainsIgnoreCase",
    "EndsWith",
    "EntityFilter",
    "Eq",
    "EqIgnoreCase",
    "Gt",
    "Gte",
    "HasAnyLabel",
    "In",
    "Like",
    "Lt",
    "Lte",
    "Ne",
    "Nin",
    "Not",
    "Or",
    "PropertyFilter",
    "StartsWith",
    "all_of",
    "any_of",
    "contains",
    "contains_ignore_case",
    "ends_with",
    "eq",
    "eq_ignore_case",
    "gt",
    "gte",
    "has_any_label",
    "in_",
    "like",
    "lt",
    "lte",
    "ne",
    "nin",
    "not_",
    "starts_with",
]
