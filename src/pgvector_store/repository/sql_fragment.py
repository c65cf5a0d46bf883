"""SQL fragments that carry their own parameter bindings."""

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

# Matches SQLAlchemy text() bind names, skipping '::type' casts
PLACEHOLDER_PATTERN = re.compile(r"(?<![:\w]):(\w+)(?!:)")


@dataclass(frozen=True)
class SqlFragment:
    """A predicate or clause paired with the parameters it references.

    Fragments are combined rather than concatenated as strings so that text
    and bindings can never drift apart. An empty fragment means "no
    restriction" and disappears when conjoined.
    """

    sql: str = ""
    params: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def __hash__(self) -> int:
        # Bound values may be lists, so only the names take part
        return hash((self.sql, frozenset(self.params)))

    def is_empty(self) -> bool:
        return not self.sql.strip()

    def placeholders(self) -> set[str]:
        """Names of all bind parameters referenced in the fragment text."""
        return set(PLACEHOLDER_PATTERN.findall(self.sql))

    def append_to(self, existing_clause: str) -> str:
        """Conjoin this fragment, parenthesized, onto an existing clause.

        Returns the existing clause unchanged when this fragment is empty.
        """
        if self.is_empty():
            return existing_clause
        if not existing_clause.strip():
            return self.sql
        return f"{existing_clause} AND ({self.sql})"

    def and_(self, other: "SqlFragment") -> "SqlFragment":
        """Conjoin two fragments, merging their bindings."""
        if other.is_empty():
            return self
        if self.is_empty():
            return other
        return SqlFragment(
            other.append_to(f"({self.sql})"),
            merge_params(self.params, other.params),
        )

    def bind(self, **params: Any) -> dict[str, Any]:
        """Return this fragment's bindings merged with a statement's own parameters."""
        return merge_params(params, self.params)


EMPTY = SqlFragment()


def merge_params(*mappings: Mapping[str, Any]) -> dict[str, Any]:
    """Merge parameter maps, refusing to rebind a name to a different value."""
    merged: dict[str, Any] = {}
    for mapping in mappings:
        for name, value in mapping.items():
            if name in merged and merged[name] != value:
                raise ValueError(f"Parameter {name!r} bound twice with different values")
            merged[name] = value
    return merged
