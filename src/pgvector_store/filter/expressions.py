"""
Filter expressions over content element properties and labels.

Expressions are immutable trees built by callers and lowered to SQL by
SqlFilterConverter. Leaves compare a single metadata key; And/Or/Not combine
other expressions. HasAnyLabel is the one entity filter and targets the label
array rather than metadata.

Expressions compose with Python operators:

    (eq("type", "blog") & gte("score", 0.8)) | ~eq("status", "deleted")
"""

import re
from dataclasses import dataclass
from typing import Any, Sequence

# Keys are interpolated into the metadata path expression, values never are.
PROPERTY_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not PROPERTY_KEY_PATTERN.match(key):
        raise ValueError(f"Invalid property key for filtering: {key!r}")


@dataclass(frozen=True)
class PropertyFilter:
    """Base class for filter expression nodes."""

    def __and__(self, other: "PropertyFilter") -> "And":
        return And((self, other))

    def __or__(self, other: "PropertyFilter") -> "Or":
        return Or((self, other))

    def __invert__(self) -> "Not":
        return Not(self)


@dataclass(frozen=True)
class _KeyValueFilter(PropertyFilter):
    key: str
    value: Any

    def __post_init__(self):
        _check_key(self.key)


@dataclass(frozen=True)
class Eq(_KeyValueFilter):
    """Metadata contains key with exactly this value."""


@dataclass(frozen=True)
class Ne(_KeyValueFilter):
    """Metadata does not contain key with this value."""


@dataclass(frozen=True)
class Gt(_KeyValueFilter):
    """Numeric value of key is greater than value."""


@dataclass(frozen=True)
class Gte(_KeyValueFilter):
    """Numeric value of key is greater than or equal to value."""


@dataclass(frozen=True)
class Lt(_KeyValueFilter):
    """Numeric value of key is less than value."""


@dataclass(frozen=True)
class Lte(_KeyValueFilter):
    """Numeric value of key is less than or equal to value."""


@dataclass(frozen=True)
class EqIgnoreCase(_KeyValueFilter):
    """Text value of key equals value, ignoring case."""


@dataclass(frozen=True)
class Contains(_KeyValueFilter):
    """Text value of key contains value."""


@dataclass(frozen=True)
class ContainsIgnoreCase(_KeyValueFilter):
    """Text value of key contains value, ignoring case."""


@dataclass(frozen=True)
class StartsWith(_KeyValueFilter):
    """Text value of key starts with value."""


@dataclass(frozen=True)
class EndsWith(_KeyValueFilter):
    """Text value of key ends with value."""


@dataclass(frozen=True)
class Like(PropertyFilter):
    """Text value of key matches a regular expression.

    The pattern is passed to the database as is; callers own its validity.
    """

    key: str
    pattern: str

    def __post_init__(self):
        _check_key(self.key)


@dataclass(frozen=True)
class In(PropertyFilter):
    """Text value of key is one of values."""

    key: str
    values: tuple[Any, ...]

    def __post_init__(self):
        _check_key(self.key)
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True)
class Nin(PropertyFilter):
    """Text value of key is none of values."""

    key: str
    values: tuple[Any, ...]

    def __post_init__(self):
        _check_key(self.key)
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True)
class And(PropertyFilter):
    filters: tuple[PropertyFilter, ...]

    def __post_init__(self):
        object.__setattr__(self, "filters", tuple(self.filters))
        if not self.filters:
            raise ValueError("And requires at least one filter")


@dataclass(frozen=True)
class Or(PropertyFilter):
    filters: tuple[PropertyFilter, ...]

    def __post_init__(self):
        object.__setattr__(self, "filters", tuple(self.filters))
        if not self.filters:
            raise ValueError("Or requires at least one filter")


@dataclass(frozen=True)
class Not(PropertyFilter):
    filter: PropertyFilter


@dataclass(frozen=True)
class EntityFilter(PropertyFilter):
    """Base class for filters on entity labels rather than metadata."""


@dataclass(frozen=True)
class HasAnyLabel(EntityFilter):
    """Entity carries at least one of labels."""

    labels: tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "labels", tuple(self.labels))


# Factory helpers, mirroring the operator names used in query strings


def eq(key: str, value: Any) -> Eq:
    return Eq(key, value)


def ne(key: str, value: Any) -> Ne:
    return Ne(key, value)


def gt(key: str, value: Any) -> Gt:
    return Gt(key, value)


def gte(key: str, value: Any) -> Gte:
    return Gte(key, value)


def lt(key: str, value: Any) -> Lt:
    return Lt(key, value)


def lte(key: str, value: Any) -> Lte:
    return Lte(key, value)


def in_(key: str, *values: Any) -> In:
    return In(key, values)


def nin(key: str, *values: Any) -> Nin:
    return Nin(key, values)


def contains(key: str, value: str) -> Contains:
    return Contains(key, value)


def contains_ignore_case(key: str, value: str) -> ContainsIgnoreCase:
    return ContainsIgnoreCase(key, value)


def eq_ignore_case(key: str, value: str) -> EqIgnoreCase:
    return EqIgnoreCase(key, value)


def starts_with(key: str, value: str) -> StartsWith:
    return StartsWith(key, value)


def ends_with(key: str, value: str) -> EndsWith:
    return EndsWith(key, value)


def like(key: str, pattern: str) -> Like:
    return Like(key, pattern)


def all_of(*filters: PropertyFilter) -> And:
    return And(filters)


def any_of(*filters: PropertyFilter) -> Or:
    return Or(filters)


def not_(filter: PropertyFilter) -> Not:
    return Not(filter)


def has_any_label(*labels: str | Sequence[str]) -> HasAnyLabel:
    flattened: list[str] = []
    for label in labels:
        if isinstance(label, str):
            flattened.append(label)
        else:
            flattened.extend(label)
    return HasAnyLabel(tuple(flattened))
