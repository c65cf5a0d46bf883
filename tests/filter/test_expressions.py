"""Tests for filter expression construction and composition."""

import pytest

from pgvector_store.filter import (
    And,
    Eq,
    HasAnyLabel,
    In,
    Not,
    Or,
    all_of,
    any_of,
    eq,
    gte,
    has_any_label,
    in_,
    like,
    not_,
)


def test_operators_build_combinators():
    expression = (eq("type", "blog") & gte("score", 0.8)) | ~eq("status", "deleted")

    assert isinstance(expression, Or)
    left, right = expression.filters
    assert left == And((Eq("type", "blog"), gte("score", 0.8)))
    assert right == Not(Eq("status", "deleted"))


def test_expressions_are_immutable_and_hashable():
    expression = eq("owner", "alice")
    with pytest.raises(AttributeError):
        expression.key = "other"  # type: ignore[misc]
    assert hash(expression) == hash(eq("owner", "alice"))


def test_combinators_require_a_child():
    with pytest.raises(ValueError, match="at least one"):
        all_of()
    with pytest.raises(ValueError, match="at least one"):
        any_of()


def test_combinator_children_are_stored_as_tuple():
    combined = And([eq("a", 1), eq("b", 2)])
    assert combined.filters == (eq("a", 1), eq("b", 2))


@pytest.mark.parametrize("key", ["", "1abc", "name'; DROP TABLE x; --", "a b", "a'b"])
def test_invalid_property_keys_are_rejected(key):
    with pytest.raises(ValueError, match="Invalid property key"):
        eq(key, "value")


def test_key_validation_applies_to_every_leaf_kind():
    with pytest.raises(ValueError):
        in_("bad key", 1)
    with pytest.raises(ValueError):
        like("bad'key", ".*")


def test_dotted_and_dashed_keys_are_allowed():
    assert eq("source.system", "x").key == "source.system"
    assert eq("content-type", "x").key == "content-type"


def test_in_collects_values():
    assert in_("type", "blog", "news") == In("type", ("blog", "news"))


def test_has_any_label_accepts_strings_and_sequences():
    assert has_any_label("Chunk", "Special") == HasAnyLabel(("Chunk", "Special"))
    assert has_any_label(["Chunk", "Special"]) == HasAnyLabel(("Chunk", "Special"))


def test_not_helper():
    assert not_(eq("a", 1)) == ~eq("a", 1)
