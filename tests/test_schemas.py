"""Tests for content element and search request types."""

import pytest
from pydantic import ValidationError

from pgvector_store.schemas import (
    Chunk,
    Document,
    GenericContentElement,
    SearchRetrievalMode,
    TextSimilaritySearchRequest,
)


def test_chunk_labels_include_kind_labels():
    chunk = Chunk(id="c1", text="hello", labels=frozenset({"Special"}))
    assert chunk.all_labels() == {"ContentElement", "Chunk", "Retrievable", "Special"}


def test_document_labels():
    assert Document(id="d1", uri="file:///a.md").all_labels() == {
        "ContentElement",
        "Document",
        "ContentRoot",
    }


def test_generic_element_labels():
    assert GenericContentElement(id="g1").all_labels() == {"ContentElement"}


def test_chunk_urtext_defaults_to_text():
    assert Chunk(id="c1", text="hello").urtext == "hello"
    assert Chunk(id="c1", text="hello", urtext="# Hello").urtext == "# Hello"


def test_request_defaults():
    request = TextSimilaritySearchRequest(query="kubernetes")
    assert request.top_k == 10
    assert request.similarity_threshold == 0.0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"query": "x", "top_k": 0},
        {"query": "x", "similarity_threshold": 1.5},
        {"query": "x", "similarity_threshold": -0.1},
        {"query": ""},
        {"query": "   "},
    ],
)
def test_invalid_requests_are_rejected(kwargs):
    with pytest.raises(ValidationError):
        TextSimilaritySearchRequest(**kwargs)


def test_request_is_immutable():
    request = TextSimilaritySearchRequest(query="x")
    with pytest.raises(ValidationError):
        request.top_k = 3  # type: ignore[misc]


def test_retrieval_modes_parse_from_strings():
    assert SearchRetrievalMode("hybrid") is SearchRetrievalMode.HYBRID
    assert SearchRetrievalMode("text") is SearchRetrievalMode.TEXT
