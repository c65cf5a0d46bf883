"""End-to-end tests against Postgres with pgvector and pg_trgm."""

import pytest

from pgvector_store.filter import eq, gte, has_any_label, in_
from pgvector_store.repository.sql_filter_converter import SqlFilterConverter
from pgvector_store.schemas.content import Chunk, Document
from pgvector_store.schemas.search import SearchRetrievalMode, TextSimilaritySearchRequest

pytestmark = [pytest.mark.postgres, pytest.mark.asyncio]


def assert_well_formed(results, threshold=0.0):
    scores = [result.score for result in results]
    assert all(0.0 <= score <= 1.0 for score in scores)
    assert scores == sorted(scores, reverse=True)
    assert all(score >= threshold for score in scores)


async def test_lexical_and_fuzzy_find_kubernetes_chunk(lexical_store):
    chunk = Chunk(id="k8s", text="Kubernetes is a container orchestration platform")
    await lexical_store.write_chunks([chunk])

    lexical = await lexical_store.text_search(
        TextSimilaritySearchRequest(query="kubernetes", similarity_threshold=0.0)
    )
    assert [result.match.id for result in lexical] == ["k8s"]
    assert lexical[0].score > 0

    fuzzy = await lexical_store.fuzzy_search(
        TextSimilaritySearchRequest(query="kubernetis", similarity_threshold=0.3)
    )
    assert [result.match.id for result in fuzzy] == ["k8s"]
    assert_well_formed(fuzzy, 0.2)


async def test_lexical_ranks_chunk_with_both_terms_first(lexical_store):
    await lexical_store.write_chunks(
        [
            Chunk(id="learning", text="Learning to cook takes years of learning"),
            Chunk(id="ml", text="Machine learning models learn from data"),
        ]
    )

    results = await lexical_store.text_search(
        TextSimilaritySearchRequest(query="machine learning")
    )

    assert results[0].match.id == "ml"
    assert_well_formed(results)


async def test_operator_query(lexical_store):
    await lexical_store.write_chunks(
        [
            Chunk(id="ml", text="Machine learning models"),
            Chunk(id="java", text="Java virtual machine internals"),
        ]
    )

    results = await lexical_store.text_search(
        TextSimilaritySearchRequest(query="machine AND NOT learning")
    )

    assert [result.match.id for result in results] == ["java"]


async def test_loose_boolean_queries_run(lexical_store):
    await lexical_store.write_chunks(
        [
            Chunk(id="ml", text="Machine learning models"),
            Chunk(id="dl", text="Deep learning with neural networks"),
            Chunk(id="cook", text="Learning to cook"),
        ]
    )

    results = await lexical_store.text_search(
        TextSimilaritySearchRequest(query="machine learning OR deep learning")
    )
    assert {result.match.id for result in results} == {"ml", "dl"}
    assert_well_formed(results)

    for query in ("great tool!", "rock & roll music", "kubernetes AND docker compose"):
        assert await lexical_store.text_search(TextSimilaritySearchRequest(query=query)) == []


async def test_hybrid_with_loose_boolean_query_reaches_fallback(store):
    await store.write_chunks(
        [Chunk(id="k8s", text="Kubernetes is a container orchestration platform")]
    )

    results = await store.hybrid_search(
        TextSimilaritySearchRequest(query="kubernetis AND dockr!")
    )

    assert [result.match.id for result in results] == ["k8s"]


async def test_property_filter_requires_every_pair(lexical_store):
    await lexical_store.write_chunks(
        [
            Chunk(
                id="both",
                text="Streams in depth",
                metadata={"type": "blog", "language": "java"},
            ),
            Chunk(
                id="type-only",
                text="Streams basics",
                metadata={"type": "blog", "language": "go"},
            ),
            Chunk(
                id="lang-only",
                text="Streams reference",
                metadata={"type": "doc", "language": "java"},
            ),
        ]
    )

    results = await lexical_store.search(
        TextSimilaritySearchRequest(query="streams"),
        SearchRetrievalMode.TEXT,
        property_filter=eq("type", "blog") & eq("language", "java"),
    )

    assert [result.match.id for result in results] == ["both"]


async def test_numeric_membership_and_label_filters(lexical_store):
    await lexical_store.write_chunks(
        [
            Chunk(id="a", text="graph databases", metadata={"stars": 5, "lang": "en"}),
            Chunk(
                id="b",
                text="graph theory",
                metadata={"stars": 2, "lang": "en"},
                labels=frozenset({"Special"}),
            ),
            Chunk(id="c", text="graph drawing", metadata={"stars": 4, "lang": "de"}),
        ]
    )
    request = TextSimilaritySearchRequest(query="graph")

    by_stars = await lexical_store.search(
        request, SearchRetrievalMode.TEXT, property_filter=gte("stars", 4)
    )
    assert {result.match.id for result in by_stars} == {"a", "c"}

    by_lang = await lexical_store.search(
        request, SearchRetrievalMode.FUZZY, property_filter=in_("lang", "de")
    )
    assert [result.match.id for result in by_lang] == ["c"]

    by_label = await lexical_store.search(
        request, SearchRetrievalMode.TEXT, entity_filter=has_any_label("Special")
    )
    assert [result.match.id for result in by_label] == ["b"]
    assert by_label[0].match.labels == frozenset({"Special"})


async def test_text_search_with_compiled_predicate(lexical_store):
    await lexical_store.write_chunks(
        [
            Chunk(id="x", text="observability stack", metadata={"team": "infra"}),
            Chunk(id="y", text="observability budget", metadata={"team": "finance"}),
        ]
    )
    predicate = SqlFilterConverter().convert(eq("team", "infra"))

    results = await lexical_store.text_search_with_filter(
        TextSimilaritySearchRequest(query="observability"), predicate
    )

    assert [result.match.id for result in results] == ["x"]


async def test_documents_are_never_search_results(lexical_store):
    await lexical_store.save(Document(id="doc", uri="file:///k8s.md", text="Kubernetes handbook"))
    await lexical_store.write_chunks([Chunk(id="c", text="Kubernetes pods", parent_id="doc")])

    results = await lexical_store.text_search(TextSimilaritySearchRequest(query="kubernetes"))

    assert [result.match.id for result in results] == ["c"]


async def test_vector_search(store):
    await store.write_chunks(
        [
            Chunk(id="k8s", text="Kubernetes container scheduling"),
            Chunk(id="py", text="Python packaging guide"),
        ]
    )

    results = await store.vector_search(
        TextSimilaritySearchRequest(query="kubernetes container", similarity_threshold=0.9)
    )

    assert results[0].match.id == "k8s"
    assert results[0].score == pytest.approx(1.0)
    assert all(result.match.id != "py" for result in results)
    assert_well_formed(results, 0.5)


async def test_hybrid_search_fuses_scores(store):
    await store.write_chunks(
        [
            Chunk(id="ml", text="Machine learning with Python"),
            Chunk(id="java", text="Java machine code"),
        ]
    )

    results = await store.hybrid_search(TextSimilaritySearchRequest(query="machine learning"))

    assert [result.match.id for result in results] == ["ml"]
    assert 0.5 < results[0].score <= 1.0


async def test_hybrid_without_lexical_match_equals_fuzzy(store):
    await store.write_chunks(
        [Chunk(id="k8s", text="Kubernetes is a container orchestration platform")]
    )
    request = TextSimilaritySearchRequest(query="kubernetis", similarity_threshold=0.3)

    hybrid = await store.hybrid_search(request)
    fuzzy = await store.fuzzy_search(request)

    assert [r.match.id for r in hybrid] == [r.match.id for r in fuzzy] == ["k8s"]
    assert [r.score for r in hybrid] == [r.score for r in fuzzy]


async def test_upsert_replaces_by_id(lexical_store):
    await lexical_store.write_chunks([Chunk(id="c", text="old wording")])
    await lexical_store.write_chunks([Chunk(id="c", text="new phrasing")])

    assert await lexical_store.text_search(TextSimilaritySearchRequest(query="old")) == []
    found = await lexical_store.find_by_id("c")
    assert isinstance(found, Chunk)
    assert found.text == "new phrasing"
    assert (await lexical_store.info()).chunk_count == 1


async def test_lookups_and_cascading_delete(store):
    await store.save(Document(id="doc", uri="file:///guide.md", title="Guide"))
    await store.write_chunks(
        [
            Chunk(id="c1", text="first part", parent_id="doc"),
            Chunk(id="c2", text="second part", parent_id="c1"),
            Chunk(id="other", text="unrelated"),
        ]
    )

    assert await store.exists_root_with_uri("file:///guide.md")
    root = await store.find_content_root_by_uri("file:///guide.md")
    assert isinstance(root, Document)
    assert root.title == "Guide"
    assert [c.id for c in await store.find_all_chunks_by_id(["c2", "c1"])] == ["c2", "c1"]

    info = await store.info()
    assert (info.chunk_count, info.document_count, info.content_element_count) == (3, 1, 4)
    assert info.has_embeddings

    deletion = await store.delete_root_and_descendants("file:///guide.md")

    assert deletion is not None
    assert deletion.deleted_count == 3
    assert not await store.exists_root_with_uri("file:///guide.md")
    assert await store.find_by_id("other") is not None
    assert await store.delete_root_and_descendants("file:///guide.md") is None


async def test_provision_is_idempotent(store):
    await store.provision()
    await store.provision()
    assert (await store.info()).content_element_count == 0
