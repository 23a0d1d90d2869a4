"""
Tests for Searcher

Semantic, keyword and hybrid search over an in-memory store, with a
topic embedder so similarities are exact.
"""

import math

import pytest
from unittest.mock import AsyncMock, Mock

FUTURE_MS = 4_000_000_000_000  # recency pinned at 1.0


class TopicEmbedder:
    """One axis per topic word; unknown text lands on the last axis"""

    TOPICS = ["calculus", "physics", "essay"]
    dimension = 4
    model = "topic-stub"

    async def embed(self, text, timeout=None):
        text = text.lower()
        vector = [1.0 if topic in text else 0.0 for topic in self.TOPICS]
        vector.append(0.0 if any(vector) else 1.0)
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector]


def make_record(record_id, content, embedding, owner="user_a", kind="note", **metadata):
    from studyrag.common.schemas import VectorizedRecord

    return VectorizedRecord(
        id=record_id,
        content=content,
        embedding=embedding,
        kind=kind,
        metadata={"ownerId": owner, "title": record_id, **metadata},
        created_at_ms=FUTURE_MS,
    )


@pytest.fixture
def store():
    from studyrag.common.kv_store import InMemoryKeyValueStore
    from studyrag.common.vector_store import VectorStore
    return VectorStore(InMemoryKeyValueStore())


@pytest.fixture
def searcher(store):
    from studyrag.retriever.searcher import Searcher
    return Searcher(store, TopicEmbedder())


CALCULUS = [1.0, 0.0, 0.0, 0.0]
PHYSICS = [0.0, 1.0, 0.0, 0.0]
OTHER = [0.0, 0.0, 0.0, 1.0]


class TestSemanticSearch:
    @pytest.mark.asyncio
    async def test_tenant_isolation(self, store, searcher):
        await store.upsert(make_record("a_calc", "calculus notes", CALCULUS, owner="user_a"))
        await store.upsert(make_record("b_calc", "calculus notes", CALCULUS, owner="user_b"))

        results = await searcher.semantic_search("calculus", "user_a")

        assert [r.id for r in results] == ["a_calc"]
        assert all(r.owner_id == "user_a" for r in results)

    @pytest.mark.asyncio
    async def test_similarity_floor(self, store, searcher):
        await store.upsert(make_record("calc", "calculus notes", CALCULUS))
        await store.upsert(make_record("phys", "physics notes", PHYSICS))

        results = await searcher.semantic_search("calculus", "user_a")

        assert [r.id for r in results] == ["calc"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[0].relevance_score == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_status_and_priority_filters(self, store, searcher):
        await store.upsert(make_record("t1", "calculus set", CALCULUS, kind="task", status="todo", priority="high"))
        await store.upsert(make_record("t2", "calculus quiz", CALCULUS, kind="task", status="completed", priority="high"))
        await store.upsert(make_record("t3", "calculus reading", CALCULUS, kind="task", status="todo", priority="low"))

        results = await searcher.semantic_search(
            "calculus",
            "user_a",
            status_filter=["todo", "in_progress"],
            priority_filter=["high"],
        )

        assert [r.id for r in results] == ["t1"]

    @pytest.mark.asyncio
    async def test_kind_and_course_filters(self, store, searcher):
        await store.upsert(make_record("t1", "calculus set", CALCULUS, kind="task", courseId="math"))
        await store.upsert(make_record("c1", "calculus course", CALCULUS, kind="course_material", courseId="math"))
        await store.upsert(make_record("t2", "calculus set", CALCULUS, kind="task", courseId="other"))

        results = await searcher.semantic_search("calculus", "user_a", kinds=["task"], course_id="math")

        assert [r.id for r in results] == ["t1"]

    @pytest.mark.asyncio
    async def test_limit(self, store, searcher):
        for i in range(8):
            await store.upsert(make_record(f"n{i}", "calculus", CALCULUS))

        results = await searcher.semantic_search("calculus", "user_a", limit=3)

        assert [r.id for r in results] == ["n0", "n1", "n2"]

    @pytest.mark.asyncio
    async def test_empty_query_or_owner(self, store, searcher):
        await store.upsert(make_record("calc", "calculus notes", CALCULUS))

        assert await searcher.semantic_search("", "user_a") == []
        assert await searcher.semantic_search("   ", "user_a") == []
        assert await searcher.semantic_search("calculus", "") == []

    @pytest.mark.asyncio
    async def test_embedding_failure_returns_empty(self, store, caplog):
        import logging
        from studyrag.retriever.searcher import Searcher

        await store.upsert(make_record("calc", "calculus notes", CALCULUS))
        embedder = Mock()
        embedder.embed = AsyncMock(side_effect=RuntimeError("provider down"))
        searcher = Searcher(store, embedder)

        with caplog.at_level(logging.WARNING, logger="studyrag.retriever.searcher"):
            results = await searcher.semantic_search("calculus", "user_a")

        assert results == []
        assert "provider down" in caplog.text

    @pytest.mark.asyncio
    async def test_stored_dimension_mismatch_returns_empty(self, store, searcher):
        await store.upsert(make_record("calc", "calculus notes", [1.0, 0.0]))

        assert await searcher.semantic_search("calculus", "user_a") == []


class TestKeywordSearch:
    @pytest.mark.asyncio
    async def test_fraction_of_tokens(self, store, searcher):
        await store.upsert(make_record("both", "Calculus homework chapter 3", OTHER))
        await store.upsert(make_record("one", "calculus only", OTHER))
        await store.upsert(make_record("none", "physics lab", OTHER))

        results = await searcher.keyword_search("calculus homework", "user_a")

        assert [(r.id, r.relevance_score) for r in results] == [("both", 1.0), ("one", 0.5)]
        assert results[1].similarity == 0.5

    @pytest.mark.asyncio
    async def test_title_matches(self, store, searcher):
        await store.upsert(make_record("essay_draft", "first draft", OTHER))

        results = await searcher.keyword_search("essay_draft", "user_a")

        assert [r.id for r in results] == ["essay_draft"]

    @pytest.mark.asyncio
    async def test_owner_scoped(self, store, searcher):
        await store.upsert(make_record("b", "calculus", OTHER, owner="user_b"))

        assert await searcher.keyword_search("calculus", "user_a") == []


class TestHybridSearch:
    @pytest.mark.asyncio
    async def test_merge_weights(self, store, searcher):
        await store.upsert(make_record("both", "calculus homework chapter 3", CALCULUS))
        await store.upsert(make_record("keyword_only", "homework sheet", OTHER))

        results = await searcher.hybrid_search("calculus homework", "user_a")
        by_id = {r.id: r for r in results}

        # semantic relevance 0.7 * 1.0 + 0.2 * 1.0 = 0.9, keyword score 1.0
        assert by_id["both"].relevance_score == pytest.approx(0.7 * 0.9 + 0.3 * 1.0)
        assert by_id["both"].similarity == pytest.approx(1.0)
        assert by_id["keyword_only"].relevance_score == pytest.approx(0.5)
        assert by_id["keyword_only"].similarity == pytest.approx(0.5)
        assert [r.id for r in results] == ["both", "keyword_only"]

    @pytest.mark.asyncio
    async def test_semantic_only_keeps_score(self, store, searcher):
        await store.upsert(make_record("calc", "derivatives and limits", CALCULUS))

        results = await searcher.hybrid_search("calculus", "user_a")

        assert len(results) == 1
        assert results[0].relevance_score == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_kind_filter_applies_to_keyword_path(self, store, searcher):
        await store.upsert(make_record("note", "homework tips", OTHER, kind="note"))
        await store.upsert(make_record("task", "homework sheet", OTHER, kind="task"))

        results = await searcher.hybrid_search("homework", "user_a", kinds=["task"])

        assert [r.id for r in results] == ["task"]

    @pytest.mark.asyncio
    async def test_limit(self, store, searcher):
        for i in range(6):
            await store.upsert(make_record(f"n{i}", "homework", OTHER))

        assert len(await searcher.hybrid_search("homework", "user_a", limit=2)) == 2


class TestSimilarContent:
    @pytest.mark.asyncio
    async def test_excludes_source_and_sorts(self, store, searcher):
        await store.upsert(make_record("src", "calculus", CALCULUS))
        await store.upsert(make_record("close", "calculus + physics", [0.8, 0.6, 0.0, 0.0]))
        await store.upsert(make_record("same", "calculus again", CALCULUS))
        await store.upsert(make_record("far", "physics", PHYSICS))

        results = await searcher.get_similar_content("src", "user_a")

        assert [r.id for r in results] == ["same", "close"]
        assert all(r.relevance_score == r.similarity for r in results)

    @pytest.mark.asyncio
    async def test_floor_is_strict(self, store, searcher):
        await store.upsert(make_record("src", "a", [1.0, 0.0, 0.0, 0.0]))
        await store.upsert(make_record("half", "b", [0.5, math.sqrt(0.75), 0.0, 0.0]))

        results = await searcher.get_similar_content("src", "user_a", min_similarity=0.5)

        assert results == []

    @pytest.mark.asyncio
    async def test_source_lookup_is_owner_scoped(self, store, searcher):
        await store.upsert(make_record("b_src", "calculus", CALCULUS, owner="user_b"))
        await store.upsert(make_record("a_calc", "calculus", CALCULUS, owner="user_a"))

        assert await searcher.get_similar_content("b_src", "user_a") == []

    @pytest.mark.asyncio
    async def test_other_owners_never_returned(self, store, searcher):
        await store.upsert(make_record("src", "calculus", CALCULUS, owner="user_a"))
        await store.upsert(make_record("b_calc", "calculus", CALCULUS, owner="user_b"))

        assert await searcher.get_similar_content("src", "user_a") == []

    @pytest.mark.asyncio
    async def test_missing_source(self, searcher):
        assert await searcher.get_similar_content("nope", "user_a") == []
