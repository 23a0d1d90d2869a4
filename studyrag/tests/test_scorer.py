"""Tests for RelevanceScorer."""

import pytest

DAY_MS = 24 * 60 * 60 * 1000
NOW = 1_700_000_000_000


def make_record(record_id, embedding, kind="note", created_at_ms=NOW):
    from studyrag.common.schemas import VectorizedRecord

    return VectorizedRecord(
        id=record_id,
        content=f"content of {record_id}",
        embedding=embedding,
        kind=kind,
        metadata={"ownerId": "user_a", "title": record_id},
        created_at_ms=created_at_ms,
    )


@pytest.fixture
def scorer():
    from studyrag.retriever.scorer import RelevanceScorer
    return RelevanceScorer()


class TestRecency:
    def test_new_content_scores_one(self, scorer):
        assert scorer.recency_score(NOW, NOW) == 1.0

    def test_linear_decay(self, scorer):
        assert scorer.recency_score(NOW - 15 * DAY_MS, NOW) == pytest.approx(0.5)

    def test_floored_at_zero(self, scorer):
        assert scorer.recency_score(NOW - 45 * DAY_MS, NOW) == 0.0

    def test_future_content_capped_at_one(self, scorer):
        assert scorer.recency_score(NOW + 10 * DAY_MS, NOW) == 1.0

    def test_window_is_configurable(self):
        from studyrag.common.config import ScoringConfig
        from studyrag.retriever.scorer import RelevanceScorer

        scorer = RelevanceScorer(ScoringConfig(recency_window_ms=10 * DAY_MS))

        assert scorer.recency_score(NOW - 5 * DAY_MS, NOW) == pytest.approx(0.5)


class TestTypeBoost:
    def test_task_with_deadline_vocabulary(self, scorer):
        from studyrag.common.schemas import ContentKind

        assert scorer.type_boost(ContentKind.TASK, "When is my essay DUE?") == 0.3

    def test_note_with_explanation_vocabulary(self, scorer):
        from studyrag.common.schemas import ContentKind

        assert scorer.type_boost(ContentKind.NOTE, "Explain recursion") == 0.3

    def test_study_session_with_study_vocabulary(self, scorer):
        from studyrag.common.schemas import ContentKind

        assert scorer.type_boost(ContentKind.STUDY_SESSION, "How long did I study?") == 0.3

    def test_no_boost_for_mismatched_kind(self, scorer):
        from studyrag.common.schemas import ContentKind

        assert scorer.type_boost(ContentKind.COURSE_MATERIAL, "what is due") == 0.0
        assert scorer.type_boost(ContentKind.TASK, "explain recursion") == 0.0
        assert scorer.type_boost(ContentKind.CHAT_HISTORY, "study task") == 0.0


class TestScore:
    def test_relevance_formula(self, scorer):
        record = make_record("task_1", [0.6, 0.8], kind="task", created_at_ms=NOW - 15 * DAY_MS)

        result = scorer.score([1.0, 0.0], record, "what is due", now=NOW)

        assert result.similarity == pytest.approx(0.6)
        assert result.relevance_score == pytest.approx(0.7 * 0.6 + 0.2 * 0.5 + 0.1 * 0.3)
        assert result.id == "task_1"

    def test_relevance_monotonic_in_similarity(self, scorer):
        low = scorer.score([1.0, 0.0], make_record("a", [0.6, 0.8]), "query", now=NOW)
        high = scorer.score([1.0, 0.0], make_record("b", [0.8, 0.6]), "query", now=NOW)

        assert high.relevance_score > low.relevance_score

    def test_score_does_not_mutate_record(self, scorer):
        record = make_record("a", [1.0, 0.0])

        scorer.score([1.0, 0.0], record, "query", now=NOW)

        assert not hasattr(record, "similarity")

    def test_score_rejects_dimension_mismatch(self, scorer):
        from studyrag.common.vector_store import DimensionMismatchError

        with pytest.raises(DimensionMismatchError):
            scorer.score([1.0, 0.0, 0.0], make_record("a", [1.0, 0.0]), "query", now=NOW)


class TestRank:
    def test_sorted_thresholded_and_limited(self, scorer):
        records = [
            make_record("weak", [0.6, 0.8]),
            make_record("orthogonal", [0.0, 1.0]),
            make_record("strong", [1.0, 0.0]),
            make_record("medium", [0.8, 0.6]),
        ]

        results = scorer.rank([1.0, 0.0], records, "query", min_similarity=0.5, now=NOW)

        assert [r.id for r in results] == ["strong", "medium", "weak"]
        assert [r.id for r in scorer.rank([1.0, 0.0], records, "query", min_similarity=0.5, limit=2, now=NOW)] == [
            "strong",
            "medium",
        ]

    def test_ties_keep_store_order(self, scorer):
        records = [make_record(f"r{i}", [1.0, 0.0]) for i in range(4)]

        results = scorer.rank([1.0, 0.0], records, "query", now=NOW)

        assert [r.id for r in results] == ["r0", "r1", "r2", "r3"]

    def test_recency_breaks_equal_similarity(self, scorer):
        records = [
            make_record("old", [1.0, 0.0], created_at_ms=NOW - 20 * DAY_MS),
            make_record("new", [1.0, 0.0], created_at_ms=NOW),
        ]

        results = scorer.rank([1.0, 0.0], records, "query", now=NOW)

        assert [r.id for r in results] == ["new", "old"]

    def test_dimension_mismatch_skipped(self, scorer, caplog):
        import logging

        records = [make_record("ok", [1.0, 0.0]), make_record("bad", [1.0, 0.0, 0.0])]

        with caplog.at_level(logging.WARNING, logger="studyrag.retriever.scorer"):
            results = scorer.rank([1.0, 0.0], records, "query", now=NOW)

        assert [r.id for r in results] == ["ok"]
        assert "dimension" in caplog.text

    def test_empty_input(self, scorer):
        assert scorer.rank([1.0, 0.0], [], "query") == []
