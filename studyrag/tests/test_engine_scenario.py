"""
Scenario: two students share one engine.

Tasks are indexed for both owners, then each question goes through the
full path (intent, search, context, answer or fallback) and chat turns
go through the session.
"""

import math
from datetime import datetime

import pytest
from unittest.mock import AsyncMock, Mock


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


class FakeUserData:
    def __init__(self, tasks=(), courses=()):
        self.tasks = list(tasks)
        self.courses = list(courses)

    async def get_tasks(self, owner_id):
        return [t for t in self.tasks if t["owner_id"] == owner_id]

    async def get_courses(self, owner_id):
        return [c for c in self.courses if c["owner_id"] == owner_id]

    async def get_study_sessions(self, course_id):
        return []


TASKS = [
    {
        "id": "t1",
        "owner_id": "alice",
        "title": "Calculus problem set",
        "type": "assignment",
        "priority": "high",
        "status": "todo",
        "due_date": datetime(2024, 3, 15),
        "course_id": "math",
    },
    {
        "id": "t2",
        "owner_id": "alice",
        "title": "Calculus quiz review",
        "status": "completed",
        "due_date": datetime(2024, 3, 1),
        "course_id": "math",
    },
    {
        "id": "t3",
        "owner_id": "bob",
        "title": "Calculus lab write-up",
        "status": "todo",
        "due_date": datetime(2024, 3, 20),
    },
]

COURSES = [
    {"id": "math", "owner_id": "alice", "code": "MATH101", "name": "Calculus I"},
]


def make_llm(reply="Assistant: Finish the calculus problem set before the 15th."):
    llm = Mock()
    llm.provider = "mock"
    llm.is_available = True
    llm.agenerate = AsyncMock(return_value=reply)
    return llm


async def build_engine(llm_client=None):
    from studyrag.common.config import StudyRagConfig
    from studyrag.common.kv_store import InMemoryKeyValueStore
    from studyrag.common.llm_client import LLMClient
    from studyrag.engine import create_engine

    engine = create_engine(
        config=StudyRagConfig(),
        kv_store=InMemoryKeyValueStore(),
        llm_client=llm_client or LLMClient(provider="anthropic"),
        embedding_service=TopicEmbedder(),
    )
    source = FakeUserData(tasks=TASKS, courses=COURSES)
    for owner in ("alice", "bob"):
        report = await engine.index_all_user_data(owner, source)
        assert report.success
    return engine


class TestAnswerScenario:
    @pytest.mark.asyncio
    async def test_pending_question_without_llm_lists_pending_only(self):
        engine = await build_engine()

        answer = await engine.answer_with_context("What calculus work is pending?", "alice")

        assert [s.id for s in answer.sources] == ["task_t1"]
        assert "Calculus problem set" in answer.answer
        assert "quiz review" not in answer.answer
        assert "lab write-up" not in answer.answer
        assert answer.confidence == 95.0
        assert answer.warnings == ["LLM not available - showing raw results"]

    @pytest.mark.asyncio
    async def test_pending_question_with_llm(self):
        llm = make_llm()
        engine = await build_engine(llm)

        answer = await engine.answer_with_context("What calculus work is pending?", "alice")

        assert answer.answer == "Finish the calculus problem set before the 15th."
        assert answer.warnings == []
        prompt = llm.agenerate.call_args.args[0]
        assert "PENDING/INCOMPLETE" in prompt
        assert "Calculus problem set" in prompt
        assert "Calculus lab write-up" not in prompt

    @pytest.mark.asyncio
    async def test_everything_completed(self):
        from studyrag.retriever.synthesizer import NOTHING_PENDING_TEMPLATE

        engine = await build_engine()
        assert await engine.indexer.index_task({**TASKS[0], "status": "completed"})

        answer = await engine.answer_with_context("What calculus work is pending?", "alice")

        assert answer.answer == NOTHING_PENDING_TEMPLATE
        assert answer.confidence == 95.0
        assert all(s.status == "completed" for s in answer.sources)

    @pytest.mark.asyncio
    async def test_owner_without_data(self):
        from studyrag.retriever.synthesizer import NO_DATA_TEMPLATE

        engine = await build_engine()

        answer = await engine.answer_with_context("What calculus work is pending?", "carol")

        assert answer.answer == NO_DATA_TEMPLATE
        assert answer.confidence == 0.0
        assert answer.sources == []


class TestSearchScenario:
    @pytest.mark.asyncio
    async def test_hybrid_search_is_owner_scoped(self):
        engine = await build_engine()

        results = await engine.hybrid_search("calculus", "bob")

        assert [r.id for r in results] == ["task_t3"]

    @pytest.mark.asyncio
    async def test_semantic_search_filters(self):
        from studyrag.common.schemas import ContentKind

        engine = await build_engine()

        results = await engine.semantic_search("calculus", "alice", kinds=[ContentKind.COURSE_MATERIAL])

        assert [r.id for r in results] == ["course_math"]

    @pytest.mark.asyncio
    async def test_similar_content(self):
        engine = await build_engine()

        results = await engine.get_similar_content("task_t1", "alice")

        assert {r.id for r in results} == {"task_t2", "course_math"}
        assert all(r.owner_id == "alice" for r in results)


class TestStoreScenario:
    @pytest.mark.asyncio
    async def test_stats_and_clear(self):
        engine = await build_engine()

        stats = await engine.get_vector_store_stats()
        assert stats.total_items == 4
        assert stats.by_kind == {"task": 3, "course_material": 1}
        assert stats.last_indexed is not None
        assert stats.storage_size > 0

        await engine.clear_vector_store()

        stats = await engine.get_vector_store_stats()
        assert stats.total_items == 0
        assert stats.last_indexed is None
        assert await engine.semantic_search("calculus", "alice") == []


class TestChatScenario:
    @pytest.mark.asyncio
    async def test_chat_keeps_history(self):
        llm = make_llm("Break the topic into small chunks and review them daily.")
        engine = await build_engine(llm)
        session = engine.new_session()

        first = await engine.chat("How do I study for exams?", session)
        await engine.chat("And for finals?", session)

        assert first == "Break the topic into small chunks and review them daily."
        assert len(session.history) == 4
        second_call = llm.agenerate.call_args_list[1]
        assert second_call.kwargs["history"] == [
            {"role": "user", "content": "How do I study for exams?"},
            {"role": "assistant", "content": first},
        ]
        assert "StudyBuddy" in second_call.kwargs["system"]

    @pytest.mark.asyncio
    async def test_chat_failure_returns_offline_message(self):
        from studyrag.engine import OFFLINE_RESPONSE

        llm = make_llm()
        llm.agenerate = AsyncMock(side_effect=RuntimeError("rate limited"))
        engine = await build_engine(llm)
        session = engine.new_session()

        reply = await engine.chat("How do I study for exams?", session)

        assert reply == OFFLINE_RESPONSE
        assert session.to_messages() == [{"role": "user", "content": "How do I study for exams?"}]

    @pytest.mark.asyncio
    async def test_chat_without_llm(self):
        from studyrag.engine import OFFLINE_RESPONSE

        engine = await build_engine()
        session = engine.new_session()

        assert await engine.chat("hello there", session) == OFFLINE_RESPONSE
        assert len(session.history) == 1

    @pytest.mark.asyncio
    async def test_session_window_from_config(self):
        engine = await build_engine()

        assert engine.new_session().window == 6
