"""
Indexer

Write path of the engine: embed content and upsert it into the vector
store. Entity helpers are meant to be called right after CRUD operations
and therefore never raise; a failed index must not break task creation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Union

from ..common.embedding_service import EmbeddingService
from ..common.schemas import (
    ContentKind,
    VectorizedRecord,
    TaskEntity,
    CourseEntity,
    StudySessionEntity,
    ChatMessageEntity,
)
from ..common.vector_store import VectorStore
from .record_builder import IndexItem, RecordBuilder

logger = logging.getLogger("studyrag.indexer.indexer")


class UserDataSource(Protocol):
    """Where full re-indexing reads an owner's entities from"""

    async def get_tasks(self, owner_id: str) -> Sequence[Union[TaskEntity, Dict[str, Any]]]: ...

    async def get_courses(self, owner_id: str) -> Sequence[Union[CourseEntity, Dict[str, Any]]]: ...

    async def get_study_sessions(
        self, course_id: str
    ) -> Sequence[Union[StudySessionEntity, Dict[str, Any]]]: ...


@dataclass
class IndexingReport:
    """Outcome of a full re-index for one owner"""
    tasks: int = 0
    courses: int = 0
    sessions: int = 0
    errors: List[str] = field(default_factory=list)
    success: bool = True

    @property
    def total(self) -> int:
        return self.tasks + self.courses + self.sessions


class Indexer:
    """
    Embeds and stores content.

    `index_content` propagates failures; everything built on top of it
    (batch and entity helpers) logs them and carries on.
    """

    def __init__(
        self,
        store: VectorStore,
        embedding_service: EmbeddingService,
        record_builder: Optional[RecordBuilder] = None,
    ):
        self._store = store
        self._embedding = embedding_service
        self._builder = record_builder or RecordBuilder()

    async def index_content(
        self,
        id: str,
        content: str,
        kind: ContentKind,
        metadata: Dict[str, Any],
    ) -> VectorizedRecord:
        """
        Embed content and upsert it, replacing any record with the same id.

        Raises:
            ValueError: missing owner in metadata, or embedding dimension
                differs from the store (DimensionMismatchError)
        """
        record = await self._index(self._builder.from_raw(id, content, kind, metadata))
        await self._store.mark_indexed()
        return record

    async def batch_index_content(self, items: Iterable[Union[IndexItem, Dict[str, Any]]]) -> int:
        """
        Index items sequentially.

        Per-item failures are logged and skipped. The last-indexed marker
        is updated once at the end.

        Returns:
            Number of items indexed
        """
        count = 0
        for item in items:
            try:
                if isinstance(item, dict):
                    item = IndexItem(**item)
                await self._index(item)
                count += 1
            except Exception as e:
                item_id = item.get("id") if isinstance(item, dict) else getattr(item, "id", item)
                logger.warning("Failed to index %s: %s", item_id, e)

        await self._store.mark_indexed()
        logger.info("Batch indexed %d item(s)", count)
        return count

    async def index_task(self, task: Union[TaskEntity, Dict[str, Any]]) -> bool:
        """Index a task; returns False instead of raising"""
        return await self._index_entity(TaskEntity, task, self._builder.from_task)

    async def index_course(self, course: Union[CourseEntity, Dict[str, Any]]) -> bool:
        """Index a course; returns False instead of raising"""
        return await self._index_entity(CourseEntity, course, self._builder.from_course)

    async def index_study_session(
        self, session: Union[StudySessionEntity, Dict[str, Any]]
    ) -> bool:
        """Index a study session; returns False instead of raising"""
        return await self._index_entity(
            StudySessionEntity, session, self._builder.from_study_session
        )

    async def index_chat_message(
        self, message: Union[ChatMessageEntity, Dict[str, Any]]
    ) -> bool:
        """Index a chat message; returns False instead of raising"""
        return await self._index_entity(
            ChatMessageEntity, message, self._builder.from_chat_message
        )

    async def index_all_user_data(self, owner_id: str, source: UserDataSource) -> IndexingReport:
        """
        Re-index every task, course and study session of one owner.

        Source failures are reported per collection; one failing course's
        sessions do not stop the others.
        """
        report = IndexingReport()
        logger.info("Starting full indexing for owner %s", owner_id)

        try:
            for task in await source.get_tasks(owner_id):
                if await self.index_task(task):
                    report.tasks += 1
                else:
                    report.errors.append(f"Task {self._entity_id(task)}: indexing failed")
        except Exception as e:
            report.errors.append(f"Tasks: {e}")

        try:
            courses = list(await source.get_courses(owner_id))
        except Exception as e:
            report.errors.append(f"Courses: {e}")
            courses = []

        for course in courses:
            if await self.index_course(course):
                report.courses += 1
            else:
                report.errors.append(f"Course {self._entity_id(course)}: indexing failed")

        for course in courses:
            course_id = self._entity_id(course)
            try:
                for session in await source.get_study_sessions(course_id):
                    if await self.index_study_session(session):
                        report.sessions += 1
                    else:
                        report.errors.append(f"Session {self._entity_id(session)}: indexing failed")
            except Exception as e:
                report.errors.append(f"Sessions for {course_id}: {e}")

        await self._store.mark_indexed()
        report.success = not report.errors
        logger.info(
            "Indexing complete: %d task(s), %d course(s), %d session(s), %d error(s)",
            report.tasks,
            report.courses,
            report.sessions,
            len(report.errors),
        )
        return report

    async def _index(self, item: IndexItem) -> VectorizedRecord:
        embedding = await self._embedding.embed(item.content)
        record = VectorizedRecord(
            id=item.id,
            content=item.content,
            embedding=embedding,
            kind=item.kind,
            metadata=item.metadata,
        )
        await self._store.upsert(record)
        return record

    async def _index_entity(self, model, entity, build) -> bool:
        try:
            if isinstance(entity, dict):
                entity = model.model_validate(entity)
            await self._index(build(entity))
            return True
        except Exception as e:
            logger.warning("Failed to index %s: %s", model.__name__, e)
            return False

    @staticmethod
    def _entity_id(entity) -> str:
        if isinstance(entity, dict):
            return str(entity.get("id") or entity.get("message_id") or "?")
        return str(getattr(entity, "id", "?"))
