"""
Record Builder

Turns source entities (tasks, courses, study sessions, chat messages)
into index items: a stable id, the text to embed, a content kind and the
metadata that search filters on.

Key Rules:
- Ids are prefixed per entity type, so re-indexing an entity replaces it
- Content text fully describes the entity; nothing is fetched at query time
- Metadata always carries the owner; empty values are left out
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..common.schemas import (
    ContentKind,
    OWNER_KEY,
    COURSE_KEY,
    TaskEntity,
    CourseEntity,
    StudySessionEntity,
    ChatMessageEntity,
    render_task_text,
    render_course_text,
    render_study_session_text,
)

CHAT_TITLE_LENGTH = 50


@dataclass
class IndexItem:
    """One unit of indexing work, before embedding"""
    id: str
    content: str
    kind: ContentKind
    metadata: Dict[str, Any] = field(default_factory=dict)


def _metadata(owner_id: str, **values: Any) -> Dict[str, Any]:
    metadata = {OWNER_KEY: owner_id}
    metadata.update({k: v for k, v in values.items() if v is not None})
    return metadata


class RecordBuilder:
    """
    Builds index items from source entities.

    Stateless; one instance can be shared by every indexer.
    """

    def from_task(self, task: TaskEntity) -> IndexItem:
        return IndexItem(
            id=f"task_{task.id}",
            content=render_task_text(task),
            kind=ContentKind.TASK,
            metadata=_metadata(
                task.owner_id,
                **{COURSE_KEY: task.course_id},
                title=task.title or "Untitled Task",
                date=task.due_date.isoformat(),
                priority=task.priority.value,
                status=task.status.value,
                taskType=task.type,
            ),
        )

    def from_course(self, course: CourseEntity) -> IndexItem:
        return IndexItem(
            id=f"course_{course.id}",
            content=render_course_text(course),
            kind=ContentKind.COURSE_MATERIAL,
            metadata=_metadata(
                course.owner_id,
                **{COURSE_KEY: course.id},
                title=f"{course.code} - {course.name}",
                date=course.created_at.isoformat() if course.created_at else None,
            ),
        )

    def from_study_session(self, session: StudySessionEntity) -> IndexItem:
        return IndexItem(
            id=f"study_{session.id}",
            content=render_study_session_text(session),
            kind=ContentKind.STUDY_SESSION,
            metadata=_metadata(
                session.owner_id,
                **{COURSE_KEY: session.course_id},
                title=session.topic or "Study Session",
                date=session.date.isoformat(),
                duration=session.duration,
                effectiveness=session.effectiveness,
            ),
        )

    def from_chat_message(self, message: ChatMessageEntity) -> IndexItem:
        """Chat messages are indexed verbatim; the title is their opening."""
        return IndexItem(
            id=f"chat_{message.message_id}",
            content=message.text,
            kind=ContentKind.CHAT_HISTORY,
            metadata=_metadata(
                message.owner_id,
                title=message.text[:CHAT_TITLE_LENGTH],
                date=message.timestamp.isoformat(),
                context=message.context,
            ),
        )

    def from_raw(
        self,
        id: str,
        content: str,
        kind: ContentKind,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> IndexItem:
        return IndexItem(id=id, content=content, kind=ContentKind(kind), metadata=dict(metadata or {}))
