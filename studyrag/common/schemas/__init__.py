"""
StudyRAG Schemas

Vectorized records, search results and the source entities they are built from.
"""

from .records import (
    VectorizedRecord,
    SearchResult,
    StoreStats,
    ContentKind,
    TaskStatus,
    Priority,
    OWNER_KEY,
    COURSE_KEY,
    now_ms,
)
from .entities import TaskEntity, CourseEntity, StudySessionEntity, ChatMessageEntity
from .templates import (
    render_task_text,
    render_course_text,
    render_study_session_text,
    render_context_entry,
    KIND_LABELS,
)

__all__ = [
    "VectorizedRecord",
    "SearchResult",
    "StoreStats",
    "ContentKind",
    "TaskStatus",
    "Priority",
    "OWNER_KEY",
    "COURSE_KEY",
    "now_ms",
    "TaskEntity",
    "CourseEntity",
    "StudySessionEntity",
    "ChatMessageEntity",
    "render_task_text",
    "render_course_text",
    "render_study_session_text",
    "render_context_entry",
    "KIND_LABELS",
]
