"""
Content Text Templates

Renders source entities to the plain text that gets embedded, and
search results to the entries of a generation context block.
"""

from typing import TYPE_CHECKING, List, Optional

from .records import ContentKind

if TYPE_CHECKING:
    from .entities import TaskEntity, CourseEntity, StudySessionEntity
    from .records import SearchResult


KIND_LABELS = {
    ContentKind.TASK: "TASK",
    ContentKind.COURSE_MATERIAL: "COURSE",
    ContentKind.STUDY_SESSION: "STUDY SESSION",
    ContentKind.NOTE: "NOTE",
    ContentKind.CHAT_HISTORY: "CHAT",
}

CONTEXT_ENTRY_TEMPLATE = "[{label}] {title} ({similarity}% match)\n{content}\n\n"


def _format_date(value) -> str:
    return value.strftime("%Y-%m-%d")


def _join_lines(lines: List[Optional[str]]) -> str:
    """Join non-empty lines"""
    return "\n".join(line for line in lines if line).strip()


def render_task_text(task: "TaskEntity") -> str:
    """Render a task to indexable text"""
    return _join_lines([
        f"Task: {task.title}",
        f"Type: {task.type}",
        f"Priority: {task.priority.value}",
        f"Status: {task.status.value}",
        f"Due Date: {_format_date(task.due_date)}",
        f"Description: {task.description}" if task.description else None,
        f"Estimated Hours: {task.estimated_hours:g}" if task.estimated_hours else None,
    ])


def render_course_text(course: "CourseEntity") -> str:
    """Render a course to indexable text"""
    return _join_lines([
        f"Course: {course.code} - {course.name}",
        f"Instructor: {course.instructor}" if course.instructor else None,
        f"Credits: {course.credits}" if course.credits else None,
        f"Difficulty: {course.difficulty}/5" if course.difficulty else None,
    ])


def render_study_session_text(session: "StudySessionEntity") -> str:
    """Render a study session to indexable text"""
    return _join_lines([
        "Study Session",
        f"Date: {_format_date(session.date)}",
        f"Duration: {session.duration} minutes",
        f"Topic: {session.topic}" if session.topic else None,
        f"Notes: {session.notes}" if session.notes else None,
        f"Effectiveness: {session.effectiveness}/5" if session.effectiveness else None,
    ])


def render_context_entry(result: "SearchResult") -> str:
    """
    Render one search result as a context block entry.

    Format: "[LABEL] title (NN% match)\\ncontent\\n\\n"
    """
    label = KIND_LABELS.get(result.kind, result.kind.value.upper())
    return CONTEXT_ENTRY_TEMPLATE.format(
        label=label,
        title=result.title,
        similarity=f"{result.similarity * 100:.0f}",
        content=result.content,
    )
