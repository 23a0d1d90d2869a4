"""
Source entities handed over by the CRUD layer for indexing.

Only the fields the indexer renders are modelled; anything else the
screens store is ignored.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .records import Priority, TaskStatus


class _Entity(BaseModel):
    model_config = ConfigDict(extra="ignore")


class TaskEntity(_Entity):
    id: str
    owner_id: str
    title: str = ""
    type: str = "assignment"  # assignment, exam, project, reading, ...
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    due_date: datetime
    course_id: Optional[str] = None
    description: Optional[str] = None
    estimated_hours: Optional[float] = None


class CourseEntity(_Entity):
    id: str
    owner_id: str
    code: str
    name: str
    instructor: Optional[str] = None
    credits: Optional[int] = None
    difficulty: Optional[int] = Field(default=None, ge=1, le=5)
    created_at: Optional[datetime] = None


class StudySessionEntity(_Entity):
    id: str
    owner_id: str
    date: datetime
    duration: int  # minutes
    course_id: Optional[str] = None
    topic: Optional[str] = None
    notes: Optional[str] = None
    effectiveness: Optional[int] = Field(default=None, ge=1, le=5)


class ChatMessageEntity(_Entity):
    message_id: str
    owner_id: str
    text: str
    timestamp: datetime
    context: Optional[str] = None
