"""
Vectorized Record Schema

Core principle: a record's content text fully reproduces what was indexed.
The embedding is generated from that content and is unit length.
Every record is scoped to exactly one owner.
"""

import time
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator
from enum import Enum


# ============================================================================
# Enums
# ============================================================================

class ContentKind(str, Enum):
    """Content categories that can be indexed"""
    TASK = "task"
    COURSE_MATERIAL = "course_material"
    STUDY_SESSION = "study_session"
    NOTE = "note"
    CHAT_HISTORY = "chat_history"


class TaskStatus(str, Enum):
    """Task status values as written by the task screens"""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Priority(str, Enum):
    """Task priority values"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Metadata keys shared with the CRUD layer (camelCase on the wire)
OWNER_KEY = "ownerId"
COURSE_KEY = "courseId"


def now_ms() -> int:
    """Current epoch time in milliseconds"""
    return int(time.time() * 1000)


# ============================================================================
# Records
# ============================================================================

class VectorizedRecord(BaseModel):
    """
    A single indexed item.

    One record per source entity; re-indexing the same id replaces it.
    """
    id: str = Field(..., min_length=1, description="Caller-assigned id, e.g. task_<id>")
    content: str = Field(..., description="Normalized text extracted from the source")
    embedding: List[float] = Field(..., description="L2-normalized embedding")
    kind: ContentKind
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at_ms: int = Field(default_factory=now_ms)

    @field_validator("metadata")
    @classmethod
    def _require_owner(cls, value: Dict[str, Any]) -> Dict[str, Any]:
        if not value.get(OWNER_KEY):
            raise ValueError(f"metadata.{OWNER_KEY} is required")
        return value

    @property
    def owner_id(self) -> str:
        return self.metadata[OWNER_KEY]

    @property
    def title(self) -> str:
        return self.metadata.get("title") or "Untitled"

    @property
    def status(self) -> Optional[str]:
        return self.metadata.get("status")

    @property
    def priority(self) -> Optional[str]:
        return self.metadata.get("priority")

    @property
    def course_id(self) -> Optional[str]:
        return self.metadata.get(COURSE_KEY)

    @property
    def dimension(self) -> int:
        return len(self.embedding)


class SearchResult(VectorizedRecord):
    """A record with its scores for one query"""
    similarity: float = Field(ge=-1.0, le=1.0, default=0.0)
    relevance_score: float = 0.0

    @classmethod
    def from_record(
        cls,
        record: VectorizedRecord,
        similarity: float,
        relevance_score: float,
    ) -> "SearchResult":
        return cls(
            **record.model_dump(exclude={"similarity", "relevance_score"}),
            similarity=similarity,
            relevance_score=relevance_score,
        )

    @property
    def summary(self) -> str:
        """Short summary for display"""
        return f"{self.title} ({self.kind.value}, {self.similarity:.0%} match)"


class StoreStats(BaseModel):
    """Vector store statistics"""
    total_items: int = 0
    by_kind: Dict[str, int] = Field(default_factory=dict)
    last_indexed: Optional[str] = None  # ISO-8601
    storage_size: int = 0  # bytes of the persisted blob
