"""
Query Processor

Classifies a free-text question into structured retrieval filters
(status, priority, content kind) with regular expressions only.

Best effort: a question with no recognisable vocabulary simply yields an
unfiltered intent and the search stays purely semantic.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..common.schemas import ContentKind, Priority, TaskStatus


class StatusScope(str, Enum):
    """Which task statuses the question is about"""
    ANY = "any"
    PENDING = "pending"  # "What do I still need to do?"
    COMPLETED = "completed"  # "What did I finish this week?"


class PriorityScope(str, Enum):
    """Which priority the question is about"""
    ANY = "any"
    HIGH = "high"  # "What's urgent?"
    LOW = "low"  # "Anything optional I can push later?"


class KindScope(str, Enum):
    """Which content kind the question is about"""
    ANY = "any"
    TASK = "task"  # "Which assignments are due?"
    COURSE = "course"  # "What's my hardest class?"


@dataclass(frozen=True)
class QueryIntent:
    """Filters derived from one question; never persisted"""
    status: StatusScope = StatusScope.ANY
    priority: PriorityScope = PriorityScope.ANY
    kind: KindScope = KindScope.ANY

    @property
    def status_filter(self) -> Optional[List[str]]:
        if self.status is StatusScope.PENDING:
            return [TaskStatus.TODO.value, TaskStatus.IN_PROGRESS.value]
        if self.status is StatusScope.COMPLETED:
            return [TaskStatus.COMPLETED.value]
        return None

    @property
    def priority_filter(self) -> Optional[List[str]]:
        if self.priority is PriorityScope.HIGH:
            return [Priority.HIGH.value]
        if self.priority is PriorityScope.LOW:
            return [Priority.LOW.value]
        return None

    @property
    def kind_filter(self) -> Optional[List[ContentKind]]:
        if self.kind is KindScope.TASK:
            return [ContentKind.TASK]
        if self.kind is KindScope.COURSE:
            return [ContentKind.COURSE_MATERIAL]
        return None

    @property
    def exclude_completed(self) -> bool:
        """True only for pending-only questions (completed vocabulary wins)"""
        return self.status is StatusScope.PENDING

    @property
    def is_unfiltered(self) -> bool:
        return (
            self.status is StatusScope.ANY
            and self.priority is PriorityScope.ANY
            and self.kind is KindScope.ANY
        )


class QueryProcessor:
    """
    Derives QueryIntent from a question.

    Each pattern table is checked in insertion order and the first scope
    with a matching pattern wins, which is how precedence is expressed:
    completed over pending, high over low, task over course.
    """

    STATUS_PATTERNS = {
        StatusScope.COMPLETED: [
            r"\b(completed|finished|done|accomplished)\b",
        ],
        StatusScope.PENDING: [
            r"\b(pending|incomplete|todo|need to|should|must|upcoming|unfinished)\b",
        ],
    }

    PRIORITY_PATTERNS = {
        PriorityScope.HIGH: [
            r"\b(high priority|urgent|important|critical)\b",
        ],
        PriorityScope.LOW: [
            r"\b(low priority|later|optional)\b",
        ],
    }

    KIND_PATTERNS = {
        KindScope.TASK: [
            r"\b(task|assignment|homework|project)\b",
        ],
        KindScope.COURSE: [
            r"\b(course|class|subject)\b",
        ],
    }

    def classify(self, question: str) -> QueryIntent:
        """
        Classify a question into retrieval filters.

        Args:
            question: Raw user question

        Returns:
            QueryIntent (unfiltered when nothing matches)
        """
        cleaned = self._clean_query(question or "")

        return QueryIntent(
            status=self._first_match(cleaned, self.STATUS_PATTERNS, StatusScope.ANY),
            priority=self._first_match(cleaned, self.PRIORITY_PATTERNS, PriorityScope.ANY),
            kind=self._first_match(cleaned, self.KIND_PATTERNS, KindScope.ANY),
        )

    def extract_keywords(self, query: str) -> List[str]:
        """Lower-cased whitespace tokens used by keyword search"""
        return (query or "").lower().split()

    def _clean_query(self, query: str) -> str:
        """Clean and normalize query text"""
        cleaned = query.lower().strip()
        return re.sub(r"\s+", " ", cleaned)

    @staticmethod
    def _first_match(query: str, table: dict, default):
        for scope, patterns in table.items():
            for pattern in patterns:
                if re.search(pattern, query, re.IGNORECASE):
                    return scope
        return default
