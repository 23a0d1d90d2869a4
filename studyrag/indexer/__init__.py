"""
Indexer - Study Data Ingestion

Renders tasks, courses, study sessions and chat messages to text,
embeds them and upserts them into the owner-scoped vector store.
"""

from .record_builder import RecordBuilder, IndexItem
from .indexer import Indexer, IndexingReport, UserDataSource

__all__ = [
    "RecordBuilder",
    "IndexItem",
    "Indexer",
    "IndexingReport",
    "UserDataSource",
]
