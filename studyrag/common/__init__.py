"""
StudyRAG Common Module

Shared infrastructure: configuration, embeddings, persistence and LLM access.
"""

from .config import StudyRagConfig, load_config
from .embedding_service import EmbeddingService
from .kv_store import KeyValueStore, FileKeyValueStore, InMemoryKeyValueStore
from .vector_store import VectorStore, DimensionMismatchError
from .llm_client import LLMClient
from .chat_session import ChatSession

__all__ = [
    "StudyRagConfig",
    "load_config",
    "EmbeddingService",
    "KeyValueStore",
    "FileKeyValueStore",
    "InMemoryKeyValueStore",
    "VectorStore",
    "DimensionMismatchError",
    "LLMClient",
    "ChatSession",
]
