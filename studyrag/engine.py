"""
RAG Engine

Single entry point for callers (chat screens, background indexing jobs):
wires configuration into the embedding service, vector store, searcher,
synthesizer, indexer and LLM client, and exposes the inbound operations.

The engine holds no per-conversation state; chat history lives in the
ChatSession the caller passes in.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .common.config import StudyRagConfig, ensure_directories, load_config
from .common.chat_session import ChatSession
from .common.embedding_service import EmbeddingService
from .common.kv_store import FileKeyValueStore, KeyValueStore
from .common.llm_client import LLMClient
from .common.llm_utils import clean_llm_response
from .common.schemas import ContentKind, SearchResult, StoreStats, VectorizedRecord
from .common.vector_store import VectorStore
from .indexer import Indexer, IndexItem, IndexingReport, UserDataSource
from .retriever import QueryProcessor, RelevanceScorer, Searcher, Synthesizer, SynthesizedAnswer

logger = logging.getLogger("studyrag.engine")


CHAT_SYSTEM_PROMPT = """You are {assistant_name}, a helpful and friendly AI study assistant for university students.

Your role is to:
- Help students understand complex concepts in simple terms
- Provide study strategies and time management tips
- Offer exam preparation guidance
- Give motivation and support

Guidelines:
- Keep responses concise but informative (2-4 paragraphs max)
- Break down complex topics into digestible parts
- Provide actionable advice"""

OFFLINE_RESPONSE = (
    "I'm running in offline mode right now, so I can't answer general questions. "
    "You can still ask about your own tasks, courses and study sessions."
)


class RagEngine:
    """Facade over indexing, search and answering for all owners"""

    def __init__(
        self,
        config: StudyRagConfig,
        store: VectorStore,
        embedding_service: EmbeddingService,
        llm_client: Optional[LLMClient] = None,
    ):
        self.config = config
        self.store = store
        self.embedding_service = embedding_service
        self.llm_client = llm_client

        self.query_processor = QueryProcessor()
        self.scorer = RelevanceScorer(config.scoring)
        self.searcher = Searcher(
            store,
            embedding_service,
            scorer=self.scorer,
            query_processor=self.query_processor,
            config=config.retriever,
        )
        self.synthesizer = Synthesizer(
            self.searcher,
            query_processor=self.query_processor,
            llm_client=llm_client,
            config=config.retriever,
            assistant=config.assistant,
            llm_config=config.llm,
        )
        self.indexer = Indexer(store, embedding_service)

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    async def index_content(
        self,
        id: str,
        content: str,
        kind: ContentKind,
        metadata: Dict[str, Any],
    ) -> VectorizedRecord:
        return await self.indexer.index_content(id, content, kind, metadata)

    async def batch_index_content(self, items: Iterable[Union[IndexItem, Dict[str, Any]]]) -> int:
        return await self.indexer.batch_index_content(items)

    async def index_all_user_data(self, owner_id: str, source: UserDataSource) -> IndexingReport:
        return await self.indexer.index_all_user_data(owner_id, source)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def answer_with_context(
        self,
        question: str,
        owner_id: str,
        include_kinds: Optional[Sequence[ContentKind]] = None,
        course_id: Optional[str] = None,
        max_context_length: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> SynthesizedAnswer:
        return await self.synthesizer.answer(
            question,
            owner_id,
            include_kinds=include_kinds,
            course_id=course_id,
            max_context_length=max_context_length,
            timeout=timeout,
        )

    async def semantic_search(self, query: str, owner_id: str, **options) -> List[SearchResult]:
        return await self.searcher.semantic_search(query, owner_id, **options)

    async def hybrid_search(self, query: str, owner_id: str, **options) -> List[SearchResult]:
        return await self.searcher.hybrid_search(query, owner_id, **options)

    async def get_similar_content(
        self, content_id: str, owner_id: str, limit: Optional[int] = None
    ) -> List[SearchResult]:
        return await self.searcher.get_similar_content(content_id, owner_id, limit=limit)

    async def get_vector_store_stats(self) -> StoreStats:
        return await self.store.stats()

    async def clear_vector_store(self) -> None:
        await self.store.clear()

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(self, message: str, session: ChatSession) -> str:
        """
        General (non-retrieval) chat reply using the session's history.

        On success both turns are appended to the session. Without a
        working LLM only the user turn is recorded and a fixed offline
        message is returned.
        """
        history = session.to_messages()

        if self.llm_client is None or not self.llm_client.is_available:
            session.add_user(message)
            return OFFLINE_RESPONSE

        try:
            raw = await self.llm_client.agenerate(
                message,
                system=CHAT_SYSTEM_PROMPT.format(assistant_name=self.config.assistant.name),
                history=history,
                max_tokens=self.config.llm.max_tokens,
                timeout=self.config.llm.timeout,
            )
        except Exception as e:
            logger.warning("Chat generation failed: %s", e)
            session.add_user(message)
            return OFFLINE_RESPONSE

        reply = clean_llm_response(
            raw,
            assistant_name=self.config.assistant.name,
            min_length=self.config.assistant.min_response_length,
        )
        session.add_user(message)
        session.add_assistant(reply)
        return reply

    def new_session(self) -> ChatSession:
        return ChatSession(window=self.config.assistant.history_window)


def create_engine(
    config: Optional[StudyRagConfig] = None,
    kv_store: Optional[KeyValueStore] = None,
    llm_client: Optional[LLMClient] = None,
    embedding_service: Optional[EmbeddingService] = None,
) -> RagEngine:
    """
    Build an engine from configuration.

    Args:
        config: Configuration (loaded from ~/.studyrag/config.json + env when omitted)
        kv_store: Persistence backend (files under config.store.path when omitted)
        llm_client: Generation client (built from config.llm when omitted)
        embedding_service: Embedding provider (built from config.embedding when omitted)

    Returns:
        RagEngine
    """
    config = config or load_config()

    if kv_store is None:
        ensure_directories(config)
        kv_store = FileKeyValueStore(config.store.path)
    store = VectorStore(kv_store, max_records=config.store.max_records)

    if embedding_service is None:
        embedding_service = EmbeddingService.from_config(config.embedding)

    if llm_client is None:
        llm_client = LLMClient.from_config(config.llm)

    logger.info(
        "Engine ready (embeddings=%s, llm=%s, max_records=%d)",
        embedding_service.model,
        llm_client.provider if llm_client.is_available else "unavailable",
        config.store.max_records,
    )
    return RagEngine(config, store, embedding_service, llm_client)
