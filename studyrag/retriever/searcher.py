"""
Searcher

Searches one owner's indexed study data in the local vector store.
Semantic search embeds the query and ranks records with the relevance
scorer; keyword search counts query tokens in content and title; hybrid
search merges both.

Every read path narrows to the owner's records before anything else.
"""

import logging
from typing import Dict, List, Optional, Sequence

from ..common.config import RetrieverConfig, ScoringConfig
from ..common.embedding_service import EmbeddingService, batch_cosine_similarity
from ..common.schemas import ContentKind, SearchResult, VectorizedRecord
from ..common.vector_store import VectorStore
from .query_processor import QueryProcessor
from .scorer import RelevanceScorer

logger = logging.getLogger("studyrag.retriever.searcher")


class Searcher:
    """
    Owner-scoped search over the vector store.

    Features:
    - Semantic search with status/priority/kind/course filters
    - Keyword search for exact terms the embedding may miss
    - Hybrid merge of the two
    - "More like this" lookups by record id

    Read failures are logged and answered with an empty list.
    """

    def __init__(
        self,
        store: VectorStore,
        embedding_service: EmbeddingService,
        scorer: Optional[RelevanceScorer] = None,
        query_processor: Optional[QueryProcessor] = None,
        config: Optional[RetrieverConfig] = None,
    ):
        """
        Initialize searcher.

        Args:
            store: Vector store holding all owners' records
            embedding_service: For embedding queries
            scorer: Relevance scorer (default weights when omitted)
            query_processor: For keyword extraction
            config: Retrieval thresholds
        """
        self._store = store
        self._embedding = embedding_service
        self._scorer = scorer or RelevanceScorer()
        self._query_processor = query_processor or QueryProcessor()
        self._config = config or RetrieverConfig()

    @property
    def scoring(self) -> ScoringConfig:
        return self._scorer.config

    async def semantic_search(
        self,
        query: str,
        owner_id: str,
        limit: Optional[int] = None,
        kinds: Optional[Sequence[ContentKind]] = None,
        course_id: Optional[str] = None,
        min_similarity: Optional[float] = None,
        status_filter: Optional[Sequence[str]] = None,
        priority_filter: Optional[Sequence[str]] = None,
    ) -> List[SearchResult]:
        """
        Rank the owner's records against a query embedding.

        Args:
            query: Free-text query
            owner_id: Owner scope (required)
            limit: Maximum results (default topk)
            kinds: Restrict to these content kinds
            course_id: Restrict to one course
            min_similarity: Similarity floor (default search_min_similarity)
            status_filter: Keep only tasks with these statuses
            priority_filter: Keep only records with these priorities

        Returns:
            SearchResults sorted by relevance descending
        """
        if not query or not query.strip() or not owner_id:
            return []

        limit = limit or self._config.topk
        if min_similarity is None:
            min_similarity = self._config.search_min_similarity

        try:
            records = await self._store.list_records(
                owner_id,
                kinds=kinds,
                course_id=course_id,
                status_filter=status_filter,
                priority_filter=priority_filter,
            )
            if not records:
                return []

            query_vector = await self._embedding.embed(query)
            results = self._scorer.rank(
                query_vector,
                records,
                query,
                min_similarity=min_similarity,
                limit=limit,
            )
        except Exception as e:
            logger.warning("Semantic search failed: %s", e)
            return []

        logger.debug("Semantic search returned %d of %d candidate(s)", len(results), len(records))
        return results

    async def keyword_search(
        self,
        query: str,
        owner_id: str,
        kinds: Optional[Sequence[ContentKind]] = None,
        course_id: Optional[str] = None,
    ) -> List[SearchResult]:
        """
        Score the owner's records by the fraction of query tokens they contain.

        A token matches when it is a case-insensitive substring of the
        content or the title. Records matching nothing are dropped. The
        keyword score is used as both similarity and relevance.
        """
        keywords = self._query_processor.extract_keywords(query)
        if not keywords or not owner_id:
            return []

        try:
            records = await self._store.list_records(owner_id, kinds=kinds, course_id=course_id)
        except Exception as e:
            logger.warning("Keyword search failed: %s", e)
            return []

        results = []
        for record in records:
            score = self._keyword_score(keywords, record)
            if score > 0:
                results.append(SearchResult.from_record(record, similarity=score, relevance_score=score))

        return sorted(results, key=lambda r: r.relevance_score, reverse=True)

    async def hybrid_search(
        self,
        query: str,
        owner_id: str,
        limit: Optional[int] = None,
        kinds: Optional[Sequence[ContentKind]] = None,
        course_id: Optional[str] = None,
    ) -> List[SearchResult]:
        """
        Merge semantic and keyword results by record id.

        Records found by both paths keep the semantic result with
        relevance = w_sem * semantic + w_kw * keyword. Records found by
        one path keep that path's score.
        """
        limit = limit or self._config.topk

        semantic = await self.semantic_search(
            query, owner_id, limit=limit, kinds=kinds, course_id=course_id
        )
        keyword = await self.keyword_search(query, owner_id, kinds=kinds, course_id=course_id)

        merged: Dict[str, SearchResult] = {r.id: r for r in semantic}
        for result in keyword:
            existing = merged.get(result.id)
            if existing is None:
                merged[result.id] = result
                continue
            combined = (
                existing.relevance_score * self.scoring.hybrid_semantic_weight
                + result.relevance_score * self.scoring.hybrid_keyword_weight
            )
            merged[result.id] = existing.model_copy(update={"relevance_score": combined})

        results = sorted(merged.values(), key=lambda r: r.relevance_score, reverse=True)
        return results[:limit]

    async def get_similar_content(
        self,
        content_id: str,
        owner_id: str,
        limit: Optional[int] = None,
        min_similarity: Optional[float] = None,
    ) -> List[SearchResult]:
        """
        Find the owner's records most similar to one of their own records.

        Args:
            content_id: Source record id (must belong to owner_id)
            owner_id: Owner scope
            limit: Maximum results (default topk)
            min_similarity: Results must score strictly above this floor

        Returns:
            SearchResults sorted by similarity, relevance equal to similarity
        """
        limit = limit or self._config.topk
        if min_similarity is None:
            min_similarity = self._config.similar_min_similarity

        try:
            records = await self._store.list_records(owner_id)
        except Exception as e:
            logger.warning("Similar content lookup failed: %s", e)
            return []

        source = next((r for r in records if r.id == content_id), None)
        if source is None:
            return []

        candidates = [
            r for r in records
            if r.id != content_id and r.dimension == source.dimension
        ]
        similarities = batch_cosine_similarity(
            source.embedding, [r.embedding for r in candidates]
        )

        results = [
            SearchResult.from_record(record, similarity=sim, relevance_score=sim)
            for record, sim in zip(candidates, similarities)
            if sim > min_similarity
        ]
        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    def _keyword_score(self, keywords: List[str], record: VectorizedRecord) -> float:
        content = record.content.lower()
        title = (record.metadata.get("title") or "").lower()
        matches = sum(1 for kw in keywords if kw in content or kw in title)
        return matches / len(keywords)
