"""
Relevance Scorer

Scores records against a query vector:

    relevance = w_sim * similarity + w_rec * recency + w_type * type_boost

similarity is the dot product of unit vectors (cosine), recency decays
linearly to zero over the recency window, and type_boost rewards the
content kind a question is evidently about. Weights are fixed per scorer
instance so that rankings stay deterministic.
"""

import re
import logging
from typing import List, Optional, Sequence

from ..common.config import ScoringConfig
from ..common.embedding_service import batch_cosine_similarity
from ..common.schemas import ContentKind, SearchResult, VectorizedRecord, now_ms
from ..common.vector_store import DimensionMismatchError

logger = logging.getLogger("studyrag.retriever.scorer")


class RelevanceScorer:
    """Pure read-side scoring; never mutates records"""

    # At most one applies per record since each is keyed by kind
    TYPE_BOOST_PATTERNS = {
        ContentKind.TASK: r"\b(deadline|due|todo|task|complete|pending)\b",
        ContentKind.NOTE: r"\b(explain|what is|how|concept|topic)\b",
        ContentKind.STUDY_SESSION: r"\b(study|learn|practice|review)\b",
    }

    def __init__(self, config: Optional[ScoringConfig] = None):
        self._config = config or ScoringConfig()

    @property
    def config(self) -> ScoringConfig:
        return self._config

    def recency_score(self, created_at_ms: int, now: Optional[int] = None) -> float:
        """1.0 for brand-new (or future-dated) content, 0.0 past the window"""
        age_ms = (now if now is not None else now_ms()) - created_at_ms
        score = 1.0 - age_ms / self._config.recency_window_ms
        return max(0.0, min(1.0, score))

    def type_boost(self, kind: ContentKind, query_text: str) -> float:
        pattern = self.TYPE_BOOST_PATTERNS.get(kind)
        if pattern and re.search(pattern, query_text.lower()):
            return self._config.type_boost
        return 0.0

    def relevance(self, similarity: float, recency: float, boost: float) -> float:
        return (
            similarity * self._config.similarity_weight
            + recency * self._config.recency_weight
            + boost * self._config.type_boost_weight
        )

    def score(
        self,
        query_vector: List[float],
        record: VectorizedRecord,
        query_text: str,
        now: Optional[int] = None,
    ) -> SearchResult:
        """
        Score a single record.

        Raises:
            DimensionMismatchError: record and query differ in dimension
        """
        if record.dimension != len(query_vector):
            raise DimensionMismatchError(
                f"Record {record.id} has dimension {record.dimension}, query has {len(query_vector)}"
            )
        return self.rank(query_vector, [record], query_text, now=now)[0]

    def rank(
        self,
        query_vector: List[float],
        records: Sequence[VectorizedRecord],
        query_text: str,
        min_similarity: float = -1.0,
        limit: Optional[int] = None,
        now: Optional[int] = None,
    ) -> List[SearchResult]:
        """
        Score, threshold and order records.

        Args:
            query_vector: Normalized query embedding
            records: Owner-scoped candidates, in store order
            query_text: Raw query (for type boosts)
            min_similarity: Records below this similarity are discarded
            limit: Maximum results
            now: Clock override in epoch ms

        Returns:
            SearchResults sorted by relevance descending; ties keep store order
        """
        dimension = len(query_vector)
        comparable = [r for r in records if r.dimension == dimension]
        if len(comparable) != len(records):
            logger.warning(
                "Skipping %d record(s) with dimension other than %d",
                len(records) - len(comparable),
                dimension,
            )
        if not comparable:
            return []

        now = now if now is not None else now_ms()
        similarities = batch_cosine_similarity(query_vector, [r.embedding for r in comparable])

        results = []
        for record, similarity in zip(comparable, similarities):
            if similarity < min_similarity:
                continue
            recency = self.recency_score(record.created_at_ms, now)
            boost = self.type_boost(record.kind, query_text)
            results.append(
                SearchResult.from_record(
                    record,
                    similarity=similarity,
                    relevance_score=self.relevance(similarity, recency, boost),
                )
            )

        # sorted() is stable, so equal scores keep store order
        results = sorted(results, key=lambda r: r.relevance_score, reverse=True)
        return results[:limit] if limit is not None else results
