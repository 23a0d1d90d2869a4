"""
Retriever - Personal Study Data Retrieval

Searches a user's indexed study data and answers questions from it.

Key Components:
- QueryProcessor: Derives status/priority/kind filters from a question
- RelevanceScorer: Similarity + recency + type boost ranking
- Searcher: Semantic, keyword and hybrid search, scoped per owner
- Synthesizer: Context assembly and LLM answer generation

Pipeline:
1. Classify the question (status, priority, kind)
2. Search the owner's records with those filters
3. Assemble a length-bounded context from the top results
4. Generate an answer with the LLM (or list the results without one)
"""

from .query_processor import QueryProcessor, QueryIntent, StatusScope, PriorityScope, KindScope
from .scorer import RelevanceScorer
from .searcher import Searcher
from .synthesizer import Synthesizer, SynthesizedAnswer, format_answer_for_display

__all__ = [
    "QueryProcessor",
    "QueryIntent",
    "StatusScope",
    "PriorityScope",
    "KindScope",
    "RelevanceScorer",
    "Searcher",
    "Synthesizer",
    "SynthesizedAnswer",
    "format_answer_for_display",
]
