"""
StudyRAG

Retrieval-augmented answering over a student's personal records.

Philosophy:
- Every record is reproducible from its content text
- Owner scoping comes before any scoring
- Degrade, never fail: offline embeddings and templated answers
- The engine is stateless between calls; sessions belong to the caller

Usage:
    from studyrag.engine import create_engine
    from studyrag.common import load_config, EmbeddingService, VectorStore
    from studyrag.retriever import QueryProcessor, Searcher, Synthesizer
    from studyrag.indexer import Indexer, RecordBuilder
"""

__version__ = "0.1.0"
