"""
Configuration Management for StudyRAG

Loads configuration from ~/.studyrag/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("studyrag.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".studyrag"
CONFIG_PATH = CONFIG_DIR / "config.json"
LOGS_DIR = CONFIG_DIR / "logs"
STORE_DIR = CONFIG_DIR / "store"

DEFAULT_EMBEDDING_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_EMBEDDING_ENDPOINT = (
    "https://router.huggingface.co/hf-inference/models/{model}/pipeline/feature-extraction"
)
THIRTY_DAYS_MS = 30 * 24 * 60 * 60 * 1000


@dataclass
class EmbeddingConfig:
    """Remote embedding provider configuration"""
    model: str = DEFAULT_EMBEDDING_MODEL
    endpoint: str = DEFAULT_EMBEDDING_ENDPOINT  # {model} is substituted
    api_key: str = ""  # empty -> local hash embedding only
    dimension: int = 384
    timeout: float = 10.0


@dataclass
class LLMConfig:
    """Text generation provider configuration"""
    provider: str = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"
    max_tokens: int = 500
    timeout: float = 30.0


@dataclass
class StoreConfig:
    """Persistent vector store configuration"""
    path: str = str(STORE_DIR)
    max_records: int = 1000


@dataclass
class ScoringConfig:
    """Relevance blend weights (fixed per engine, never per call)"""
    similarity_weight: float = 0.7
    recency_weight: float = 0.2
    type_boost_weight: float = 0.1
    type_boost: float = 0.3
    recency_window_ms: int = THIRTY_DAYS_MS
    hybrid_semantic_weight: float = 0.7
    hybrid_keyword_weight: float = 0.3


@dataclass
class RetrieverConfig:
    """Retrieval and answering configuration"""
    topk: int = 5
    search_min_similarity: float = 0.3
    answer_min_similarity: float = 0.4
    recovery_min_similarity: float = 0.3
    similar_min_similarity: float = 0.5
    max_context_length: int = 2000
    max_confidence: float = 95.0


@dataclass
class AssistantConfig:
    """Persona used in generation prompts"""
    name: str = "StudyBuddy"
    min_response_length: int = 20
    history_window: int = 6


@dataclass
class StudyRagConfig:
    """Main StudyRAG configuration"""
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    assistant: AssistantConfig = field(default_factory=AssistantConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        model=embedding_data.get("model", DEFAULT_EMBEDDING_MODEL),
        endpoint=embedding_data.get("endpoint", DEFAULT_EMBEDDING_ENDPOINT),
        api_key=embedding_data.get("api_key", ""),
        dimension=embedding_data.get("dimension", 384),
        timeout=embedding_data.get("timeout", 10.0),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "anthropic"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash-exp"),
        max_tokens=llm_data.get("max_tokens", 500),
        timeout=llm_data.get("timeout", 30.0),
    )


def _parse_store_config(data: dict) -> StoreConfig:
    """Parse store section from config dict"""
    store_data = data.get("store", {})
    return StoreConfig(
        path=store_data.get("path", str(STORE_DIR)),
        max_records=store_data.get("max_records", 1000),
    )


def _parse_scoring_config(data: dict) -> ScoringConfig:
    """Parse scoring section from config dict"""
    scoring_data = data.get("scoring", {})
    defaults = ScoringConfig()
    return ScoringConfig(
        similarity_weight=scoring_data.get("similarity_weight", defaults.similarity_weight),
        recency_weight=scoring_data.get("recency_weight", defaults.recency_weight),
        type_boost_weight=scoring_data.get("type_boost_weight", defaults.type_boost_weight),
        type_boost=scoring_data.get("type_boost", defaults.type_boost),
        recency_window_ms=scoring_data.get("recency_window_ms", defaults.recency_window_ms),
        hybrid_semantic_weight=scoring_data.get(
            "hybrid_semantic_weight", defaults.hybrid_semantic_weight
        ),
        hybrid_keyword_weight=scoring_data.get(
            "hybrid_keyword_weight", defaults.hybrid_keyword_weight
        ),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    defaults = RetrieverConfig()
    return RetrieverConfig(
        topk=retriever_data.get("topk", defaults.topk),
        search_min_similarity=retriever_data.get(
            "search_min_similarity", defaults.search_min_similarity
        ),
        answer_min_similarity=retriever_data.get(
            "answer_min_similarity", defaults.answer_min_similarity
        ),
        recovery_min_similarity=retriever_data.get(
            "recovery_min_similarity", defaults.recovery_min_similarity
        ),
        similar_min_similarity=retriever_data.get(
            "similar_min_similarity", defaults.similar_min_similarity
        ),
        max_context_length=retriever_data.get("max_context_length", defaults.max_context_length),
        max_confidence=retriever_data.get("max_confidence", defaults.max_confidence),
    )


def _parse_assistant_config(data: dict) -> AssistantConfig:
    """Parse assistant section from config dict"""
    assistant_data = data.get("assistant", {})
    return AssistantConfig(
        name=assistant_data.get("name", "StudyBuddy"),
        min_response_length=assistant_data.get("min_response_length", 20),
        history_window=assistant_data.get("history_window", 6),
    )


def load_config() -> StudyRagConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.studyrag/config.json)
    3. Default values
    """
    config = StudyRagConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.store = _parse_store_config(data)
            config.scoring = _parse_scoring_config(data)
            config.retriever = _parse_retriever_config(data)
            config.assistant = _parse_assistant_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Embedding env var overrides
    _env_embedding_map = {
        "HF_API_KEY": "api_key",
        "HUGGINGFACE_API_KEY": "api_key",
        "EMBEDDING_MODEL": "model",
        "EMBEDDING_ENDPOINT": "endpoint",
    }
    for env_var, attr in _env_embedding_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.embedding, attr, val)
            if attr == "api_key":
                config._env_sourced_keys.add("embedding.api_key")

    # LLM env var overrides (track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "STUDYRAG_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    if os.getenv("STUDYRAG_STORE_DIR"):
        config.store.path = os.getenv("STUDYRAG_STORE_DIR")
    max_records = os.getenv("STUDYRAG_MAX_RECORDS")
    if max_records:
        try:
            config.store.max_records = int(max_records)
        except ValueError:
            logger.warning("Ignoring non-numeric STUDYRAG_MAX_RECORDS: %r", max_records)

    return config


def save_config(config: StudyRagConfig) -> None:
    """Save configuration to file.

    API key fields that were sourced from environment variables are written
    as empty strings so that secrets are not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "max_tokens": config.llm.max_tokens,
        "timeout": config.llm.timeout,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    embedding_api_key = config.embedding.api_key
    if "embedding.api_key" in env_sourced:
        embedding_api_key = ""

    data = {
        "embedding": {
            "model": config.embedding.model,
            "endpoint": config.embedding.endpoint,
            "api_key": embedding_api_key,
            "dimension": config.embedding.dimension,
            "timeout": config.embedding.timeout,
        },
        "llm": llm_section,
        "store": {
            "path": config.store.path,
            "max_records": config.store.max_records,
        },
        "scoring": {
            "similarity_weight": config.scoring.similarity_weight,
            "recency_weight": config.scoring.recency_weight,
            "type_boost_weight": config.scoring.type_boost_weight,
            "type_boost": config.scoring.type_boost,
            "recency_window_ms": config.scoring.recency_window_ms,
            "hybrid_semantic_weight": config.scoring.hybrid_semantic_weight,
            "hybrid_keyword_weight": config.scoring.hybrid_keyword_weight,
        },
        "retriever": {
            "topk": config.retriever.topk,
            "search_min_similarity": config.retriever.search_min_similarity,
            "answer_min_similarity": config.retriever.answer_min_similarity,
            "recovery_min_similarity": config.retriever.recovery_min_similarity,
            "similar_min_similarity": config.retriever.similar_min_similarity,
            "max_context_length": config.retriever.max_context_length,
            "max_confidence": config.retriever.max_confidence,
        },
        "assistant": {
            "name": config.assistant.name,
            "min_response_length": config.assistant.min_response_length,
            "history_window": config.assistant.history_window,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)


def ensure_directories(config: StudyRagConfig = None) -> None:
    """Ensure required directories exist"""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    store_dir = Path(config.store.path) if config else STORE_DIR
    store_dir.expanduser().mkdir(parents=True, exist_ok=True)
