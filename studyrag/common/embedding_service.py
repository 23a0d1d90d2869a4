"""
Embedding Service

Calls a remote feature-extraction endpoint (Hugging Face inference) and
falls back to a deterministic on-device hash embedding when the remote
provider is not configured or not reachable.

Every vector returned here is L2 normalized, so dot product equals
cosine similarity downstream.
"""

import logging
from typing import Any, List, Optional

import httpx
import numpy as np

from .config import DEFAULT_EMBEDDING_ENDPOINT, DEFAULT_EMBEDDING_MODEL, EmbeddingConfig

logger = logging.getLogger("studyrag.common.embedding_service")


def normalize_vector(vector: List[float]) -> List[float]:
    """Scale a vector to unit length; the zero vector is returned unchanged."""
    arr = np.asarray(vector, dtype=np.float64)
    magnitude = float(np.linalg.norm(arr))
    if magnitude == 0.0:
        return arr.tolist()
    return (arr / magnitude).tolist()


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value >= 0x80000000 else value


def string_hash(token: str) -> int:
    """
    Stable 32-bit string hash (h * 31 + c, shift wrapped to int32).

    Unlike the built-in hash(), the result does not change between
    processes, so stored fallback vectors stay comparable.
    """
    h = 0
    for char in token:
        h = _to_int32(_to_int32(h) << 5) - h + ord(char)
    return h


def hash_embedding(text: str, dimension: int = 384) -> List[float]:
    """
    Lowest-common-denominator embedding that needs no model.

    Each whitespace token is hashed into one of `dimension` buckets and
    contributes 1/(position+1), so earlier tokens weigh more. The result
    is L2 normalized. Quality is crude; it only has to keep
    search returning something while offline.
    """
    embedding = np.zeros(dimension, dtype=np.float64)
    for idx, token in enumerate(text.lower().split()):
        position = abs(string_hash(token)) % dimension
        embedding[position] += 1.0 / (idx + 1)
    return normalize_vector(embedding.tolist())


def cosine_similarity(vec1: List[float], vec2: List[float]) -> float:
    """
    Compute cosine similarity between two normalized vectors.

    Both vectors are expected to be unit length, so the dot product is the
    cosine. Clamped to [-1, 1] against floating point drift.
    """
    v1 = np.asarray(vec1, dtype=np.float64)
    v2 = np.asarray(vec2, dtype=np.float64)

    if v1.shape != v2.shape:
        raise ValueError(f"Vector dimension mismatch: {v1.shape} vs {v2.shape}")

    similarity = float(np.dot(v1, v2))
    return max(-1.0, min(1.0, similarity))


def batch_cosine_similarity(
    query_vec: List[float],
    vectors: List[List[float]]
) -> List[float]:
    """
    Compute cosine similarity between a query and multiple vectors.

    All vectors must share the query's dimension.
    """
    if not vectors:
        return []

    query = np.asarray(query_vec, dtype=np.float64)
    matrix = np.asarray(vectors, dtype=np.float64)

    if matrix.ndim != 2 or matrix.shape[1] != query.shape[0]:
        raise ValueError(f"Vector dimension mismatch: {matrix.shape} vs {query.shape}")

    similarities = np.clip(matrix @ query, -1.0, 1.0)
    return similarities.tolist()


class EmbeddingError(RuntimeError):
    """Remote embedding provider failed or returned an unusable vector."""
    pass


class EmbeddingService:
    """
    Text to unit-length vector of fixed dimensionality.

    Uses the remote feature-extraction endpoint when an API key is
    configured. Any failure (timeout, HTTP error, malformed payload, wrong
    dimension) is logged and answered with the local hash embedding, so
    `embed` never raises unless called with strict=True.
    """

    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        endpoint: str = DEFAULT_EMBEDDING_ENDPOINT,
        api_key: Optional[str] = None,
        dimension: int = 384,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize embedding service.

        Args:
            model: Remote model name
            endpoint: Feature-extraction URL; "{model}" is substituted
            api_key: Bearer token for the remote provider (optional)
            dimension: Fixed vector dimensionality
            timeout: Default request timeout in seconds
            transport: Optional httpx transport (tests, proxies)
        """
        self._model = model
        self._url = endpoint.format(model=model)
        self._api_key = api_key or ""
        self._timeout = timeout
        self._transport = transport
        self.dimension = dimension

        if self.is_remote:
            logger.info("Remote embeddings enabled (model=%s, dim=%d)", model, dimension)
        else:
            logger.info("No embedding API key, using local hash embeddings (dim=%d)", dimension)

    @classmethod
    def from_config(cls, config: EmbeddingConfig) -> "EmbeddingService":
        return cls(
            model=config.model,
            endpoint=config.endpoint,
            api_key=config.api_key,
            dimension=config.dimension,
            timeout=config.timeout,
        )

    @property
    def is_remote(self) -> bool:
        """Check if a remote provider is configured"""
        return bool(self._api_key)

    @property
    def model(self) -> str:
        return self._model if self.is_remote else "local-hash"

    async def embed(
        self,
        text: str,
        timeout: Optional[float] = None,
        strict: bool = False,
    ) -> List[float]:
        """
        Generate an embedding for a single text.

        Args:
            text: String to embed
            timeout: Per-call timeout override in seconds
            strict: Raise instead of falling back when the remote provider fails

        Returns:
            Embedding vector (L2 normalized)

        Raises:
            EmbeddingError: strict mode only, remote provider failed
        """
        if self.is_remote and text.strip():
            try:
                return normalize_vector(await self._embed_remote(text, timeout or self._timeout))
            except EmbeddingError as e:
                if strict:
                    raise
                logger.warning("Remote embedding failed, using local fallback: %s", e)

        return self.embed_local(text)

    async def embed_batch(self, texts: List[str], strict: bool = False) -> List[List[float]]:
        """Embed texts one by one, in order."""
        return [await self.embed(text, strict=strict) for text in texts]

    def embed_local(self, text: str) -> List[float]:
        """Deterministic fallback embedding"""
        return hash_embedding(text, self.dimension)

    async def _embed_remote(self, text: str, timeout: float) -> List[float]:
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(
                    self._url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={"inputs": text},
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingError(str(e) or type(e).__name__) from e

        vector = self._parse_response(payload)
        if vector is None:
            raise EmbeddingError("malformed embedding response")
        return vector

    def _parse_response(self, payload: Any) -> Optional[List[float]]:
        """Accept a flat vector or a nested one (first row); else None."""
        if not isinstance(payload, list) or not payload:
            return None

        row = payload[0] if isinstance(payload[0], list) else payload
        if not row or not all(
            isinstance(v, (int, float)) and not isinstance(v, bool) for v in row
        ):
            return None

        if len(row) != self.dimension:
            logger.warning(
                "Embedding dimension %d does not match configured %d", len(row), self.dimension
            )
            return None

        return [float(v) for v in row]

