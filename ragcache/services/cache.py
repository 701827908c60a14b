"""Two-tier query cache: exact answer lookup and semantic near-duplicate scan."""

import json
import logging
import math
from dataclasses import dataclass

import numpy as np
import redis

from ragcache.services.circuit_breaker import CircuitBreaker, store_circuit
from ragcache.services.keys import EMBEDDING_PATTERN, CacheKeys, answer_key_for
from ragcache.services.metrics import Metrics
from ragcache.services.similarity import cosine_similarity
from ragcache.services.store import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SemanticMatch:
    """A cached answer whose query embedding is close to the current query."""

    answer: str
    similarity: float
    embedding_key: str


def serialize_embedding(embedding: np.ndarray | list[float]) -> str:
    """Serialize an embedding as a JSON array of floats."""
    return json.dumps(np.asarray(embedding, dtype=np.float64).tolist())


def deserialize_embedding(raw: str) -> np.ndarray:
    values = json.loads(raw)
    if not isinstance(values, list) or not values:
        raise ValueError("Cached embedding is not a non-empty array")
    return np.asarray(values, dtype=np.float64)


class CacheService:
    """
    Answer cache keyed by `chat:<hash>` and embedding cache keyed by
    `embedding:<hash>`, both held in one key-value store.

    Every operation is best-effort: store errors are logged and reported
    as a miss, never raised. A `None` store disables caching entirely.
    """

    def __init__(
        self,
        store: KeyValueStore | None,
        answer_ttl: int = 86400,
        embedding_ttl: int = 604800,
        scan_warn_keys: int = 1000,
        circuit: CircuitBreaker | None = None,
        metrics: Metrics | None = None,
    ):
        self.store = store
        self.answer_ttl = answer_ttl
        self.embedding_ttl = embedding_ttl
        self.scan_warn_keys = scan_warn_keys
        self.circuit = circuit or store_circuit()
        self.metrics = metrics

    @property
    def enabled(self) -> bool:
        return self.store is not None

    def _available(self, operation: str) -> bool:
        if self.store is None:
            return False
        if not self.circuit.is_available():
            logger.warning(f"Cache store circuit is OPEN, skipping {operation}")
            return False
        return True

    async def lookup_exact(self, answer_key: str) -> str | None:
        """Return the cached answer stored under answer_key, if any."""
        if not self._available("exact lookup"):
            return None

        try:
            answer = await self.store.get(answer_key)  # type: ignore[union-attr]
        except redis.RedisError as e:
            self.circuit.record_failure()
            logger.error(f"Redis error during exact cache lookup: {e}")
            return None

        self.circuit.record_success()
        if answer:
            logger.info(f"Exact cache hit for key: {answer_key}")
            return answer
        logger.info(f"Exact cache miss for key: {answer_key}")
        return None

    async def find_similar(
        self,
        query_embedding: np.ndarray | list[float],
        threshold: float = 0.85,
    ) -> SemanticMatch | None:
        """
        Find the cached answer of the most similar previous query.

        Scans every `embedding:*` key, scores each stored embedding against
        query_embedding and keeps the maximum. The match counts when its
        similarity is >= threshold and its answer is still cached. The scan
        is linear in the number of cached queries.

        Args:
            query_embedding: Embedding of the incoming query
            threshold: Minimum cosine similarity for a hit

        Returns:
            SemanticMatch on hit, otherwise None
        """
        if not self._available("semantic scan"):
            return None

        try:
            keys = await self.store.scan_keys(EMBEDDING_PATTERN)  # type: ignore[union-attr]
        except redis.RedisError as e:
            self.circuit.record_failure()
            logger.error(f"Redis error while scanning embedding keys: {e}")
            return None

        if not keys:
            self.circuit.record_success()
            return None
        if len(keys) > self.scan_warn_keys:
            logger.warning(
                f"Semantic scan compared {len(keys)} cached embeddings "
                f"(warning threshold {self.scan_warn_keys})"
            )

        best_key: str | None = None
        best_similarity: float | None = None

        for key in keys:
            try:
                raw = await self.store.get(key)  # type: ignore[union-attr]
            except redis.RedisError as e:
                self.circuit.record_failure()
                logger.error(f"Redis error while reading {key} during semantic scan: {e}")
                return None
            if raw is None:
                # Expired between SCAN and GET
                continue

            try:
                similarity = cosine_similarity(query_embedding, deserialize_embedding(raw))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping unusable cached embedding {key}: {e}")
                continue

            if math.isnan(similarity):
                continue
            logger.debug(f"Similarity with {key}: {similarity:.4f}")
            if best_similarity is None or similarity > best_similarity:
                best_similarity = similarity
                best_key = key

        if best_key is None or best_similarity is None or best_similarity < threshold:
            self.circuit.record_success()
            return None

        answer_key = answer_key_for(best_key)
        try:
            answer = await self.store.get(answer_key)  # type: ignore[union-attr]
        except redis.RedisError as e:
            self.circuit.record_failure()
            logger.error(f"Redis error while reading {answer_key}: {e}")
            return None
        self.circuit.record_success()

        if not answer:
            logger.info(
                f"Semantic match {best_key} (similarity: {best_similarity:.4f}) "
                f"has no cached answer, falling through"
            )
            if self.metrics is not None:
                self.metrics.record_stale_semantic_match()
            return None

        logger.info(f"Found similar query with similarity: {best_similarity:.4f}")
        return SemanticMatch(answer=answer, similarity=best_similarity, embedding_key=best_key)

    async def write_through(
        self,
        keys: CacheKeys,
        query_embedding: np.ndarray | list[float],
        answer: str,
    ) -> None:
        """Store the query embedding and its answer, each with its own TTL."""
        if not answer:
            return
        if not self._available("cache write"):
            return

        try:
            await self.store.set(  # type: ignore[union-attr]
                keys.embedding_key,
                serialize_embedding(query_embedding),
                self.embedding_ttl,
            )
            self.circuit.record_success()
            logger.info(f"Stored embedding in cache with key: {keys.embedding_key}")
        except redis.RedisError as e:
            self.circuit.record_failure()
            logger.error(f"Redis error while storing embedding: {e}")

        try:
            await self.store.set(keys.answer_key, answer, self.answer_ttl)  # type: ignore[union-attr]
            self.circuit.record_success()
            logger.info(f"Stored response in cache with key: {keys.answer_key}")
        except redis.RedisError as e:
            self.circuit.record_failure()
            logger.error(f"Redis error while storing response: {e}")
