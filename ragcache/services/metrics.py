"""Metrics service for tracking cache and pipeline performance."""

from dataclasses import dataclass, field
from threading import Lock


@dataclass
class Metrics:
    """Thread-safe metrics collector for the chat pipeline."""

    _lock: Lock = field(default_factory=Lock, repr=False)
    total_queries: int = 0
    exact_hits: int = 0
    semantic_hits: int = 0
    cache_misses: int = 0
    generation_errors: int = 0
    retrieval_fallbacks: int = 0
    empty_retrievals: int = 0
    stale_semantic_matches: int = 0
    total_latency_ms: float = 0.0
    cache_latency_ms: float = 0.0
    generation_latency_ms: float = 0.0

    def record_exact_hit(self, latency_ms: float) -> None:
        with self._lock:
            self.total_queries += 1
            self.exact_hits += 1
            self.total_latency_ms += latency_ms
            self.cache_latency_ms += latency_ms

    def record_semantic_hit(self, latency_ms: float) -> None:
        with self._lock:
            self.total_queries += 1
            self.semantic_hits += 1
            self.total_latency_ms += latency_ms
            self.cache_latency_ms += latency_ms

    def record_cache_miss(self, latency_ms: float) -> None:
        """Record a query answered through retrieval and generation."""
        with self._lock:
            self.total_queries += 1
            self.cache_misses += 1
            self.total_latency_ms += latency_ms
            self.generation_latency_ms += latency_ms

    def record_generation_error(self) -> None:
        with self._lock:
            self.generation_errors += 1

    def record_retrieval_fallback(self) -> None:
        with self._lock:
            self.retrieval_fallbacks += 1

    def record_empty_retrieval(self) -> None:
        with self._lock:
            self.empty_retrievals += 1

    def record_stale_semantic_match(self) -> None:
        with self._lock:
            self.stale_semantic_matches += 1

    def get_stats(self) -> dict:
        """Get current statistics."""
        with self._lock:
            cache_hits = self.exact_hits + self.semantic_hits
            hit_rate = (
                (cache_hits / self.total_queries * 100)
                if self.total_queries > 0
                else 0.0
            )
            avg_latency = (
                (self.total_latency_ms / self.total_queries)
                if self.total_queries > 0
                else 0.0
            )
            avg_cache_latency = (
                (self.cache_latency_ms / cache_hits)
                if cache_hits > 0
                else 0.0
            )
            avg_generation_latency = (
                (self.generation_latency_ms / self.cache_misses)
                if self.cache_misses > 0
                else 0.0
            )

            return {
                "total_queries": self.total_queries,
                "exact_hits": self.exact_hits,
                "semantic_hits": self.semantic_hits,
                "cache_misses": self.cache_misses,
                "hit_rate_percent": round(hit_rate, 2),
                "generation_errors": self.generation_errors,
                "retrieval_fallbacks": self.retrieval_fallbacks,
                "empty_retrievals": self.empty_retrievals,
                "stale_semantic_matches": self.stale_semantic_matches,
                "latency": {
                    "avg_total_ms": round(avg_latency, 2),
                    "avg_cache_ms": round(avg_cache_latency, 2),
                    "avg_generation_ms": round(avg_generation_latency, 2),
                },
            }

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self.total_queries = 0
            self.exact_hits = 0
            self.semantic_hits = 0
            self.cache_misses = 0
            self.generation_errors = 0
            self.retrieval_fallbacks = 0
            self.empty_retrievals = 0
            self.stale_semantic_matches = 0
            self.total_latency_ms = 0.0
            self.cache_latency_ms = 0.0
            self.generation_latency_ms = 0.0
