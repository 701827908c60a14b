"""Vector similarity search with staged threshold fallback."""

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx
import numpy as np

from ragcache.services.circuit_breaker import CircuitBreaker, vector_search_circuit
from ragcache.services.metrics import Metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievedDocument:
    """Document fragment returned by the vector store with its match score."""

    content: str
    score: float


class VectorSearch(Protocol):
    async def search(
        self,
        embedding: list[float],
        threshold: float,
        count: int,
    ) -> list[RetrievedDocument]: ...


class VectorSearchError(Exception):
    """Raised when the vector store RPC fails or returns an unusable payload."""


class VectorSearchClient:
    """Calls a Supabase (PostgREST) match function over HTTP."""

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        match_function: str = "huntlysimilar",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not supabase_url or not api_key:
            raise RuntimeError(
                "Missing Supabase credentials. Set SUPABASE_URL and SUPABASE_API_KEY."
            )
        self.rpc_url = f"{supabase_url.rstrip('/')}/rest/v1/rpc/{match_function}"
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )

    async def search(
        self,
        embedding: list[float],
        threshold: float,
        count: int,
    ) -> list[RetrievedDocument]:
        """
        Run the match function and return its rows in ranked order.

        Raises:
            VectorSearchError: On transport errors, non-2xx status or bad payload
        """
        payload = {
            "query_embedding": embedding,
            "match_threshold": threshold,
            "match_count": count,
        }
        try:
            response = await self.client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            rows = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise VectorSearchError(f"Vector search failed: {e}") from e

        if rows is None:
            return []
        if not isinstance(rows, list):
            raise VectorSearchError(f"Unexpected vector search payload: {type(rows).__name__}")

        try:
            return [
                RetrievedDocument(
                    content=str(row.get("content") or ""),
                    score=float(row.get("similarity", row.get("score", 0.0)) or 0.0),
                )
                for row in rows
                if isinstance(row, dict)
            ]
        except (TypeError, ValueError) as e:
            raise VectorSearchError(f"Malformed vector search row: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()


@dataclass(frozen=True)
class SearchStage:
    threshold: float
    count: int


def build_stages(
    target_count: int,
    initial_threshold: float,
    fallback_thresholds: list[float],
    count_step: int = 1,
) -> list[SearchStage]:
    """
    Build the escalation ladder for one retrieval.

    Each fallback stage uses its fixed threshold, capped at half the previous
    stage so thresholds strictly decrease, and asks for `count_step` more
    documents than the stage before.
    """
    stages = [SearchStage(threshold=initial_threshold, count=target_count)]
    for fixed in fallback_thresholds:
        previous = stages[-1]
        stages.append(
            SearchStage(
                threshold=min(fixed, previous.threshold * 0.5),
                count=previous.count + count_step,
            )
        )
    return stages


class RetrievalService:
    """Retrieval stage: at most one search per stage, never raises."""

    def __init__(
        self,
        search: VectorSearch,
        fallback_thresholds: list[float] | None = None,
        count_step: int = 1,
        circuit: CircuitBreaker | None = None,
        metrics: Metrics | None = None,
    ):
        self.search = search
        self.fallback_thresholds = (
            [0.025, 0.0125] if fallback_thresholds is None else list(fallback_thresholds)
        )
        self.count_step = count_step
        self.circuit = circuit or vector_search_circuit()
        self.metrics = metrics

    async def retrieve(
        self,
        query_embedding: np.ndarray | list[float],
        target_count: int = 2,
        initial_threshold: float = 0.05,
    ) -> list[RetrievedDocument]:
        """
        Search for documents matching query_embedding.

        Escalates through lower thresholds and larger counts while a stage
        returns nothing. Transport failures count as an empty stage.

        Returns:
            Documents in the order ranked by the vector store, possibly empty
        """
        embedding = np.asarray(query_embedding, dtype=np.float64).tolist()
        stages = build_stages(
            target_count, initial_threshold, self.fallback_thresholds, self.count_step
        )

        for attempt, stage in enumerate(stages, start=1):
            if attempt > 1:
                logger.info(
                    f"Retrying similarity search with threshold {stage.threshold} "
                    f"and count {stage.count}"
                )
                if self.metrics is not None:
                    self.metrics.record_retrieval_fallback()

            documents = await self._search_stage(embedding, stage)
            if documents:
                logger.info(
                    f"Found {len(documents)} matches at threshold {stage.threshold}"
                )
                return documents
            logger.info(f"No matches found with threshold: {stage.threshold}")

        if self.metrics is not None:
            self.metrics.record_empty_retrieval()
        return []

    async def _search_stage(self, embedding: list[float], stage: SearchStage) -> list[RetrievedDocument]:
        if not self.circuit.is_available():
            logger.warning("Vector search circuit is OPEN, skipping similarity search")
            return []
        try:
            documents = await self.search.search(embedding, stage.threshold, stage.count)
        except (VectorSearchError, httpx.HTTPError) as e:
            self.circuit.record_failure()
            logger.error(f"Similarity search error: {e}")
            return []
        self.circuit.record_success()
        return documents
