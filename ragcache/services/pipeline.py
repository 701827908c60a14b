"""Chat pipeline - orchestrates caching, embedding, retrieval and generation."""

import logging
import time
from dataclasses import dataclass

import redis

from ragcache.config import Settings
from ragcache.services.cache import CacheService
from ragcache.services.embedding import EmbeddingService
from ragcache.services.keys import derive_keys
from ragcache.services.llm import LLMService, build_context
from ragcache.services.metrics import Metrics
from ragcache.services.retrieval import RetrievalService, VectorSearchClient
from ragcache.services.store import RedisStore

logger = logging.getLogger(__name__)

EXACT_MATCH_CONTEXT = "exact cache match"


class ChatPipelineError(Exception):
    """Base class for failures that abort a chat query."""


class EmptyQueryError(ChatPipelineError):
    """Raised when no question text was supplied."""

    def __init__(self):
        super().__init__("No question provided")


class EmbeddingUnavailableError(ChatPipelineError):
    """Raised when the query could not be embedded."""

    def __init__(self):
        super().__init__("Failed to generate embedding")


@dataclass
class ChatResult:
    """Answer to one query and how it was produced."""

    answer: str
    cached: bool
    context: str
    similarity: float | None = None
    error: str | None = None


class ChatPipeline:
    """
    Main orchestrator for the RAG chat flow.

    Flow:
    1. Exact cache lookup by query hash (hit: return)
    2. Embed the query (failure: abort)
    3. Semantic cache scan (hit at or above threshold: return)
    4. Vector search with staged fallback
    5. Generate an answer from the retrieved context
    6. On success, write the embedding and answer back to the cache
    """

    def __init__(
        self,
        cache: CacheService,
        embedder: EmbeddingService,
        retriever: RetrievalService,
        llm: LLMService,
        similarity_threshold: float = 0.85,
        retrieval_count: int = 2,
        retrieval_threshold: float = 0.05,
        metrics: Metrics | None = None,
    ):
        self.cache = cache
        self.embedder = embedder
        self.retriever = retriever
        self.llm = llm
        self.similarity_threshold = similarity_threshold
        self.retrieval_count = retrieval_count
        self.retrieval_threshold = retrieval_threshold
        self.metrics = metrics or Metrics()

    async def process_chat(self, query: str | None) -> ChatResult:
        """
        Answer a question through the two-tier cache and RAG flow.

        Args:
            query: User question

        Returns:
            ChatResult; `cached` tells whether either cache answered

        Raises:
            EmptyQueryError: If query is missing or blank
            EmbeddingUnavailableError: If the query could not be embedded
        """
        if not query or not query.strip():
            raise EmptyQueryError()

        start_time = time.perf_counter()
        keys = derive_keys(query)

        cached_answer = await self.cache.lookup_exact(keys.answer_key)
        if cached_answer is not None:
            self.metrics.record_exact_hit(self._elapsed_ms(start_time))
            return ChatResult(answer=cached_answer, cached=True, context=EXACT_MATCH_CONTEXT)

        query_embedding = await self.embedder.embed(query)
        if query_embedding is None:
            logger.error(f"Could not embed query: {query[:50]}...")
            raise EmbeddingUnavailableError()

        match = await self.cache.find_similar(query_embedding, self.similarity_threshold)
        if match is not None:
            logger.info(f"Semantic cache hit with similarity: {match.similarity:.4f}")
            self.metrics.record_semantic_hit(self._elapsed_ms(start_time))
            return ChatResult(
                answer=match.answer,
                cached=True,
                context=f"similar query (similarity: {match.similarity:.2f})",
                similarity=match.similarity,
            )

        documents = await self.retriever.retrieve(
            query_embedding, self.retrieval_count, self.retrieval_threshold
        )
        contents = [doc.content for doc in documents]
        context = build_context(contents)

        result = await self.llm.generate(contents, query)
        if result.ok:
            await self.cache.write_through(keys, query_embedding, result.text)
        else:
            self.metrics.record_generation_error()
            logger.warning(f"Generation failed, not caching: {result.error}")

        self.metrics.record_cache_miss(self._elapsed_ms(start_time))
        return ChatResult(
            answer=result.message,
            cached=False,
            context=context,
            error=result.error,
        )

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000


async def create_pipeline(settings: Settings) -> ChatPipeline:
    """
    Construct the pipeline and all its clients.

    Missing LLM or vector store credentials raise here. An unreachable
    Redis is logged and the pipeline runs without caching.
    """
    metrics = Metrics()

    store: RedisStore | None = None
    if settings.redis_url:
        store = RedisStore(settings.redis_url)
        try:
            await store.connect()
        except (redis.RedisError, ValueError) as e:
            logger.error(f"Error connecting to Redis, continuing without caching: {e}")
            store = None
    else:
        logger.info("Redis URL not provided, running without caching")

    cache = CacheService(
        store,
        answer_ttl=settings.cache_ttl,
        embedding_ttl=settings.embedding_cache_ttl,
        scan_warn_keys=settings.semantic_scan_warn_keys,
        metrics=metrics,
    )
    llm: LLMService | None = None
    search: VectorSearchClient | None = None
    try:
        llm = LLMService(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )
        search = VectorSearchClient(
            settings.supabase_url,
            settings.supabase_api_key,
            match_function=settings.vector_match_function,
        )
        retriever = RetrievalService(
            search,
            fallback_thresholds=settings.retrieval_fallback_thresholds,
            count_step=settings.retrieval_fallback_count_step,
            metrics=metrics,
        )
        embedder = EmbeddingService(settings.embedding_model)
    except Exception:
        if search is not None:
            await search.close()
        if llm is not None:
            await llm.close()
        if store is not None:
            await store.close()
        raise

    return ChatPipeline(
        cache=cache,
        embedder=embedder,
        retriever=retriever,
        llm=llm,
        similarity_threshold=settings.similarity_threshold,
        retrieval_count=settings.retrieval_count,
        retrieval_threshold=settings.retrieval_threshold,
        metrics=metrics,
    )


async def close_pipeline(pipeline: ChatPipeline) -> None:
    """Close the network clients owned by the pipeline."""
    store = pipeline.cache.store
    if isinstance(store, RedisStore):
        await store.close()
    search = pipeline.retriever.search
    if isinstance(search, VectorSearchClient):
        await search.close()
    await pipeline.llm.close()
