"""Pydantic models for API request/response validation."""

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Request body for the chat endpoint."""

    question: str | None = Field(default=None, description="The user's question")


class ChatResponse(BaseModel):
    """Response body for the chat endpoint."""

    answer: str = Field(..., description="Generated or cached answer")
    cached: bool = Field(..., description="True when served from either cache")
    context: str = Field(..., description="Retrieved context, or which cache answered")
    similarity: float | None = Field(
        default=None,
        description="Similarity to the matched query for semantic cache hits",
    )
    error: str | None = Field(
        default=None,
        description="Generation failure detail; the answer is then an error line",
    )


class ErrorResponse(BaseModel):
    """Error response body."""

    error: str = Field(..., description="Error message")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    service: str = Field(default="chat")
    timestamp: str


class LatencyStats(BaseModel):
    """Latency statistics."""

    avg_total_ms: float = Field(..., description="Average total latency in ms")
    avg_cache_ms: float = Field(..., description="Average cache hit latency in ms")
    avg_generation_ms: float = Field(..., description="Average retrieval + generation latency in ms")


class StatsResponse(BaseModel):
    """Pipeline statistics response."""

    total_queries: int
    exact_hits: int
    semantic_hits: int
    cache_misses: int
    hit_rate_percent: float
    generation_errors: int
    retrieval_fallbacks: int
    empty_retrievals: int
    stale_semantic_matches: int
    latency: LatencyStats
