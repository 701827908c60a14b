"""API routes for the chat service."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from ragcache.api.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    HealthResponse,
    StatsResponse,
)
from ragcache.services.pipeline import (
    ChatPipeline,
    EmbeddingUnavailableError,
    EmptyQueryError,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_pipeline(request: Request) -> ChatPipeline:
    """Return the pipeline built during application startup."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Chat pipeline not initialized")
    return pipeline


@router.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={
        400: {"model": ErrorResponse, "description": "No question provided"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
)
async def chat(request: ChatRequest, pipeline: ChatPipeline = Depends(get_pipeline)):
    """
    Answer a question.

    Served from the exact or semantic cache when possible, otherwise
    answered by retrieval-augmented generation and cached.
    """
    try:
        result = await pipeline.process_chat(request.question)
    except EmptyQueryError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except EmbeddingUnavailableError as e:
        logger.error(f"Chat processing error: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})
    except Exception as e:
        logger.exception(f"Unexpected error processing chat: {e}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return ChatResponse(
        answer=result.answer,
        cached=result.cached,
        context=result.context,
        similarity=result.similarity,
        error=result.error,
    )


@router.get("/api/chat/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(timestamp=datetime.now(timezone.utc).isoformat())


@router.get("/api/stats", response_model=StatsResponse)
async def stats(pipeline: ChatPipeline = Depends(get_pipeline)) -> StatsResponse:
    """Cache and pipeline statistics since startup."""
    return StatsResponse(**pipeline.metrics.get_stats())
