"""Pytest fixtures for chat pipeline tests."""

from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest
from httpx import ASGITransport, AsyncClient

from fakes import QUERY_VECTOR, FakeStore
from ragcache.services.cache import CacheService
from ragcache.services.llm import GenerationResult
from ragcache.services.metrics import Metrics
from ragcache.services.pipeline import ChatPipeline
from ragcache.services.retrieval import RetrievalService, RetrievedDocument


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def metrics():
    return Metrics()


@pytest.fixture
def cache_service(fake_store, metrics):
    return CacheService(fake_store, answer_ttl=86400, embedding_ttl=604800, metrics=metrics)


@pytest.fixture
def mock_embedder():
    """Embedder returning the same query vector for every text."""
    mock = MagicMock()
    mock.embed = AsyncMock(return_value=np.array(QUERY_VECTOR, dtype=np.float32))
    return mock


@pytest.fixture
def retrieved_documents():
    return [
        RetrievedDocument(content="Jane Doe: 4 years React and Node.js", score=0.42),
        RetrievedDocument(content="John Smith: 5 years web development", score=0.38),
    ]


@pytest.fixture
def mock_search(retrieved_documents):
    """Vector search returning two documents on the first call."""
    mock = MagicMock()
    mock.search = AsyncMock(return_value=retrieved_documents)
    return mock


@pytest.fixture
def generated_answer():
    return "<div class=\"response\"><p>Here are the candidates that match your query:</p></div>"


@pytest.fixture
def mock_llm(generated_answer):
    """LLM service returning a successful generation."""
    mock = MagicMock()
    mock.generate = AsyncMock(return_value=GenerationResult.success(generated_answer))
    return mock


@pytest.fixture
def pipeline(cache_service, mock_embedder, mock_search, mock_llm, metrics):
    return ChatPipeline(
        cache=cache_service,
        embedder=mock_embedder,
        retriever=RetrievalService(mock_search, metrics=metrics),
        llm=mock_llm,
        similarity_threshold=0.85,
        metrics=metrics,
    )


@pytest.fixture
async def client(pipeline):
    """Async HTTP client with the pipeline dependency overridden."""
    from ragcache.api.routes import get_pipeline
    from ragcache.main import app

    app.dependency_overrides[get_pipeline] = lambda: pipeline
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
