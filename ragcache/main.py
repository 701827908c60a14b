"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ragcache.api.routes import router
from ragcache.config import settings
from ragcache.services.pipeline import close_pipeline, create_pipeline

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the chat pipeline on startup and close its clients on shutdown."""
    logger.info("Initializing RAG services...")
    app.state.pipeline = await create_pipeline(settings)
    logger.info("RAG services initialized successfully")

    yield

    logger.info("Shutting down RAG services...")
    await close_pipeline(app.state.pipeline)
    app.state.pipeline = None
    logger.info("RAG services stopped")


app = FastAPI(
    title="RAG Query Cache API",
    description="Retrieval-augmented chat with exact and semantic query caching",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(router)
