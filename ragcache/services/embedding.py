"""Embedding service using SentenceTransformer for query vectors."""

import asyncio
import logging

import numpy as np
from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Wrapper around a SentenceTransformer model loaded at construction."""

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2", model=None):
        self.model_name = model_name
        self.model = model if model is not None else SentenceTransformer(model_name, device="cpu")

    def encode(self, text: str) -> np.ndarray:
        """Generate a mean-pooled, normalized embedding for text."""
        return np.asarray(self.model.encode(text, normalize_embeddings=True), dtype=np.float32)

    async def embed(self, text: str) -> np.ndarray | None:
        """
        Embed text off the event loop.

        Returns None when the model fails or yields an empty vector.
        """
        try:
            embedding = await asyncio.to_thread(self.encode, text)
        except Exception as e:
            logger.error(f"Embedding error: {e}")
            return None

        if embedding.size == 0:
            logger.error("No embedding generated for input text")
            return None

        embedding = embedding.ravel()
        logger.debug(f"Generated embedding with length: {embedding.shape[0]}")
        return embedding
