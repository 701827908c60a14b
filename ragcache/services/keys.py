"""Content-addressed cache keys derived from the query text."""

import hashlib
from dataclasses import dataclass

ANSWER_PREFIX = "chat:"
EMBEDDING_PREFIX = "embedding:"
EMBEDDING_PATTERN = f"{EMBEDDING_PREFIX}*"


@dataclass(frozen=True)
class CacheKeys:
    """Answer and embedding keys sharing one query hash."""

    query_hash: str
    answer_key: str
    embedding_key: str


def query_hash(query: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded query."""
    return hashlib.sha256(query.encode("utf-8")).hexdigest()


def derive_keys(query: str) -> CacheKeys:
    """Derive the `chat:<hash>` and `embedding:<hash>` keys for a query."""
    digest = query_hash(query)
    return CacheKeys(
        query_hash=digest,
        answer_key=f"{ANSWER_PREFIX}{digest}",
        embedding_key=f"{EMBEDDING_PREFIX}{digest}",
    )


def answer_key_for(embedding_key: str) -> str:
    """Swap the embedding prefix of a key for the answer prefix."""
    if not embedding_key.startswith(EMBEDDING_PREFIX):
        raise ValueError(f"Not an embedding cache key: {embedding_key}")
    return ANSWER_PREFIX + embedding_key[len(EMBEDDING_PREFIX):]
