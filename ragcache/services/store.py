"""Key-value store used for the answer and embedding caches."""

import logging
from typing import Protocol

import redis
import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal async get/set/scan/publish API with TTL support."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def scan_keys(self, pattern: str) -> list[str]: ...

    async def publish(self, channel: str, message: str) -> None: ...


class RedisStore:
    """
    Async Redis client wrapper.

    Errors from redis-py (`redis.RedisError`) propagate to the caller, which
    decides whether they are fatal. Values are decoded to str.
    """

    SCAN_BATCH = 500

    def __init__(self, redis_url: str, client: aioredis.Redis | None = None):
        self.redis_url = redis_url
        self.client: aioredis.Redis | None = client

    async def connect(self) -> None:
        """Open the connection and verify it with PING."""
        self.client = aioredis.from_url(self.redis_url, decode_responses=True)
        try:
            await self.client.ping()
        except redis.RedisError:
            await self.close()
            raise
        logger.info(f"Connected to Redis at {self.redis_url}")

    def _require_client(self) -> aioredis.Redis:
        if self.client is None:
            raise redis.ConnectionError("Redis client not connected")
        return self.client

    async def ping(self) -> bool:
        return bool(await self._require_client().ping())

    async def get(self, key: str) -> str | None:
        value = await self._require_client().get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._require_client().set(key, value, ex=ttl_seconds)

    async def scan_keys(self, pattern: str) -> list[str]:
        """Collect all keys matching pattern with incremental SCAN."""
        keys = []
        async for key in self._require_client().scan_iter(match=pattern, count=self.SCAN_BATCH):
            keys.append(key.decode("utf-8") if isinstance(key, bytes) else key)
        return keys

    async def publish(self, channel: str, message: str) -> None:
        await self._require_client().publish(channel, message)

    async def close(self) -> None:
        """Close Redis connection."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None
