"""Redis caching service for question embeddings."""

import json
import logging
from typing import List, Optional

import redis.asyncio as redis

from note_rag.core.config import Settings
from note_rag.core.exceptions import CacheError

logger = logging.getLogger(__name__)


class CacheService:
    """Optional cache; every read misses while it is disabled."""

    def __init__(self, settings: Settings) -> None:
        """Initialize the cache service."""
        self.url = settings.redis_url
        self.ttl = settings.cache_ttl
        self.client: Optional[redis.Redis] = None

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def connect(self) -> None:
        """Connect to Redis, leaving the cache disabled if that fails."""
        if not self.url:
            logger.info("No Redis URL configured, embedding cache disabled")
            return
        client = redis.from_url(
            self.url,
            decode_responses=True,
            socket_connect_timeout=5.0,
            socket_timeout=5.0,
        )
        try:
            await client.ping()
        except Exception as e:
            logger.warning(f"Redis unavailable, embedding cache disabled: {str(e)}")
            await client.aclose()
            return
        self.client = client

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def get(self, key: str) -> Optional[str]:
        """
        Get a value from cache.

        Args:
            key: Cache key.

        Returns:
            Cached value or None if not found or unreachable.
        """
        if not self.client:
            return None
        try:
            return await self.client.get(key)
        except Exception:
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """
        Set a value in cache.

        Args:
            key: Cache key.
            value: Value to cache.
            ttl: Time to live in seconds.

        Raises:
            CacheError: If the write fails.
        """
        if not self.client:
            return
        try:
            await self.client.setex(key, ttl or self.ttl, value)
        except Exception as e:
            raise CacheError(f"Failed to set cache: {str(e)}") from e

    async def get_vector(self, key: str) -> Optional[List[float]]:
        """Get a cached vector, ignoring undecodable entries."""
        value = await self.get(key)
        if not value:
            return None
        try:
            vector = json.loads(value)
        except json.JSONDecodeError:
            return None
        if not isinstance(vector, list):
            return None
        try:
            return [float(v) for v in vector]
        except (TypeError, ValueError):
            logger.warning(f"Ignoring corrupt cached vector {key}")
            return None

    async def set_vector(self, key: str, vector: List[float], ttl: Optional[int] = None) -> None:
        """Cache a vector as JSON."""
        await self.set(key, json.dumps(vector), ttl)

    async def ping(self) -> bool:
        if not self.client:
            return False
        return bool(await self.client.ping())
