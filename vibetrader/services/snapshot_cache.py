"""Short-TTL snapshot cache over Redis.

The cache is an optimization only: every read or write failure is logged and
treated as a miss, so callers always fall through to the upstream fetch.
"""
import json
from typing import Any, Awaitable, Callable, Optional
import redis.asyncio as aioredis
from redis.exceptions import RedisError
from vibetrader.core.config import get_settings
from vibetrader.core.logging import get_logger

logger = get_logger(__name__)

TOKEN_INFO_PREFIX = "codex:token:"
TOKEN_SEARCH_PREFIX = "codex:search:"


def token_info_key(address: str) -> str:
    return f"{TOKEN_INFO_PREFIX}{address}"


def token_search_key(query: str) -> str:
    return f"{TOKEN_SEARCH_PREFIX}{query.lower()}"


class SnapshotCache:
    """JSON values in Redis with per-key TTL. A None client disables caching."""

    def __init__(self, client: Optional[Any] = None):
        self.client = client

    @classmethod
    def from_settings(cls) -> "SnapshotCache":
        settings = get_settings()
        if not settings.redis_url:
            logger.info("REDIS_URL not set, snapshot cache disabled")
            return cls(None)
        return cls(aioredis.from_url(settings.redis_url, decode_responses=True))

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def get_json(self, key: str) -> Optional[Any]:
        if self.client is None:
            return None
        try:
            data = await self.client.get(key)
            if not data:
                return None
            return json.loads(data)
        except (RedisError, OSError, ValueError) as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        if self.client is None:
            return
        try:
            await self.client.setex(key, ttl_seconds, json.dumps(value))
        except (RedisError, OSError, TypeError, ValueError) as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    async def delete(self, key: str) -> None:
        if self.client is None:
            return
        try:
            await self.client.delete(key)
        except (RedisError, OSError) as e:
            logger.warning(f"Cache delete failed for {key}: {e}")

    async def with_cache(self, key: str, ttl_seconds: int, fn: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for key, else call fn and cache a non-None result."""
        cached = await self.get_json(key)
        if cached is not None:
            logger.debug("Cache HIT: %s", key)
            return cached

        logger.debug("Cache MISS: %s", key)
        result = await fn()
        if result is not None:
            await self.set_json(key, result, ttl_seconds)
        return result

    async def ping(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def close(self) -> None:
        if self.client is not None:
            try:
                await self.client.aclose()
            except (RedisError, OSError) as e:
                logger.warning(f"Redis close failed: {e}")
