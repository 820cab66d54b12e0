"""Async Redis client wrapper used as the session document cache."""
from __future__ import annotations
import json
from typing import Any, Optional
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from homegame.config import config
from homegame.utils.logger import get_logger

logger = get_logger(__name__)

KEY_PREFIX = "homegame"


def make_key(*parts: str) -> str:
    """Build a namespaced key, e.g. make_key("session", id) -> homegame:session:id."""
    return ":".join((KEY_PREFIX, *parts))


class RedisClient:
    """Async Redis client wrapper with JSON serialization."""
    
    _instance: Optional["RedisClient"] = None
    _redis: Optional[Redis] = None
    
    def __new__(cls) -> "RedisClient":
        """Singleton pattern for Redis client."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance
    
    async def connect(self) -> None:
        """Connect to Redis."""
        if self._redis is None:
            self._redis = from_url(
                config.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            logger.info(f"Connected to Redis at {config.redis_url}")
    
    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Disconnected from Redis")
    
    @property
    def redis(self) -> Redis:
        """Get Redis connection, raise if not connected."""
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis
    
    async def delete(self, *keys: str) -> None:
        """Delete keys."""
        await self.redis.delete(*keys)
    
    async def get_json(self, key: str) -> Optional[Any]:
        """Get and deserialize JSON value."""
        value = await self.redis.get(key)
        if value is None:
            return None
        return json.loads(value)
    
    async def set_json(self, key: str, value: Any, ex: Optional[int] = None) -> None:
        """Serialize and set JSON value with optional expiry in seconds."""
        await self.redis.set(key, json.dumps(value), ex=ex)
    
    async def ping(self) -> bool:
        """Check Redis is reachable."""
        try:
            return bool(await self.redis.ping())
        except (RedisError, RuntimeError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False


# Global instance
redis_client = RedisClient()
