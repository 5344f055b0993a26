"""
Redis caching layer for Portfolio Service
"""
import redis.asyncio as redis
from typing import Optional, Any
import json
import logging

from .config import settings

logger = logging.getLogger(__name__)


class RedisCache:
    """Redis cache manager for user directory lookups"""

    def __init__(self):
        self.redis: Optional[redis.Redis] = None

    async def connect(self):
        """Connect to Redis"""
        if not settings.REDIS_ENABLED:
            logger.info("Redis caching is disabled")
            return

        try:
            self.redis = redis.from_url(
                f"redis://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}",
                password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
                encoding="utf-8",
                decode_responses=True,
            )
            await self.redis.ping()
            logger.info("Connected to Redis successfully")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {e}. Continuing without cache.")
            self.redis = None

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.redis:
            await self.redis.aclose()
            logger.info("Disconnected from Redis")

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        if not self.redis:
            return None

        try:
            value = await self.redis.get(key)
            if value:
                return json.loads(value)
            return None
        except Exception as e:
            logger.error(f"Error getting cache key {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 300):
        """Set value in cache with TTL"""
        if not self.redis:
            return

        try:
            await self.redis.setex(key, ttl, json.dumps(value))
        except Exception as e:
            logger.error(f"Error setting cache key {key}: {e}")

    def _user_key(self, user_id: str) -> str:
        return f"portfolio:user:{user_id}"

    async def get_user(self, user_id: str) -> Optional[dict]:
        """Get cached owner display fields"""
        return await self.get(self._user_key(user_id))

    async def set_user(self, user_id: str, user: dict):
        """Cache owner display fields"""
        await self.set(self._user_key(user_id), user, settings.CACHE_TTL_USER)


# Global cache instance
cache = RedisCache()
