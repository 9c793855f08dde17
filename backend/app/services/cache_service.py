# /app/services/cache_service.py

import json
import logging
from typing import Optional, Any
import redis.asyncio as redis

from app.config.settings import settings
from app.utils.circuit_breaker import CircuitBreaker
from app.utils.metrics import cache_operations

# This service manages all interactions with the Redis cache. Redis is optional:
# without REDIS_URL every lookup is a miss and every write is skipped.

logger = logging.getLogger(__name__)

class CacheService:
    def __init__(self, redis_url: Optional[str]):
        self.redis = None
        self.circuit_breaker = CircuitBreaker("redis")
        if not redis_url:
            logger.info("REDIS_URL is not set; caching is disabled.")
            return
        try:
            self.redis_pool = redis.ConnectionPool.from_url(redis_url, max_connections=20)
            self.redis = redis.Redis(connection_pool=self.redis_pool)
        except Exception as e:
            logger.critical(f"Failed to connect to Redis at {redis_url}: {e}")
            self.redis = None

    async def get(self, key: str) -> Optional[str]:
        if not self.redis: return None
        try:
            result = await self.circuit_breaker.call(self.redis.get, key)
            cache_operations.labels(operation="get", status="hit" if result else "miss").inc()
            return result.decode('utf-8') if result else None
        except Exception as e:
            cache_operations.labels(operation="get", status="error").inc()
            logger.warning(f"Cache get failed for key {key}: {e}")
            return None

    async def set(self, key: str, value: str, ttl: int = 300):
        if not self.redis: return
        try:
            await self.circuit_breaker.call(self.redis.setex, key, ttl, value)
            cache_operations.labels(operation="set", status="success").inc()
        except Exception as e:
            cache_operations.labels(operation="set", status="error").inc()
            logger.warning(f"Cache set failed for key {key}: {e}")

    async def get_json(self, key: str) -> Optional[Any]:
        cached_value = await self.get(key)
        if cached_value is None:
            return None
        try:
            return json.loads(cached_value)
        except json.JSONDecodeError:
            logger.warning(f"Discarding non-JSON cache entry for key {key}")
            return None

    async def set_json(self, key: str, value: Any, ttl: int = 300):
        await self.set(key, json.dumps(value, default=str), ttl)

    async def health_check(self) -> Optional[bool]:
        """None when caching is disabled, otherwise whether Redis answers a ping."""
        if not self.redis:
            return None
        try:
            return bool(await self.redis.ping())
        except Exception as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def close(self):
        if self.redis:
            await self.redis.aclose()

# Globally accessible instance
cache_service = CacheService(settings.redis_url)
