"""
Redis-backed counters used for rate limiting.
Every call fails open: with no Redis connection nothing is limited.
"""
from typing import Optional
from . import core
import logging

logger = logging.getLogger(__name__)


class CacheManager:
    """Thin wrapper over the shared Redis client"""

    def _make_key(self, key: str, prefix: str = "") -> str:
        if prefix:
            return f"{prefix}:{key}"
        return key

    async def get_int(self, key: str, prefix: str = "") -> Optional[int]:
        if not core.REDIS:
            return None

        cache_key = self._make_key(key, prefix)
        try:
            value = await core.REDIS.get(cache_key)
            return None if value is None else int(value)
        except Exception as e:
            logger.error(f"Cache get failed for key {cache_key}: {str(e)}")
            return None

    async def increment(self, key: str, window: int, prefix: str = "") -> Optional[int]:
        """Increment atomically; the first hit in a window sets the expiry"""
        if not core.REDIS:
            return None

        cache_key = self._make_key(key, prefix)
        try:
            value = await core.REDIS.incr(cache_key)
            if value == 1:
                await core.REDIS.expire(cache_key, window)
            return value
        except Exception as e:
            logger.error(f"Cache increment failed for key {cache_key}: {str(e)}")
            return None

    async def delete(self, key: str, prefix: str = "") -> bool:
        if not core.REDIS:
            return False

        cache_key = self._make_key(key, prefix)
        try:
            result = await core.REDIS.delete(cache_key)
            return result > 0
        except Exception as e:
            logger.error(f"Cache delete failed for key {cache_key}: {str(e)}")
            return False


# Global cache manager instance
cache = CacheManager()


async def check_rate_limit(key, action: str, limit: int = 100, window: int = 3600) -> bool:
    """Count one hit and report whether it is within the limit"""
    current = await cache.increment(f"{key}:{action}", window, "rate")
    if current is None:
        return True
    return current <= limit


async def too_many_attempts(key, action: str, limit: int) -> bool:
    """Check a counter without counting a hit"""
    current = await cache.get_int(f"{key}:{action}", "rate")
    return current is not None and current >= limit


async def hit(key, action: str, window: int):
    await cache.increment(f"{key}:{action}", window, "rate")


async def clear_rate_limit(key, action: str):
    await cache.delete(f"{key}:{action}", "rate")
