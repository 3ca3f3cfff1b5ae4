"""
Redis connection and cross-process locking.

Usage:
    from core.cache import redis_cache

    async with redis_cache.single_flight("review:normalization"):
        ...
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis.asyncio import Redis, from_url

from core.config import settings
from core.errors import NormalizationInProgressError

logger = logging.getLogger(__name__)

NORMALIZATION_LOCK = "review:normalization"


class RedisCache:
    _instance = None
    _redis: Optional[Redis] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(RedisCache, cls).__new__(cls)
        return cls._instance

    async def init(self):
        """Initialize Redis connection."""
        if not self._redis:
            self._redis = from_url(
                str(settings.redis_url),
                encoding="utf-8",
                decode_responses=True
            )
            logger.info("Redis cache initialized")

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis cache closed")

    @property
    def redis(self) -> Redis:
        if not self._redis:
            raise RuntimeError("Redis cache not initialized. Call init() first.")
        return self._redis

    @asynccontextmanager
    async def single_flight(
        self,
        name: str = NORMALIZATION_LOCK,
        timeout: Optional[int] = None,
    ) -> AsyncIterator[None]:
        """
        Hold a Redis lock for the duration of the block.

        The lock is acquired without blocking; if another process already
        holds it, NormalizationInProgressError is raised and the block never
        runs. The lock expires after ``timeout`` seconds so a crashed holder
        cannot wedge later runs. With locking disabled in settings the block
        runs unguarded.
        """
        if not settings.normalization_lock_enabled:
            yield
            return

        timeout = settings.normalization_lock_timeout if timeout is None else timeout
        lock = self.redis.lock(name, timeout=timeout)
        if not await lock.acquire(blocking=False):
            logger.warning(f"Lock {name} is already held")
            raise NormalizationInProgressError(
                "A normalization run is already in progress.",
                details={"lock": name},
            )

        logger.debug(f"Acquired lock {name}")
        try:
            yield
        finally:
            try:
                await lock.release()
            except Exception as e:
                # Lock expired mid-run and may now belong to someone else
                logger.error(f"Failed to release lock {name}: {e}")


# Global instance
redis_cache = RedisCache()
