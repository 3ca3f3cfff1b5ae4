"""Tests for the Redis single-flight lock."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from core.cache import NORMALIZATION_LOCK, RedisCache
from core.errors import NormalizationInProgressError


@pytest.fixture
def cache():
    """RedisCache with a mocked client; restores the singleton afterwards."""
    cache = RedisCache()
    original = cache._redis
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=True)
    lock.release = AsyncMock()
    client = MagicMock()
    client.lock.return_value = lock
    cache._redis = client
    yield cache
    cache._redis = original


class TestSingleFlight:

    @pytest.mark.asyncio
    async def test_runs_block_and_releases(self, cache):
        ran = []
        with patch("core.cache.settings.normalization_lock_enabled", True):
            async with cache.single_flight(NORMALIZATION_LOCK, timeout=60):
                ran.append(True)

        assert ran == [True]
        cache.redis.lock.assert_called_once_with(NORMALIZATION_LOCK, timeout=60)
        lock = cache.redis.lock.return_value
        lock.acquire.assert_awaited_once_with(blocking=False)
        lock.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_held_lock_rejects_second_run(self, cache):
        lock = cache.redis.lock.return_value
        lock.acquire.return_value = False
        ran = []

        with patch("core.cache.settings.normalization_lock_enabled", True):
            with pytest.raises(NormalizationInProgressError):
                async with cache.single_flight():
                    ran.append(True)

        assert ran == []
        lock.release.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_released_when_block_fails(self, cache):
        with patch("core.cache.settings.normalization_lock_enabled", True):
            with pytest.raises(RuntimeError):
                async with cache.single_flight():
                    raise RuntimeError("normalization failed")

        cache.redis.lock.return_value.release.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_disabled_lock_skips_redis(self, cache):
        with patch("core.cache.settings.normalization_lock_enabled", False):
            async with cache.single_flight():
                pass

        cache.redis.lock.assert_not_called()

    def test_uninitialized_client_raises(self):
        cache = RedisCache()
        original = cache._redis
        cache._redis = None
        try:
            with pytest.raises(RuntimeError):
                cache.redis
        finally:
            cache._redis = original
