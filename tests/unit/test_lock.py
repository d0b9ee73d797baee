"""Unit tests for the Redis sync run lock."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from bossraid.exceptions import SyncAlreadyRunningError
from bossraid.workers.lock import SYNC_LOCK_KEY, SyncLock


@pytest.fixture
def redis_client() -> AsyncMock:
    client = AsyncMock()
    client.set.return_value = True
    client.eval.return_value = 1
    return client


class TestSyncLock:
    async def test_acquire_uses_set_nx_ex(self, redis_client: AsyncMock):
        lock = SyncLock(redis_client, ttl_seconds=60)
        assert await lock.acquire() is True
        redis_client.set.assert_awaited_once_with(SYNC_LOCK_KEY, lock.token, nx=True, ex=60)

    async def test_acquire_fails_when_held(self, redis_client: AsyncMock):
        redis_client.set.return_value = None
        lock = SyncLock(redis_client)
        assert await lock.acquire() is False
        assert lock.token is None

    async def test_release_checks_token(self, redis_client: AsyncMock):
        lock = SyncLock(redis_client)
        await lock.acquire()
        token = lock.token
        assert await lock.release() is True
        args = redis_client.eval.await_args.args
        assert args[1:] == (1, SYNC_LOCK_KEY, token)
        assert lock.token is None

    async def test_release_without_acquire_is_noop(self, redis_client: AsyncMock):
        lock = SyncLock(redis_client)
        assert await lock.release() is False
        redis_client.eval.assert_not_awaited()

    async def test_context_manager_releases(self, redis_client: AsyncMock):
        async with SyncLock(redis_client) as lock:
            assert lock.token is not None
        redis_client.eval.assert_awaited_once()

    async def test_context_manager_raises_when_held(self, redis_client: AsyncMock):
        redis_client.set.return_value = False
        with pytest.raises(SyncAlreadyRunningError):
            async with SyncLock(redis_client):
                pass
        redis_client.eval.assert_not_awaited()

    async def test_released_after_error(self, redis_client: AsyncMock):
        with pytest.raises(RuntimeError):
            async with SyncLock(redis_client):
                raise RuntimeError("boom")
        redis_client.eval.assert_awaited_once()
