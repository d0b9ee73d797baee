"""Redis run lock so two sync runs never overlap."""

from __future__ import annotations

import logging
import uuid
from types import TracebackType

import redis.asyncio as aioredis

from bossraid.exceptions import SyncAlreadyRunningError

logger = logging.getLogger(__name__)

SYNC_LOCK_KEY = "bossraid:sync:lock"

# Delete only if we still own the key; the TTL may have handed it to another run.
_RELEASE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""


class SyncLock:
    """SET NX EX lock with a token-checked release.

    Usage:
        async with SyncLock(redis_client, ttl_seconds=1800):
            ...
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        key: str = SYNC_LOCK_KEY,
        ttl_seconds: int = 1800,
    ) -> None:
        self.redis = redis_client
        self.key = key
        self.ttl_seconds = ttl_seconds
        self.token: str | None = None

    async def acquire(self) -> bool:
        token = uuid.uuid4().hex
        acquired = await self.redis.set(self.key, token, nx=True, ex=self.ttl_seconds)
        if acquired:
            self.token = token
            logger.info("Acquired sync lock %s (ttl=%ds)", self.key, self.ttl_seconds)
        return bool(acquired)

    async def release(self) -> bool:
        if self.token is None:
            return False
        released = await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)
        self.token = None
        if not released:
            logger.warning("Sync lock %s expired before release", self.key)
        return bool(released)

    async def __aenter__(self) -> SyncLock:
        if not await self.acquire():
            raise SyncAlreadyRunningError(f"Another sync run holds {self.key}")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.release()
