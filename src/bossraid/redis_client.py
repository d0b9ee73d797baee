"""Redis client used by the sync run lock."""

import redis.asyncio as redis


def create_redis(url: str, max_connections: int = 10) -> redis.Redis:
    """Create a Redis client with string responses."""
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )
