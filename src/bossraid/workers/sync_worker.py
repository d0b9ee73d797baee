"""arq worker: scheduled daily boss raid sync.

Import path for arq CLI: arq bossraid.workers.sync_worker.RaidSyncWorkerSettings
"""

from __future__ import annotations

import logging
from typing import Any

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings

from bossraid.config import Settings, get_settings, require_sync_settings
from bossraid.database import close_db, get_session_factory, init_db
from bossraid.exceptions import SyncAlreadyRunningError
from bossraid.middleware.logging import setup_logging
from bossraid.raids.orchestrator import format_report, run_sync
from bossraid.raids.sources import fetch_delivery_rows
from bossraid.redis_client import create_redis
from bossraid.workers.lock import SyncLock

logger = logging.getLogger(__name__)


async def sync_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Validate config, open DB + Redis connections on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    require_sync_settings(settings)
    await init_db(settings.database_url)

    ctx["settings"] = settings
    ctx["redis"] = create_redis(settings.redis_url)
    logger.info("Raid sync worker started")


async def sync_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Raid sync worker shut down")


async def daily_raid_sync(ctx: dict) -> dict[str, Any] | None:  # type: ignore[type-arg]
    """Scheduled arq task: one full sync under the run lock.

    Returns the run report, or None when another run holds the lock.
    """
    settings: Settings = ctx["settings"]
    redis_client: aioredis.Redis = ctx["redis"]

    try:
        async with SyncLock(redis_client, ttl_seconds=settings.sync_lock_ttl_seconds):
            rows = fetch_delivery_rows(settings.delivery_log_path)
            report = await run_sync(get_session_factory(), rows, settings)
    except SyncAlreadyRunningError:
        logger.warning("Skipping daily raid sync: previous run still in progress")
        return None

    logger.info("Daily raid sync complete\n%s", format_report(report))
    return report.to_dict()


_settings = get_settings()


class RaidSyncWorkerSettings:
    """arq worker settings for the daily raid sync."""

    functions = [daily_raid_sync]
    cron_jobs = [
        cron(
            daily_raid_sync,
            hour=_settings.sync_cron_hour,
            minute=_settings.sync_cron_minute,
            run_at_startup=False,
            unique=True,
        ),
    ]
    on_startup = sync_startup
    on_shutdown = sync_shutdown
    redis_settings = RedisSettings.from_dsn(_settings.redis_url)
    max_jobs = 1
    job_timeout = _settings.sync_lock_ttl_seconds
    allow_abort_jobs = True
