"""Command-line entry point for the boss raid sync.

Usage:
    raid-sync sync [--source PATH] [--lock]
    raid-sync reconcile [--raid-id ID]
    python -m bossraid.workers.sync_runner sync

Exit code 0 when the run completes (individual raid failures are listed
in the report), 1 when it could not run at all.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

import structlog

from bossraid.config import Settings, get_settings, require_sync_settings
from bossraid.database import close_db, get_session_factory, init_db
from bossraid.exceptions import (
    ConfigurationError,
    SourceFetchError,
    StoreReadError,
    SyncAlreadyRunningError,
)
from bossraid.middleware.logging import setup_logging
from bossraid.raids.orchestrator import SyncReport, format_report, run_sync
from bossraid.raids.reconciliation import ReconciliationReport, build_reconciliation_report
from bossraid.raids.sources import fetch_delivery_rows
from bossraid.redis_client import create_redis
from bossraid.workers.lock import SyncLock

logger = structlog.get_logger()


async def execute_sync(
    settings: Settings,
    source_path: str | None = None,
    use_lock: bool = False,
) -> SyncReport:
    """Validate config, read the source and run one sync."""
    if source_path:
        settings = settings.model_copy(update={"delivery_log_path": source_path})
    require_sync_settings(settings)

    rows = fetch_delivery_rows(settings.delivery_log_path)

    await init_db(settings.database_url)
    try:
        if not use_lock:
            return await run_sync(get_session_factory(), rows, settings)

        redis_client = create_redis(settings.redis_url)
        try:
            async with SyncLock(redis_client, ttl_seconds=settings.sync_lock_ttl_seconds):
                return await run_sync(get_session_factory(), rows, settings)
        finally:
            await redis_client.aclose()
    finally:
        await close_db()


async def execute_reconcile(settings: Settings, raid_id: int | None = None) -> ReconciliationReport:
    if not settings.database_url:
        raise ConfigurationError("Missing required configuration: RAIDSYNC_DATABASE_URL")

    await init_db(settings.database_url)
    try:
        async with get_session_factory()() as db:
            return await build_reconciliation_report(db, raid_id)
    finally:
        await close_db()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="raid-sync", description="Boss raid data sync")
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Ingest delivery logs and process active raids")
    sync.add_argument("--source", help="Delivery log CSV (default: RAIDSYNC_DELIVERY_LOG_PATH)")
    sync.add_argument("--lock", action="store_true", help="Hold the Redis run lock during the run")

    reconcile = sub.add_parser("reconcile", help="Report orphan and stale rows (read-only)")
    reconcile.add_argument("--raid-id", type=int, default=None)
    return parser


async def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings)

    try:
        if args.command == "sync":
            report = await execute_sync(settings, args.source, use_lock=args.lock)
            print(format_report(report))
        else:
            recon = await execute_reconcile(settings, args.raid_id)
            print(recon.format())
    except (ConfigurationError, SourceFetchError, StoreReadError, SyncAlreadyRunningError) as exc:
        logger.error("sync_aborted", command=args.command, error=str(exc))
        print(f"raid-sync: {exc}", file=sys.stderr)
        return 1
    except Exception:
        logger.exception("sync_crashed", command=args.command)
        return 1
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
