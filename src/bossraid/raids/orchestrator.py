"""Sync orchestrator: one full boss raid sync run.

Stages, in order:
1. ingest delivery log rows (invalid rows skipped, counted)
2. for every active raid, in its own transaction: accumulate damage,
   update HP, rebuild rankings and, on defeat, issue rewards
3. refresh rankings of completed raids so they stay queryable

A failure inside one raid rolls back that raid only and is reported;
failing to list raids aborts the run.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bossraid.config import Settings, get_settings
from bossraid.db.models import BossRaid
from bossraid.exceptions import StoreReadError, StoreWriteError
from bossraid.raids.accumulator import RaidOutcome, accumulate_raid_damage
from bossraid.raids.ingest import IngestStats, iter_delivery_logs, sync_delivery_logs
from bossraid.raids.ranking import rebuild_rankings
from bossraid.raids.rewards import allocate_rewards
from bossraid.raids.status import RaidStatus

logger = structlog.get_logger()


@dataclass
class SyncReport:
    """Summary of one sync run."""

    started_at: datetime
    finished_at: datetime | None = None
    logs: IngestStats = field(default_factory=IngestStats)
    raids: list[RaidOutcome] = field(default_factory=list)
    completed_rankings_refreshed: int = 0
    ranking_errors: list[str] = field(default_factory=list)

    @property
    def failed_raids(self) -> list[RaidOutcome]:
        return [r for r in self.raids if r.error is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "logs": self.logs.to_dict(),
            "raids": [r.to_dict() for r in self.raids],
            "completed_rankings_refreshed": self.completed_rankings_refreshed,
            "ranking_errors": list(self.ranking_errors),
        }


async def list_raid_ids(db: AsyncSession, statuses: Iterable[str]) -> list[int]:
    try:
        result = await db.execute(
            select(BossRaid.id)
            .where(BossRaid.status.in_(list(statuses)))
            .order_by(BossRaid.district, BossRaid.id)
        )
    except SQLAlchemyError as exc:
        raise StoreReadError(f"Failed to list raids: {exc}") from exc
    return list(result.scalars().all())


async def process_raid(db: AsyncSession, raid_id: int, settings: Settings) -> RaidOutcome:
    """Process one active raid as a single unit of work and commit it."""
    try:
        raid = await db.get(BossRaid, raid_id)
    except SQLAlchemyError as exc:
        raise StoreReadError(f"Failed to load raid {raid_id}: {exc}") from exc
    if raid is None:
        raise StoreReadError(f"Raid {raid_id} not found")

    if raid.status != RaidStatus.ACTIVE.value:
        logger.info("raid_no_longer_active", status=raid.status)
        return RaidOutcome(
            raid_id=raid.id,
            district=raid.district,
            boss_name=raid.boss_name,
            previous_hp=raid.current_hp,
            new_hp=raid.current_hp,
            skipped=True,
        )

    logger.info("raid_processing", district=raid.district, boss=raid.boss_name)
    outcome = await accumulate_raid_damage(db, raid)

    ranked = await rebuild_rankings(db, raid_id)
    outcome.rankings = len(ranked)

    if outcome.completed:
        logger.info("raid_completed", raid_id=raid_id)
        issued = await allocate_rewards(db, raid_id, settings, ranked=ranked)
        outcome.rewards_issued = len(issued)

    try:
        await db.commit()
    except SQLAlchemyError as exc:
        raise StoreWriteError(f"Failed to commit raid {raid_id}: {exc}") from exc
    return outcome


async def refresh_completed_rankings(
    session_factory: async_sessionmaker[AsyncSession],
    raid_ids: Iterable[int],
    report: SyncReport,
) -> None:
    for raid_id in raid_ids:
        async with session_factory() as db:
            try:
                await rebuild_rankings(db, raid_id)
                await db.commit()
            except (StoreReadError, StoreWriteError, SQLAlchemyError) as exc:
                await db.rollback()
                report.ranking_errors.append(f"raid {raid_id}: {exc}")
                logger.error("ranking_refresh_failed", raid_id=raid_id, error=str(exc))
            else:
                report.completed_rankings_refreshed += 1


async def run_sync(
    session_factory: async_sessionmaker[AsyncSession],
    rows: Iterable[Mapping[str, Any]],
    settings: Settings | None = None,
) -> SyncReport:
    """Run every sync stage once over the given source rows."""
    if settings is None:
        settings = get_settings()
    report = SyncReport(started_at=datetime.now(timezone.utc))
    logger.info("sync_started", started_at=report.started_at.isoformat())

    # 1. Ingest
    async with session_factory() as db:
        try:
            await sync_delivery_logs(db, iter_delivery_logs(rows, report.logs), report.logs)
        except StoreWriteError as exc:
            report.logs.failed += report.logs.synced
            report.logs.synced = 0
            logger.error("delivery_log_commit_failed", error=str(exc))

    # 2. Active raids
    async with session_factory() as db:
        active_ids = await list_raid_ids(db, [RaidStatus.ACTIVE.value])
    logger.info("active_raids_found", count=len(active_ids))

    for raid_id in active_ids:
        with structlog.contextvars.bound_contextvars(raid_id=raid_id):
            async with session_factory() as db:
                try:
                    outcome = await process_raid(db, raid_id, settings)
                except (StoreReadError, StoreWriteError) as exc:
                    await db.rollback()
                    logger.error("raid_failed", error=str(exc))
                    outcome = RaidOutcome(raid_id=raid_id, district="", boss_name="", error=str(exc))
            report.raids.append(outcome)

    # 3. Completed raids keep fresh rankings
    processed = {o.raid_id for o in report.raids}
    async with session_factory() as db:
        completed_ids = await list_raid_ids(db, [RaidStatus.COMPLETED.value])
    await refresh_completed_rankings(
        session_factory, [i for i in completed_ids if i not in processed], report
    )

    report.finished_at = datetime.now(timezone.utc)
    logger.info(
        "sync_finished",
        logs_synced=report.logs.synced,
        logs_failed=report.logs.failed,
        raids=len(report.raids),
        raids_failed=len(report.failed_raids),
    )
    return report


def format_report(report: SyncReport) -> str:
    """Human-readable run report."""
    logs = report.logs
    lines = [
        "=" * 60,
        "Boss raid sync report",
        f"Started:  {report.started_at.isoformat()}",
        f"Finished: {report.finished_at.isoformat() if report.finished_at else '-'}",
        "-" * 60,
        (
            f"Delivery logs: {logs.read} read, {logs.synced} synced, {logs.failed} failed, "
            f"{logs.invalid} invalid, {logs.blank} blank"
        ),
        f"Active raids processed: {len(report.raids)}",
    ]
    for r in report.raids:
        if r.error is not None:
            lines.append(f"  [raid {r.raid_id}] FAILED: {r.error}")
            continue
        label = f"  [raid {r.raid_id}] {r.district} - {r.boss_name}"
        if r.skipped:
            lines.append(f"{label}: skipped ({r.participants} participants)")
            continue
        status = "COMPLETED" if r.completed else "active"
        lines.append(
            f"{label}: {r.logs_scanned} logs, {r.damage_rows_written} damage rows "
            f"({r.damage_rows_failed} failed), damage dealt {r.total_damage_dealt:,}, "
            f"HP {r.previous_hp:,} -> {r.new_hp:,}, {status}, "
            f"{r.rankings} ranked, {r.rewards_issued} rewards"
        )
    lines.append(f"Completed raid rankings refreshed: {report.completed_rankings_refreshed}")
    for err in report.ranking_errors:
        lines.append(f"  ranking error: {err}")
    lines.append("=" * 60)
    return "\n".join(lines)
