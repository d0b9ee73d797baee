"""Read-only reconciliation report for orphan and stale rows.

The sync pipeline never deletes state. This report lists what an
operator may want to clean up by hand:
- ranking rows for riders with no remaining damage rows
- damage rows for riders who are no longer raid participants
- delivery logs for riders who joined no raid
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import and_, exists, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bossraid.db.models import DeliveryLog, RaidDamage, RaidParticipant, RaidRanking
from bossraid.exceptions import StoreReadError


@dataclass
class ReconciliationReport:
    stale_rankings: list[tuple[int, str]] = field(default_factory=list)
    orphan_damages: list[tuple[int, str]] = field(default_factory=list)
    unjoined_log_riders: list[str] = field(default_factory=list)
    unjoined_log_count: int = 0

    @property
    def is_clean(self) -> bool:
        return not (self.stale_rankings or self.orphan_damages or self.unjoined_log_riders)

    def format(self) -> str:
        lines = ["Reconciliation report"]
        lines.append(f"Stale rankings: {len(self.stale_rankings)}")
        lines.extend(f"  raid {raid_id}: {rider_id}" for raid_id, rider_id in self.stale_rankings)
        lines.append(f"Damage rows for non-participants: {len(self.orphan_damages)}")
        lines.extend(f"  raid {raid_id}: {rider_id}" for raid_id, rider_id in self.orphan_damages)
        lines.append(
            f"Delivery logs from riders in no raid: {self.unjoined_log_count} "
            f"({len(self.unjoined_log_riders)} riders)"
        )
        lines.extend(f"  {rider_id}" for rider_id in self.unjoined_log_riders)
        return "\n".join(lines)


async def build_reconciliation_report(
    db: AsyncSession, raid_id: int | None = None
) -> ReconciliationReport:
    """Collect orphan/stale rows, optionally for a single raid."""
    report = ReconciliationReport()

    has_damage = exists().where(
        and_(
            RaidDamage.raid_id == RaidRanking.raid_id,
            RaidDamage.rider_id == RaidRanking.rider_id,
        )
    )
    stale_stmt = (
        select(RaidRanking.raid_id, RaidRanking.rider_id)
        .where(~has_damage)
        .order_by(RaidRanking.raid_id, RaidRanking.rider_id)
    )

    is_participant = exists().where(
        and_(
            RaidParticipant.raid_id == RaidDamage.raid_id,
            RaidParticipant.rider_id == RaidDamage.rider_id,
        )
    )
    orphan_stmt = (
        select(RaidDamage.raid_id, RaidDamage.rider_id)
        .distinct()
        .where(~is_participant)
        .order_by(RaidDamage.raid_id, RaidDamage.rider_id)
    )

    if raid_id is not None:
        stale_stmt = stale_stmt.where(RaidRanking.raid_id == raid_id)
        orphan_stmt = orphan_stmt.where(RaidDamage.raid_id == raid_id)

    joined_any = exists().where(RaidParticipant.rider_id == DeliveryLog.rider_id)
    unjoined_stmt = (
        select(DeliveryLog.rider_id, func.count(DeliveryLog.id))
        .where(~joined_any)
        .group_by(DeliveryLog.rider_id)
        .order_by(DeliveryLog.rider_id)
    )

    try:
        report.stale_rankings = [(r[0], r[1]) for r in (await db.execute(stale_stmt)).all()]
        report.orphan_damages = [(r[0], r[1]) for r in (await db.execute(orphan_stmt)).all()]
        unjoined = (await db.execute(unjoined_stmt)).all()
    except SQLAlchemyError as exc:
        raise StoreReadError(f"Failed to build reconciliation report: {exc}") from exc

    report.unjoined_log_riders = [r[0] for r in unjoined]
    report.unjoined_log_count = sum(r[1] for r in unjoined)
    return report
