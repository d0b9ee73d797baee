"""Deterministic raid ranking.

Riders ranked by summed damage DESC, then by rider_id ASC as the
tiebreaker, so equal damage never depends on storage read order.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bossraid.db.models import RaidDamage, RaidRanking
from bossraid.db.upsert import upsert
from bossraid.exceptions import StoreReadError, StoreWriteError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedRider:
    rider_id: str
    total_damage: int
    rank: int


def sum_damage_by_rider(rows: Iterable[tuple[str, int]]) -> dict[str, int]:
    """Reduce (rider_id, total_damage) ledger rows to per-rider totals."""
    totals: dict[str, int] = defaultdict(int)
    for rider_id, total_damage in rows:
        totals[rider_id] += total_damage
    return dict(totals)


def rank_riders(totals: Mapping[str, int]) -> list[RankedRider]:
    """Rank riders by total damage. Ranks are contiguous from 1."""
    ordered = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    return [
        RankedRider(rider_id=rider_id, total_damage=total, rank=idx + 1)
        for idx, (rider_id, total) in enumerate(ordered)
    ]


async def compute_rankings(db: AsyncSession, raid_id: int) -> list[RankedRider]:
    """Rank riders from the damage ledger alone, ignoring stored ranking rows."""
    try:
        result = await db.execute(
            select(RaidDamage.rider_id, RaidDamage.total_damage)
            .where(RaidDamage.raid_id == raid_id)
        )
        rows = result.all()
    except SQLAlchemyError as exc:
        raise StoreReadError(f"Failed to read damages for raid {raid_id}: {exc}") from exc

    return rank_riders(sum_damage_by_rider((r.rider_id, r.total_damage) for r in rows))


async def rebuild_rankings(db: AsyncSession, raid_id: int) -> list[RankedRider]:
    """Re-aggregate the full damage ledger and upsert every ranking row.

    Rows for riders no longer in the ledger are left untouched; see
    reconciliation.build_reconciliation_report. Does not commit.
    """
    ranked = await compute_rankings(db, raid_id)
    now = datetime.now(timezone.utc)

    for entry in ranked:
        try:
            await db.execute(
                upsert(
                    db,
                    RaidRanking,
                    {
                        "raid_id": raid_id,
                        "rider_id": entry.rider_id,
                        "total_damage": entry.total_damage,
                        "rank": entry.rank,
                        "last_updated": now,
                    },
                    ["raid_id", "rider_id"],
                )
            )
        except SQLAlchemyError as exc:
            raise StoreWriteError(
                f"Failed to write ranking for raid {raid_id}, rider {entry.rider_id}: {exc}"
            ) from exc

    logger.info("Raid %d rankings rebuilt: %d riders", raid_id, len(ranked))
    for entry in ranked[:3]:
        logger.info("  #%d %s - %d damage", entry.rank, entry.rider_id, entry.total_damage)
    return ranked


async def get_rankings(db: AsyncSession, raid_id: int, limit: int | None = None) -> list[RaidRanking]:
    """Ranking rows for a raid, ordered by rank."""
    stmt = (
        select(RaidRanking)
        .where(RaidRanking.raid_id == raid_id)
        .order_by(RaidRanking.rank, RaidRanking.rider_id)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    try:
        result = await db.execute(stmt)
    except SQLAlchemyError as exc:
        raise StoreReadError(f"Failed to read rankings for raid {raid_id}: {exc}") from exc
    return list(result.scalars().all())
