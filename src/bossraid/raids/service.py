"""Raid queries and the participant join action."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bossraid.db.models import BossRaid, RaidDamage, RaidParticipant, RaidRanking
from bossraid.raids.ingest import parse_rider_id
from bossraid.raids.status import RaidStatus

logger = logging.getLogger(__name__)


class RaidNotFoundError(LookupError):
    pass


class RaidNotActiveError(ValueError):
    pass


class AlreadyJoinedError(ValueError):
    pass


async def get_raids(db: AsyncSession, status: str | None = None) -> list[BossRaid]:
    """Raids ordered by district, optionally filtered by status."""
    stmt = select(BossRaid).order_by(BossRaid.district, BossRaid.id)
    if status is not None:
        stmt = stmt.where(BossRaid.status == status)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_raid(db: AsyncSession, raid_id: int) -> BossRaid:
    raid = await db.get(BossRaid, raid_id)
    if raid is None:
        raise RaidNotFoundError(f"Raid {raid_id} not found")
    return raid


async def get_participants(db: AsyncSession, raid_id: int) -> list[RaidParticipant]:
    result = await db.execute(
        select(RaidParticipant)
        .where(RaidParticipant.raid_id == raid_id)
        .order_by(RaidParticipant.joined_at, RaidParticipant.id)
    )
    return list(result.scalars().all())


async def get_participant_names(db: AsyncSession, raid_id: int) -> dict[str, str | None]:
    result = await db.execute(
        select(RaidParticipant.rider_id, RaidParticipant.rider_name)
        .where(RaidParticipant.raid_id == raid_id)
    )
    return {row.rider_id: row.rider_name for row in result.all()}


async def is_rider_participating(db: AsyncSession, raid_id: int, rider_id: str) -> bool:
    result = await db.execute(
        select(RaidParticipant.id).where(
            RaidParticipant.raid_id == raid_id,
            RaidParticipant.rider_id == rider_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def join_raid(
    db: AsyncSession,
    raid_id: int,
    rider_id: str,
    rider_name: str | None = None,
) -> RaidParticipant:
    """Register a rider for an active raid.

    Raises InvalidRiderId, RaidNotFoundError, RaidNotActiveError or
    AlreadyJoinedError.
    """
    rider_id = parse_rider_id(rider_id)
    raid = await get_raid(db, raid_id)
    if raid.status != RaidStatus.ACTIVE.value:
        raise RaidNotActiveError(f"Raid {raid_id} is {raid.status}")

    if await is_rider_participating(db, raid_id, rider_id):
        raise AlreadyJoinedError(f"Rider {rider_id} already joined raid {raid_id}")

    participant = RaidParticipant(
        raid_id=raid_id,
        rider_id=rider_id,
        rider_name=rider_name,
        joined_at=datetime.now(timezone.utc),
    )
    db.add(participant)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise AlreadyJoinedError(f"Rider {rider_id} already joined raid {raid_id}") from None

    logger.info("Rider %s joined raid %d", rider_id, raid_id)
    return participant


async def get_raid_damage_total(db: AsyncSession, raid_id: int) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(RaidDamage.total_damage), 0))
        .where(RaidDamage.raid_id == raid_id)
    )
    return int(result.scalar_one())


async def count_participants(db: AsyncSession, raid_id: int) -> int:
    result = await db.execute(
        select(func.count(RaidParticipant.id)).where(RaidParticipant.raid_id == raid_id)
    )
    return int(result.scalar_one())


async def get_rider_damage(
    db: AsyncSession, raid_id: int, rider_id: str
) -> tuple[RaidRanking | None, list[RaidDamage]]:
    """A rider's ranking row (if any) and daily damage rows by date."""
    ranking = await db.execute(
        select(RaidRanking).where(
            RaidRanking.raid_id == raid_id,
            RaidRanking.rider_id == rider_id,
        )
    )
    damages = await db.execute(
        select(RaidDamage)
        .where(RaidDamage.raid_id == raid_id, RaidDamage.rider_id == rider_id)
        .order_by(RaidDamage.damage_date)
    )
    return ranking.scalar_one_or_none(), list(damages.scalars().all())
