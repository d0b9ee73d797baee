"""Raid damage accumulator: delivery logs → damage ledger → boss HP.

For one active raid:
1. load participants (none → skip, no state change)
2. load their delivery logs in the raid's district and date window
3. score each log and upsert raid_damages keyed by (raid, rider, date)
4. deduct the ledger delta from current_hp; HP only ever goes down
5. defeat (HP 0) flips status to completed in the same predicate update

HP accounting is a ledger-delta ratchet: a row contributes only the
amount by which it grew since it was last scored. Reruns over
unchanged logs deal zero damage; downward corrections update the
ledger but never give HP back.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bossraid.db.models import BossRaid, DeliveryLog, RaidDamage, RaidParticipant
from bossraid.db.upsert import upsert
from bossraid.exceptions import StoreReadError, StoreWriteError
from bossraid.raids.damage import Damage, compute_damage
from bossraid.raids.status import RaidStatus, next_status

logger = structlog.get_logger()


@dataclass
class RaidOutcome:
    """Per-raid result of one sync pass."""

    raid_id: int
    district: str
    boss_name: str
    participants: int = 0
    logs_scanned: int = 0
    damage_rows_written: int = 0
    damage_rows_failed: int = 0
    damage_computed: int = 0
    total_damage_dealt: int = 0
    previous_hp: int = 0
    new_hp: int = 0
    completed: bool = False
    skipped: bool = False
    rankings: int = 0
    rewards_issued: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


async def load_participant_ids(db: AsyncSession, raid_id: int) -> list[str]:
    try:
        result = await db.execute(
            select(RaidParticipant.rider_id).where(RaidParticipant.raid_id == raid_id)
        )
    except SQLAlchemyError as exc:
        raise StoreReadError(f"Failed to read participants for raid {raid_id}: {exc}") from exc
    return list(result.scalars().all())


async def load_eligible_logs(
    db: AsyncSession, raid: BossRaid, participant_ids: list[str]
) -> list[DeliveryLog]:
    """Participants' logs in the raid district, start/end dates inclusive."""
    try:
        result = await db.execute(
            select(DeliveryLog)
            .where(
                DeliveryLog.rider_id.in_(participant_ids),
                DeliveryLog.district == raid.district,
                DeliveryLog.delivery_date >= raid.start_date,
                DeliveryLog.delivery_date <= raid.end_date,
            )
            .order_by(DeliveryLog.delivery_date, DeliveryLog.rider_id)
        )
    except SQLAlchemyError as exc:
        raise StoreReadError(f"Failed to read delivery logs for raid {raid.id}: {exc}") from exc
    return list(result.scalars().all())


async def load_scored_damage(db: AsyncSession, raid_id: int) -> dict[tuple[str, date], int]:
    """Currently stored total_damage per (rider_id, damage_date)."""
    try:
        result = await db.execute(
            select(RaidDamage.rider_id, RaidDamage.damage_date, RaidDamage.total_damage)
            .where(RaidDamage.raid_id == raid_id)
        )
    except SQLAlchemyError as exc:
        raise StoreReadError(f"Failed to read damage ledger for raid {raid_id}: {exc}") from exc
    return {(r.rider_id, r.damage_date): r.total_damage for r in result.all()}


async def _upsert_damage(
    db: AsyncSession,
    raid_id: int,
    log: DeliveryLog,
    damage: Damage,
    now: datetime,
) -> None:
    await db.execute(
        upsert(
            db,
            RaidDamage,
            {
                "raid_id": raid_id,
                "rider_id": log.rider_id,
                "damage_date": log.delivery_date,
                "base_damage": damage.base_damage,
                "bonus_multiplier": damage.bonus_multiplier,
                "total_damage": damage.total_damage,
                "updated_at": now,
            },
            ["raid_id", "rider_id", "damage_date"],
        )
    )


async def _update_raid_hp(
    db: AsyncSession,
    raid: BossRaid,
    new_hp: int,
    new_status: str,
    now: datetime,
) -> int:
    """Predicate update: only an active raid whose HP would not rise."""
    result = await db.execute(
        update(BossRaid)
        .where(
            BossRaid.id == raid.id,
            BossRaid.status == RaidStatus.ACTIVE.value,
            BossRaid.current_hp >= new_hp,
        )
        .values(current_hp=new_hp, status=new_status, updated_at=now)
    )
    return result.rowcount


async def accumulate_raid_damage(db: AsyncSession, raid: BossRaid) -> RaidOutcome:
    """Score one raid's eligible logs and apply the HP delta. Does not commit."""
    outcome = RaidOutcome(
        raid_id=raid.id,
        district=raid.district,
        boss_name=raid.boss_name,
        previous_hp=raid.current_hp,
        new_hp=raid.current_hp,
    )

    participant_ids = await load_participant_ids(db, raid.id)
    outcome.participants = len(participant_ids)
    if not participant_ids:
        outcome.skipped = True
        logger.info("raid_skipped_no_participants", raid_id=raid.id)
        return outcome

    logs = await load_eligible_logs(db, raid, participant_ids)
    outcome.logs_scanned = len(logs)
    scored = await load_scored_damage(db, raid.id)
    now = datetime.now(timezone.utc)
    buff = float(raid.buff_multiplier)

    for log in logs:
        damage = compute_damage(log.delivery_count, log.is_rainy, log.has_surge, buff)
        try:
            async with db.begin_nested():
                await _upsert_damage(db, raid.id, log, damage, now)
        except SQLAlchemyError as exc:
            outcome.damage_rows_failed += 1
            logger.error(
                "damage_write_failed",
                raid_id=raid.id,
                rider_id=log.rider_id,
                damage_date=log.delivery_date.isoformat(),
                error=str(exc),
            )
            continue

        previous = scored.get((log.rider_id, log.delivery_date), 0)
        scored[(log.rider_id, log.delivery_date)] = damage.total_damage
        outcome.damage_rows_written += 1
        outcome.damage_computed += damage.total_damage
        outcome.total_damage_dealt += max(0, damage.total_damage - previous)

    if outcome.total_damage_dealt == 0:
        logger.info(
            "raid_no_new_damage",
            raid_id=raid.id,
            logs=outcome.logs_scanned,
            current_hp=raid.current_hp,
        )
        return outcome

    new_hp = max(0, raid.current_hp - outcome.total_damage_dealt)
    new_status = next_status(raid.status, new_hp)

    try:
        updated = await _update_raid_hp(db, raid, new_hp, new_status, now)
    except SQLAlchemyError as exc:
        raise StoreWriteError(f"Failed to update HP for raid {raid.id}: {exc}") from exc
    if not updated:
        raise StoreWriteError(f"Raid {raid.id} is no longer active; HP update rejected")

    outcome.new_hp = new_hp
    outcome.completed = new_status == RaidStatus.COMPLETED.value
    logger.info(
        "raid_damage_applied",
        raid_id=raid.id,
        damage=outcome.total_damage_dealt,
        hp=f"{new_hp}/{raid.max_hp}",
        completed=outcome.completed,
    )
    return outcome
