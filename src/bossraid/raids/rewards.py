"""Reward allocation on raid completion.

Rank 1   → real reward
Rank 2-3 → virtual rank badge
Everyone else who joined → participation badge

Called only from the active→completed transition, inside the same
transaction as the HP write. raid_rewards has a UNIQUE(raid_id, rider_id)
constraint and inserts use ON CONFLICT DO NOTHING, so a retried
allocation can never issue a second row to the same rider.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bossraid.config import Settings, get_settings
from bossraid.db.models import RaidParticipant, RaidReward
from bossraid.db.upsert import dialect_insert
from bossraid.exceptions import StoreReadError, StoreWriteError
from bossraid.raids.ranking import RankedRider, compute_rankings
from bossraid.raids.status import RewardType

logger = logging.getLogger(__name__)

TOP_RANKS = 3


@dataclass(frozen=True)
class RewardGrant:
    rider_id: str
    rank: int | None
    reward_type: str
    reward_description: str


def determine_rank_reward(rank: int, settings: Settings) -> tuple[str, str] | None:
    """Reward type and description for a rank, or None below the podium."""
    if rank == 1:
        return RewardType.REAL.value, settings.first_place_reward
    if rank <= TOP_RANKS:
        return RewardType.VIRTUAL.value, settings.rank_badge_template.format(rank=rank)
    return None


def plan_rewards(
    ranked: list[tuple[str, int]],
    participant_ids: list[str],
    settings: Settings,
) -> list[RewardGrant]:
    """Decide rewards from (rider_id, rank) pairs ordered by rank.

    Participants outside the podium set computed here get the
    participation badge; nobody appears twice.
    """
    grants: list[RewardGrant] = []
    podium: set[str] = set()

    for rider_id, rank in ranked:
        if rank > TOP_RANKS:
            break
        reward = determine_rank_reward(rank, settings)
        if reward is None or rider_id in podium:
            continue
        reward_type, description = reward
        grants.append(RewardGrant(rider_id, rank, reward_type, description))
        podium.add(rider_id)

    seen = set(podium)
    for rider_id in participant_ids:
        if rider_id in seen:
            continue
        grants.append(
            RewardGrant(rider_id, None, RewardType.BADGE.value, settings.participation_badge)
        )
        seen.add(rider_id)

    return grants


async def allocate_rewards(
    db: AsyncSession,
    raid_id: int,
    settings: Settings | None = None,
    ranked: list[RankedRider] | None = None,
) -> list[RewardGrant]:
    """Issue completion rewards for a raid. Returns the grants actually inserted.

    Tiers come from ``ranked`` (the ranking just rebuilt in this transaction)
    or, when omitted, from the damage ledger. Stored raid_rankings rows are
    not read: stale rows there keep their old rank.
    Does not commit; the caller commits together with the completion.
    """
    if settings is None:
        settings = get_settings()
    if ranked is None:
        ranked = await compute_rankings(db, raid_id)

    try:
        result = await db.execute(
            select(RaidParticipant.rider_id)
            .where(RaidParticipant.raid_id == raid_id)
            .order_by(RaidParticipant.id)
        )
        participant_ids = list(result.scalars().all())
    except SQLAlchemyError as exc:
        raise StoreReadError(f"Failed to read participants for raid {raid_id}: {exc}") from exc

    grants = plan_rewards(
        [(r.rider_id, r.rank) for r in ranked],
        participant_ids,
        settings,
    )

    now = datetime.now(timezone.utc)
    issued: list[RewardGrant] = []
    for grant in grants:
        stmt = (
            dialect_insert(db, RaidReward)
            .values(
                raid_id=raid_id,
                rider_id=grant.rider_id,
                rank=grant.rank,
                reward_type=grant.reward_type,
                reward_description=grant.reward_description,
                issued_at=now,
            )
            .on_conflict_do_nothing(index_elements=["raid_id", "rider_id"])
        )
        try:
            result = await db.execute(stmt)
        except SQLAlchemyError as exc:
            raise StoreWriteError(
                f"Failed to issue reward for raid {raid_id}, rider {grant.rider_id}: {exc}"
            ) from exc
        if result.rowcount:
            issued.append(grant)
        else:
            logger.warning("Reward already issued for raid %d, rider %s", raid_id, grant.rider_id)

    first = next((g for g in issued if g.reward_type == RewardType.REAL.value), None)
    if first is not None:
        logger.info("Raid %d first-place reward: %s", raid_id, first.rider_id)
    logger.info("Raid %d rewards issued: %d", raid_id, len(issued))
    return issued


async def get_rewards(db: AsyncSession, raid_id: int) -> list[RaidReward]:
    """Rewards for a raid, ranked riders first."""
    result = await db.execute(
        select(RaidReward)
        .where(RaidReward.raid_id == raid_id)
        .order_by(RaidReward.rank.is_(None), RaidReward.rank, RaidReward.rider_id)
    )
    return list(result.scalars().all())
