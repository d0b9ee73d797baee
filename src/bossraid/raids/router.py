"""Boss raid API: raids, stats, rankings, rewards and participation."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from bossraid.database import get_session
from bossraid.db.models import BossRaid
from bossraid.exceptions import InvalidRiderId
from bossraid.raids.display import (
    calculate_days_remaining,
    calculate_hp_percentage,
    calculate_progress_percentage,
    mask_rider_id,
)
from bossraid.raids.ingest import parse_rider_id
from bossraid.raids.ranking import get_rankings
from bossraid.raids.rewards import get_rewards
from bossraid.raids.schemas import (
    DailyDamageResponse,
    JoinRaidRequest,
    ParticipantResponse,
    RaidStatsResponse,
    RaidSummaryResponse,
    RankingEntryResponse,
    RewardEntryResponse,
    RiderDamageResponse,
)
from bossraid.raids.service import (
    AlreadyJoinedError,
    RaidNotActiveError,
    RaidNotFoundError,
    count_participants,
    get_participant_names,
    get_participants,
    get_raid,
    get_raid_damage_total,
    get_raids,
    get_rider_damage,
    join_raid,
)

router = APIRouter(prefix="/api/v1", tags=["Boss Raids"])


# ── Helpers ──


async def _require_raid(db: AsyncSession, raid_id: int) -> BossRaid:
    try:
        return await get_raid(db, raid_id)
    except RaidNotFoundError:
        raise HTTPException(status_code=404, detail="Raid not found") from None


def _raid_to_response(raid: BossRaid) -> RaidSummaryResponse:
    return RaidSummaryResponse(
        id=raid.id,
        district=raid.district,
        boss_name=raid.boss_name,
        boss_type=raid.boss_type,
        boss_image_url=raid.boss_image_url,
        max_hp=raid.max_hp,
        current_hp=raid.current_hp,
        start_date=raid.start_date,
        end_date=raid.end_date,
        status=raid.status,
        buff_multiplier=raid.buff_multiplier,
        hp_percentage=calculate_hp_percentage(raid.current_hp, raid.max_hp),
        days_remaining=calculate_days_remaining(raid.end_date),
    )


# ── Raids ──


@router.get("/raids", response_model=list[RaidSummaryResponse])
async def list_raids(
    raid_status: str | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_session),
):
    """Raids ordered by district, e.g. ?status=active for the map view."""
    raids = await get_raids(db, raid_status)
    return [_raid_to_response(r) for r in raids]


@router.get("/raids/{raid_id}", response_model=RaidSummaryResponse)
async def raid_detail(raid_id: int, db: AsyncSession = Depends(get_session)):
    raid = await _require_raid(db, raid_id)
    return _raid_to_response(raid)


@router.get("/raids/{raid_id}/stats", response_model=RaidStatsResponse)
async def raid_stats(raid_id: int, db: AsyncSession = Depends(get_session)):
    raid = await _require_raid(db, raid_id)
    return RaidStatsResponse(
        raid_id=raid.id,
        participant_count=await count_participants(db, raid_id),
        total_damage_dealt=await get_raid_damage_total(db, raid_id),
        current_hp=raid.current_hp,
        max_hp=raid.max_hp,
        progress_percentage=calculate_progress_percentage(raid.current_hp, raid.max_hp),
        days_remaining=calculate_days_remaining(raid.end_date),
        status=raid.status,
        buff_multiplier=raid.buff_multiplier,
    )


@router.get("/raids/{raid_id}/rankings", response_model=list[RankingEntryResponse])
async def raid_rankings(
    raid_id: int,
    limit: int = Query(20, ge=1, le=500),
    db: AsyncSession = Depends(get_session),
):
    """Top riders by damage. Rider ids are masked."""
    await _require_raid(db, raid_id)
    rankings = await get_rankings(db, raid_id, limit)
    names = await get_participant_names(db, raid_id)
    return [
        RankingEntryResponse(
            rank=r.rank,
            rider_id=mask_rider_id(r.rider_id),
            rider_name=names.get(r.rider_id),
            total_damage=r.total_damage,
            last_updated=r.last_updated,
        )
        for r in rankings
    ]


@router.get("/raids/{raid_id}/riders/{rider_id}", response_model=RiderDamageResponse)
async def rider_damage(raid_id: int, rider_id: str, db: AsyncSession = Depends(get_session)):
    """Damage history for one rider. The id is echoed masked, like everywhere else."""
    try:
        rider_id = parse_rider_id(rider_id)
    except InvalidRiderId:
        raise HTTPException(status_code=400, detail="Invalid rider id") from None
    await _require_raid(db, raid_id)
    ranking, damages = await get_rider_damage(db, raid_id, rider_id)
    return RiderDamageResponse(
        raid_id=raid_id,
        rider_id=mask_rider_id(rider_id),
        total_damage=ranking.total_damage if ranking else 0,
        rank=ranking.rank if ranking else None,
        daily_damages=[
            DailyDamageResponse(
                damage_date=d.damage_date,
                base_damage=d.base_damage,
                bonus_multiplier=d.bonus_multiplier,
                total_damage=d.total_damage,
            )
            for d in damages
        ],
    )


@router.get("/raids/{raid_id}/rewards", response_model=list[RewardEntryResponse])
async def raid_rewards(raid_id: int, db: AsyncSession = Depends(get_session)):
    await _require_raid(db, raid_id)
    rewards = await get_rewards(db, raid_id)
    return [
        RewardEntryResponse(
            rider_id=mask_rider_id(r.rider_id),
            rank=r.rank,
            reward_type=r.reward_type,
            reward_description=r.reward_description,
            issued_at=r.issued_at,
        )
        for r in rewards
    ]


# ── Participation ──


@router.get("/raids/{raid_id}/participants", response_model=list[ParticipantResponse])
async def raid_participants(raid_id: int, db: AsyncSession = Depends(get_session)):
    await _require_raid(db, raid_id)
    participants = await get_participants(db, raid_id)
    return [
        ParticipantResponse(
            raid_id=p.raid_id,
            rider_id=mask_rider_id(p.rider_id),
            rider_name=p.rider_name,
            joined_at=p.joined_at,
        )
        for p in participants
    ]


@router.post(
    "/raids/{raid_id}/participants",
    response_model=ParticipantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join(raid_id: int, body: JoinRaidRequest, db: AsyncSession = Depends(get_session)):
    """Join a raid. Rider ids must look like BC123456."""
    try:
        participant = await join_raid(db, raid_id, body.rider_id, body.rider_name)
    except InvalidRiderId:
        raise HTTPException(status_code=400, detail="Invalid rider id") from None
    except RaidNotFoundError:
        raise HTTPException(status_code=404, detail="Raid not found") from None
    except RaidNotActiveError:
        raise HTTPException(status_code=400, detail="Raid is not active") from None
    except AlreadyJoinedError:
        raise HTTPException(status_code=409, detail="Already joined") from None

    return ParticipantResponse(
        raid_id=participant.raid_id,
        rider_id=participant.rider_id,
        rider_name=participant.rider_name,
        joined_at=participant.joined_at,
    )
