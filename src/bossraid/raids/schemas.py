"""Pydantic schemas for delivery log records and raid API responses."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# --- Ingestion boundary ---


class DeliveryLogRecord(BaseModel):
    """A validated delivery log row, ready to upsert."""

    model_config = ConfigDict(frozen=True)

    rider_id: str
    delivery_date: date
    delivery_count: int = Field(ge=0)
    is_rainy: bool = False
    has_surge: bool = False
    district: str = ""


# --- Raids ---


class RaidSummaryResponse(BaseModel):
    id: int
    district: str
    boss_name: str
    boss_type: str
    boss_image_url: str | None = None
    max_hp: int
    current_hp: int
    start_date: date
    end_date: date
    status: str
    buff_multiplier: float
    hp_percentage: float
    days_remaining: int


class RaidStatsResponse(BaseModel):
    raid_id: int
    participant_count: int
    total_damage_dealt: int
    current_hp: int
    max_hp: int
    progress_percentage: float
    days_remaining: int
    status: str
    buff_multiplier: float


class RankingEntryResponse(BaseModel):
    rank: int
    rider_id: str  # masked
    rider_name: str | None = None
    total_damage: int
    last_updated: datetime | None = None


class DailyDamageResponse(BaseModel):
    damage_date: date
    base_damage: int
    bonus_multiplier: float
    total_damage: int


class RiderDamageResponse(BaseModel):
    raid_id: int
    rider_id: str
    total_damage: int
    rank: int | None = None
    daily_damages: list[DailyDamageResponse]


class RewardEntryResponse(BaseModel):
    rider_id: str
    rank: int | None = None
    reward_type: str
    reward_description: str
    issued_at: datetime | None = None


# --- Participants ---


class JoinRaidRequest(BaseModel):
    rider_id: str
    rider_name: str | None = Field(default=None, max_length=64)


class ParticipantResponse(BaseModel):
    raid_id: int
    rider_id: str
    rider_name: str | None = None
    joined_at: datetime | None = None
