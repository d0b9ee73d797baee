"""ORM models matching the alembic raid schema.

Natural keys double as upsert conflict targets, so every unique
constraint below is named and mirrored in alembic/versions.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bossraid.db.base import Base


# ---------------------------------------------------------------------------
# Delivery logs
# ---------------------------------------------------------------------------


class DeliveryLog(Base):
    """One rider's delivery activity for one calendar day."""

    __tablename__ = "delivery_logs"
    __table_args__ = (
        UniqueConstraint("rider_id", "delivery_date", name="delivery_logs_rider_date_key"),
        CheckConstraint("delivery_count >= 0", name="delivery_logs_count_check"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rider_id: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_rainy: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    has_surge: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    district: Mapped[str] = mapped_column(String(64), nullable=False, server_default="")
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Raids
# ---------------------------------------------------------------------------


class BossRaid(Base):
    """A time-boxed contest against a district boss."""

    __tablename__ = "boss_raids"
    __table_args__ = (
        CheckConstraint("max_hp > 0", name="boss_raids_max_hp_check"),
        CheckConstraint("current_hp >= 0 AND current_hp <= max_hp", name="boss_raids_current_hp_check"),
        CheckConstraint("buff_multiplier >= 1.0", name="boss_raids_buff_check"),
        CheckConstraint("status IN ('active', 'completed', 'failed')", name="boss_raids_status_check"),
        CheckConstraint("boss_type IN ('fire', 'water', 'earth', 'wind')", name="boss_raids_type_check"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    district: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    boss_name: Mapped[str] = mapped_column(String(128), nullable=False)
    boss_type: Mapped[str] = mapped_column(String(16), nullable=False, server_default="fire")
    boss_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    max_hp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_hp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="active")
    buff_multiplier: Mapped[float] = mapped_column(Float, nullable=False, server_default="1.0")
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    participants: Mapped[list[RaidParticipant]] = relationship("RaidParticipant", back_populates="raid")


class RaidParticipant(Base):
    """Opt-in join record for a rider in a raid."""

    __tablename__ = "raid_participants"
    __table_args__ = (
        UniqueConstraint("raid_id", "rider_id", name="raid_participants_raid_rider_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raid_id: Mapped[int] = mapped_column(Integer, ForeignKey("boss_raids.id", ondelete="CASCADE"), nullable=False)
    rider_id: Mapped[str] = mapped_column(String(8), nullable=False)
    rider_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    joined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    raid: Mapped[BossRaid] = relationship("BossRaid", back_populates="participants")


class RaidDamage(Base):
    """Per-rider, per-day damage ledger entry."""

    __tablename__ = "raid_damages"
    __table_args__ = (
        UniqueConstraint("raid_id", "rider_id", "damage_date", name="raid_damages_raid_rider_date_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raid_id: Mapped[int] = mapped_column(Integer, ForeignKey("boss_raids.id", ondelete="CASCADE"), nullable=False)
    rider_id: Mapped[str] = mapped_column(String(8), nullable=False)
    damage_date: Mapped[date] = mapped_column(Date, nullable=False)
    base_damage: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    bonus_multiplier: Mapped[float] = mapped_column(Float, nullable=False, server_default="1.0")
    total_damage: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class RaidRanking(Base):
    """Derived standing, fully rewritten by the ranking builder."""

    __tablename__ = "raid_rankings"
    __table_args__ = (
        UniqueConstraint("raid_id", "rider_id", name="raid_rankings_raid_rider_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raid_id: Mapped[int] = mapped_column(Integer, ForeignKey("boss_raids.id", ondelete="CASCADE"), nullable=False)
    rider_id: Mapped[str] = mapped_column(String(8), nullable=False)
    total_damage: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default="0")
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class RaidReward(Base):
    """Reward issued on raid completion. At most one per rider per raid."""

    __tablename__ = "raid_rewards"
    __table_args__ = (
        UniqueConstraint("raid_id", "rider_id", name="raid_rewards_raid_rider_key"),
        CheckConstraint("reward_type IN ('real', 'virtual', 'badge')", name="raid_rewards_type_check"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    raid_id: Mapped[int] = mapped_column(Integer, ForeignKey("boss_raids.id", ondelete="CASCADE"), nullable=False)
    rider_id: Mapped[str] = mapped_column(String(8), nullable=False)
    rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reward_type: Mapped[str] = mapped_column(String(16), nullable=False)
    reward_description: Mapped[str] = mapped_column(Text, nullable=False)
    issued_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
