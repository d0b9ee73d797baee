"""Boss raid tables.

Creates delivery_logs, boss_raids, raid_participants, raid_damages,
raid_rankings and raid_rewards. Named unique constraints are the
conflict targets of the sync upserts.

Revision ID: 001_raid_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_raid_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Delivery Logs ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS delivery_logs (
            id SERIAL PRIMARY KEY,
            rider_id VARCHAR(8) NOT NULL,
            delivery_date DATE NOT NULL,
            delivery_count INTEGER NOT NULL DEFAULT 0,
            is_rainy BOOLEAN NOT NULL DEFAULT false,
            has_surge BOOLEAN NOT NULL DEFAULT false,
            district VARCHAR(64) NOT NULL DEFAULT '',
            synced_at TIMESTAMPTZ,
            CONSTRAINT delivery_logs_rider_date_key UNIQUE (rider_id, delivery_date),
            CONSTRAINT delivery_logs_count_check CHECK (delivery_count >= 0)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_delivery_logs_rider_id
        ON delivery_logs(rider_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_delivery_logs_district_date
        ON delivery_logs(district, delivery_date)
    """)

    # --- Boss Raids ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS boss_raids (
            id SERIAL PRIMARY KEY,
            district VARCHAR(64) NOT NULL,
            boss_name VARCHAR(128) NOT NULL,
            boss_type VARCHAR(16) NOT NULL DEFAULT 'fire',
            boss_image_url TEXT,
            max_hp BIGINT NOT NULL,
            current_hp BIGINT NOT NULL,
            start_date DATE NOT NULL,
            end_date DATE NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            buff_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT boss_raids_max_hp_check CHECK (max_hp > 0),
            CONSTRAINT boss_raids_current_hp_check CHECK (current_hp >= 0 AND current_hp <= max_hp),
            CONSTRAINT boss_raids_buff_check CHECK (buff_multiplier >= 1.0),
            CONSTRAINT boss_raids_status_check CHECK (status IN ('active', 'completed', 'failed')),
            CONSTRAINT boss_raids_type_check CHECK (boss_type IN ('fire', 'water', 'earth', 'wind'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_boss_raids_district
        ON boss_raids(district)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_boss_raids_status
        ON boss_raids(status)
    """)

    # --- Raid Participants ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS raid_participants (
            id SERIAL PRIMARY KEY,
            raid_id INTEGER NOT NULL REFERENCES boss_raids(id) ON DELETE CASCADE,
            rider_id VARCHAR(8) NOT NULL,
            rider_name VARCHAR(64),
            joined_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT raid_participants_raid_rider_key UNIQUE (raid_id, rider_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_raid_participants_rider
        ON raid_participants(rider_id)
    """)

    # --- Raid Damages ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS raid_damages (
            id SERIAL PRIMARY KEY,
            raid_id INTEGER NOT NULL REFERENCES boss_raids(id) ON DELETE CASCADE,
            rider_id VARCHAR(8) NOT NULL,
            damage_date DATE NOT NULL,
            base_damage BIGINT NOT NULL DEFAULT 0,
            bonus_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            total_damage BIGINT NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT raid_damages_raid_rider_date_key UNIQUE (raid_id, rider_id, damage_date)
        )
    """)

    # --- Raid Rankings ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS raid_rankings (
            id SERIAL PRIMARY KEY,
            raid_id INTEGER NOT NULL REFERENCES boss_raids(id) ON DELETE CASCADE,
            rider_id VARCHAR(8) NOT NULL,
            total_damage BIGINT NOT NULL DEFAULT 0,
            rank INTEGER NOT NULL,
            last_updated TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT raid_rankings_raid_rider_key UNIQUE (raid_id, rider_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_raid_rankings_raid_rank
        ON raid_rankings(raid_id, rank)
    """)

    # --- Raid Rewards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS raid_rewards (
            id SERIAL PRIMARY KEY,
            raid_id INTEGER NOT NULL REFERENCES boss_raids(id) ON DELETE CASCADE,
            rider_id VARCHAR(8) NOT NULL,
            rank INTEGER,
            reward_type VARCHAR(16) NOT NULL,
            reward_description TEXT NOT NULL,
            issued_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT raid_rewards_raid_rider_key UNIQUE (raid_id, rider_id),
            CONSTRAINT raid_rewards_type_check CHECK (reward_type IN ('real', 'virtual', 'badge'))
        )
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS raid_rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS raid_rankings CASCADE")
    op.execute("DROP TABLE IF EXISTS raid_damages CASCADE")
    op.execute("DROP TABLE IF EXISTS raid_participants CASCADE")
    op.execute("DROP TABLE IF EXISTS boss_raids CASCADE")
    op.execute("DROP TABLE IF EXISTS delivery_logs CASCADE")
