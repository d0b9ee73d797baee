"""Shared test fixtures.

Store-backed tests run against a throwaway SQLite file per test; the
schema comes from the ORM metadata.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bossraid.config import get_settings
from bossraid.database import close_db, get_engine, get_session_factory, init_db
from bossraid.db import models  # noqa: F401
from bossraid.db.base import Base
from bossraid.db.models import BossRaid, DeliveryLog, RaidParticipant
from bossraid.main import create_app


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Settings are cached; tests that patch the environment need a clean cache."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'bossraid_test.db'}"


@pytest_asyncio.fixture
async def session_factory(database_url: str) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Initialize the engine and create every table."""
    await init_db(database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield get_session_factory()
    await close_db()


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for seeding and assertions."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app, sharing the test database."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------

RAID_START = date(2024, 3, 1)
RAID_END = date(2024, 3, 31)


@pytest.fixture
def make_raid(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[int]]:
    """Create a raid and return its id. Defaults: active 강남구 raid, 10,000 HP."""

    async def _make(**overrides: object) -> int:
        values: dict[str, object] = {
            "district": "강남구",
            "boss_name": "불꽃 드래곤",
            "boss_type": "fire",
            "max_hp": 10_000,
            "current_hp": 10_000,
            "start_date": RAID_START,
            "end_date": RAID_END,
            "status": "active",
            "buff_multiplier": 1.0,
            "created_at": datetime.now(timezone.utc),
        }
        values.update(overrides)
        async with session_factory() as db:
            raid = BossRaid(**values)
            db.add(raid)
            await db.commit()
            return raid.id

    return _make


@pytest.fixture
def join_riders(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[None]]:
    """Register riders as raid participants."""

    async def _join(raid_id: int, *rider_ids: str) -> None:
        async with session_factory() as db:
            for rider_id in rider_ids:
                db.add(
                    RaidParticipant(
                        raid_id=raid_id,
                        rider_id=rider_id,
                        rider_name=f"rider-{rider_id[-2:]}",
                        joined_at=datetime.now(timezone.utc),
                    )
                )
            await db.commit()

    return _join


@pytest.fixture
def add_log(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[None]]:
    """Insert one delivery log row directly, bypassing ingestion."""

    async def _add(
        rider_id: str,
        delivery_date: date,
        delivery_count: int,
        *,
        is_rainy: bool = False,
        has_surge: bool = False,
        district: str = "강남구",
    ) -> None:
        async with session_factory() as db:
            db.add(
                DeliveryLog(
                    rider_id=rider_id,
                    delivery_date=delivery_date,
                    delivery_count=delivery_count,
                    is_rainy=is_rainy,
                    has_surge=has_surge,
                    district=district,
                    synced_at=datetime.now(timezone.utc),
                )
            )
            await db.commit()

    return _add
