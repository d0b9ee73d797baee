"""Integration tests for reward allocation and idempotency."""

from __future__ import annotations

from datetime import date

from sqlalchemy import delete, select

from bossraid.config import Settings
from bossraid.db.models import BossRaid, RaidDamage, RaidRanking, RaidReward
from bossraid.raids.accumulator import accumulate_raid_damage
from bossraid.raids.ranking import rebuild_rankings
from bossraid.raids.rewards import allocate_rewards, get_rewards


async def _prepare(session_factory, make_raid, join_riders, add_log) -> int:
    raid_id = await make_raid()
    await join_riders(raid_id, "BC000001", "BC000002", "BC000003", "BC000004")
    await add_log("BC000001", date(2024, 3, 5), 9)
    await add_log("BC000002", date(2024, 3, 5), 6)
    await add_log("BC000003", date(2024, 3, 5), 6)
    async with session_factory() as db:
        raid = await db.get(BossRaid, raid_id)
        await accumulate_raid_damage(db, raid)
        await rebuild_rankings(db, raid_id)
        await db.commit()
    return raid_id


class TestAllocateRewards:
    async def test_tiers(self, session_factory, make_raid, join_riders, add_log):
        raid_id = await _prepare(session_factory, make_raid, join_riders, add_log)

        async with session_factory() as db:
            issued = await allocate_rewards(db, raid_id, Settings(_env_file=None))
            await db.commit()

        assert [(g.rider_id, g.rank, g.reward_type) for g in issued] == [
            ("BC000001", 1, "real"),
            ("BC000002", 2, "virtual"),  # tie with BC000003 broken by rider id
            ("BC000003", 3, "virtual"),
            ("BC000004", None, "badge"),
        ]

    async def test_second_allocation_issues_nothing(self, session_factory, make_raid, join_riders, add_log):
        raid_id = await _prepare(session_factory, make_raid, join_riders, add_log)

        async with session_factory() as db:
            await allocate_rewards(db, raid_id, Settings(_env_file=None))
            await db.commit()
        async with session_factory() as db:
            again = await allocate_rewards(db, raid_id, Settings(_env_file=None))
            await db.commit()

        assert again == []
        async with session_factory() as db:
            rows = (await db.execute(select(RaidReward))).scalars().all()
        assert len(rows) == 4

    async def test_get_rewards_ranked_first(self, session_factory, make_raid, join_riders, add_log):
        raid_id = await _prepare(session_factory, make_raid, join_riders, add_log)
        async with session_factory() as db:
            await allocate_rewards(db, raid_id, Settings(_env_file=None))
            await db.commit()
            rewards = await get_rewards(db, raid_id)

        assert [r.rank for r in rewards] == [1, 2, 3, None]


class TestStaleRankingRows:
    async def _stale_leader(self, session_factory, make_raid, join_riders, add_log) -> int:
        """BC000001 led, then lost every damage row; its ranking row still says rank 1."""
        raid_id = await make_raid()
        await join_riders(raid_id, "BC000001", "BC000002", "BC000003")
        await add_log("BC000001", date(2024, 3, 5), 9)
        await add_log("BC000002", date(2024, 3, 5), 6)
        async with session_factory() as db:
            raid = await db.get(BossRaid, raid_id)
            await accumulate_raid_damage(db, raid)
            await rebuild_rankings(db, raid_id)
            await db.commit()
        async with session_factory() as db:
            await db.execute(
                delete(RaidDamage).where(
                    RaidDamage.raid_id == raid_id, RaidDamage.rider_id == "BC000001"
                )
            )
            await db.commit()
        return raid_id

    async def test_single_real_reward_from_rebuilt_ranking(
        self, session_factory, make_raid, join_riders, add_log
    ):
        raid_id = await self._stale_leader(session_factory, make_raid, join_riders, add_log)

        async with session_factory() as db:
            ranked = await rebuild_rankings(db, raid_id)
            issued = await allocate_rewards(db, raid_id, Settings(_env_file=None), ranked=ranked)
            await db.commit()

        async with session_factory() as db:
            result = await db.execute(
                select(RaidRanking).where(
                    RaidRanking.raid_id == raid_id, RaidRanking.rider_id == "BC000001"
                )
            )
            stale = result.scalar_one()
        assert stale.rank == 1

        assert [(g.rider_id, g.rank, g.reward_type) for g in issued] == [
            ("BC000002", 1, "real"),
            ("BC000001", None, "badge"),
            ("BC000003", None, "badge"),
        ]

    async def test_ledger_used_when_ranking_not_passed(
        self, session_factory, make_raid, join_riders, add_log
    ):
        raid_id = await self._stale_leader(session_factory, make_raid, join_riders, add_log)

        async with session_factory() as db:
            await rebuild_rankings(db, raid_id)
            await db.commit()
        async with session_factory() as db:
            await allocate_rewards(db, raid_id, Settings(_env_file=None))
            await db.commit()
            real = (
                await db.execute(
                    select(RaidReward.rider_id).where(
                        RaidReward.raid_id == raid_id, RaidReward.reward_type == "real"
                    )
                )
            ).scalars().all()

        assert real == ["BC000002"]
