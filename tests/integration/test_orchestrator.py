"""End-to-end sync runs: ingest → damage → HP → rankings → rewards."""

from __future__ import annotations

from sqlalchemy import func, select

from bossraid.config import Settings
from bossraid.db.models import BossRaid, DeliveryLog, RaidDamage, RaidRanking, RaidReward
from bossraid.raids import orchestrator
from bossraid.raids.orchestrator import format_report, run_sync

HEADER = ["라이더_ID", "날짜", "배달건수", "우천여부", "할증여부", "배달구역"]


def _row(rider_id, day, count, rainy="FALSE", surge="FALSE", district="강남구") -> dict:
    return dict(zip(HEADER, [rider_id, day, count, rainy, surge, district]))


def _settings() -> Settings:
    return Settings(_env_file=None)


async def _count(factory, model) -> int:
    async with factory() as db:
        return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestRunSync:
    async def test_single_rider_end_to_end(self, session_factory, make_raid, join_riders):
        raid_id = await make_raid(buff_multiplier=1.5)
        await join_riders(raid_id, "BC000001")

        report = await run_sync(
            session_factory,
            [_row("BC000001", "2024-03-05", "5", rainy="TRUE")],
            _settings(),
        )

        assert report.logs.synced == 1
        (outcome,) = report.raids
        assert outcome.error is None
        assert outcome.total_damage_dealt == 150
        assert outcome.rankings == 1

        async with session_factory() as db:
            damage = (await db.execute(select(RaidDamage))).scalar_one()
            assert (damage.base_damage, damage.bonus_multiplier, damage.total_damage) == (50, 3.0, 150)
            ranking = (await db.execute(select(RaidRanking))).scalar_one()
            assert (ranking.rider_id, ranking.rank, ranking.total_damage) == ("BC000001", 1, 150)
            raid = await db.get(BossRaid, raid_id)
            assert raid.current_hp == 9_850

    async def test_invalid_rows_never_reach_the_store(self, session_factory, make_raid, join_riders):
        raid_id = await make_raid()
        await join_riders(raid_id, "BC000001")

        report = await run_sync(
            session_factory,
            [
                _row("ABC123", "2024-03-05", "50"),
                _row("BC000001", "2024-03-05", "2"),
                _row("", "", ""),
            ],
            _settings(),
        )

        assert report.logs.invalid == 1
        assert report.logs.blank == 1
        assert report.logs.synced == 1
        async with session_factory() as db:
            riders = (await db.execute(select(DeliveryLog.rider_id))).scalars().all()
        assert riders == ["BC000001"]
        assert report.raids[0].total_damage_dealt == 20

    async def test_rerun_is_idempotent(self, session_factory, make_raid, join_riders):
        raid_id = await make_raid()
        await join_riders(raid_id, "BC000001", "BC000002")
        rows = [_row("BC000001", "2024-03-05", "5"), _row("BC000002", "2024-03-05", "7")]

        await run_sync(session_factory, rows, _settings())
        second = await run_sync(session_factory, rows, _settings())

        assert second.raids[0].total_damage_dealt == 0
        assert await _count(session_factory, DeliveryLog) == 2
        assert await _count(session_factory, RaidDamage) == 2
        assert await _count(session_factory, RaidRanking) == 2
        async with session_factory() as db:
            assert (await db.get(BossRaid, raid_id)).current_hp == 10_000 - 120

    async def test_defeat_completes_once_and_issues_rewards(self, session_factory, make_raid, join_riders):
        raid_id = await make_raid(max_hp=1_000, current_hp=50)
        await join_riders(raid_id, "BC000001", "BC000002", "BC000003", "BC000004", "BC000005")
        rows = [
            _row("BC000001", "2024-03-05", "4"),
            _row("BC000002", "2024-03-05", "3"),
            _row("BC000003", "2024-03-05", "1"),
            _row("BC000004", "2024-03-05", "0"),
        ]

        first = await run_sync(session_factory, rows, _settings())

        (outcome,) = first.raids
        assert outcome.completed is True
        assert outcome.new_hp == 0
        assert outcome.rewards_issued == 5

        async with session_factory() as db:
            raid = await db.get(BossRaid, raid_id)
            assert raid.status == "completed"
            assert raid.current_hp == 0
            rewards = {
                r.rider_id: r
                for r in (await db.execute(select(RaidReward))).scalars().all()
            }
        assert rewards["BC000001"].reward_type == "real"
        assert rewards["BC000002"].reward_type == "virtual"
        assert rewards["BC000003"].reward_type == "virtual"
        assert rewards["BC000004"].reward_type == "badge"  # ranked 4th with zero damage
        assert rewards["BC000005"].reward_type == "badge"  # joined, never delivered

        # Completed raids are no longer processed; rewards are never re-issued.
        second = await run_sync(session_factory, rows + [_row("BC000005", "2024-03-06", "9")], _settings())
        assert second.raids == []
        assert second.completed_rankings_refreshed == 1
        assert await _count(session_factory, RaidReward) == 5

    async def test_no_participants(self, session_factory, make_raid):
        await make_raid()
        report = await run_sync(session_factory, [_row("BC000001", "2024-03-05", "5")], _settings())
        (outcome,) = report.raids
        assert outcome.skipped is True
        assert outcome.rankings == 0

    async def test_failing_raid_does_not_stop_others(
        self, session_factory, make_raid, join_riders, monkeypatch
    ):
        broken_id = await make_raid(district="강남구")
        healthy_id = await make_raid(district="서초구")
        await join_riders(broken_id, "BC000001")
        await join_riders(healthy_id, "BC000002")

        original = orchestrator.rebuild_rankings

        async def _rebuild(db, raid_id):
            if raid_id == broken_id:
                raise orchestrator.StoreWriteError("ranking write failed")
            return await original(db, raid_id)

        monkeypatch.setattr(orchestrator, "rebuild_rankings", _rebuild)
        report = await run_sync(
            session_factory,
            [_row("BC000001", "2024-03-05", "5"), _row("BC000002", "2024-03-05", "5", district="서초구")],
            _settings(),
        )

        by_id = {o.raid_id: o for o in report.raids}
        assert by_id[broken_id].error == "ranking write failed"
        assert by_id[healthy_id].error is None
        assert report.failed_raids == [by_id[broken_id]]

        async with session_factory() as db:
            # The failed raid rolled back as a whole: no damage, no HP change.
            assert (await db.get(BossRaid, broken_id)).current_hp == 10_000
            assert (await db.get(BossRaid, healthy_id)).current_hp == 9_950
            damaged = (await db.execute(select(RaidDamage.raid_id))).scalars().all()
        assert damaged == [healthy_id]

    async def test_format_report(self, session_factory, make_raid, join_riders):
        raid_id = await make_raid()
        await join_riders(raid_id, "BC000001")
        report = await run_sync(session_factory, [_row("BC000001", "2024-03-05", "5")], _settings())

        text = format_report(report)
        assert "Boss raid sync report" in text
        assert "1 synced" in text
        assert "HP 10,000 -> 9,950" in text
        assert report.to_dict()["raids"][0]["total_damage_dealt"] == 50
