import asyncio

import pytest

from src.core.exceptions import AggregationInProgressError, AggregationTimeoutError
from src.db.models.event import EventStatus
from src.db.models.job import RunStatus, RunTrigger
from src.db.models.leaderboard import LeaderboardScope
from src.services.aggregation_service import LeaderboardAggregationService
from src.services.job_service import JobService
from src.services.leaderboard_service import LeaderboardService
from src.services.participation_service import ParticipationExtractor
from src.services.ranking_service import EmptyPartitionPolicy, RankingConfig

pytestmark = pytest.mark.integration


def _service(db_session, lock, **config) -> LeaderboardAggregationService:
    return LeaderboardAggregationService(db_session, lock, RankingConfig(**config))


async def _snapshots(db_session) -> dict:
    service = LeaderboardService(db_session)
    global_ = await service.get_leaderboards(LeaderboardScope.GLOBAL)
    corporate = await service.get_leaderboards(LeaderboardScope.CORPORATE)
    return {s.id: s for s in [*global_, *corporate]}


async def _seed_scenario_a(make_user, make_event) -> None:
    await make_user("U1", "Uma", "Acme")
    await make_user("U2", "Vik", "Acme")
    await make_user("U3", "Wen", "Globex")
    await make_event(["U1", "U2"], sport_type="Cricket")
    await make_event(["U2", "U3"], sport_type="Cricket")


@pytest.mark.asyncio
async def test_two_cricket_events(db_session, fake_lock, make_user, make_event) -> None:
    await _seed_scenario_a(make_user, make_event)

    result = await _service(db_session, fake_lock).run(RunTrigger.MANUAL, "alice")

    assert result.status == RunStatus.COMPLETED
    assert result.events_processed == 2
    assert result.users_ranked == 3

    snapshots = await _snapshots(db_session)
    overall = snapshots["global_all"].rankings
    assert overall[0]["user_id"] == "U2"
    assert overall[0]["events_attended"] == 2
    assert overall[0]["score"] == 20
    assert {r["user_id"]: r["events_attended"] for r in overall[1:]} == {"U1": 1, "U3": 1}

    cricket = snapshots["global_cricket"]
    assert cricket.sport_type == "Cricket"
    assert cricket.rankings[0]["user_id"] == "U2"
    assert snapshots["global_all"].last_updated is not None


@pytest.mark.asyncio
async def test_empty_roster_contributes_nothing(db_session, fake_lock, make_event) -> None:
    await make_event([], sport_type="Football")

    await _service(db_session, fake_lock).run(RunTrigger.MANUAL)

    snapshots = await _snapshots(db_session)
    assert snapshots["global_all"].rankings == []
    assert snapshots["global_football"].rankings == []
    assert not any(s.scope == LeaderboardScope.CORPORATE for s in snapshots.values())


@pytest.mark.asyncio
async def test_unknown_participant(db_session, fake_lock, make_event) -> None:
    await make_event(["nobody"])

    result = await _service(db_session, fake_lock).run(RunTrigger.MANUAL)

    assert result.status == RunStatus.COMPLETED
    entry = (await _snapshots(db_session))["global_all"].rankings[0]
    assert entry["user_id"] == "nobody"
    assert entry["user_name"] == "Unknown"
    assert entry["company"] == ""


@pytest.mark.asyncio
async def test_corporate_snapshots_are_isolated(db_session, fake_lock, make_user, make_event) -> None:
    await make_user("a1", "Ann", "Acme")
    await make_user("a2", "Abe", "Acme")
    await make_user("g1", "Gus", "Globex")
    await make_event(["a1", "g1"], sport_type="Cricket")
    await make_event(["a2", "g1"], sport_type="Tennis")

    await _service(db_session, fake_lock).run(RunTrigger.MANUAL)

    snapshots = await _snapshots(db_session)
    acme_users = {r["user_id"] for r in snapshots["corporate_acme_all"].rankings}
    globex_users = {r["user_id"] for r in snapshots["corporate_globex_all"].rankings}
    global_users = {r["user_id"] for r in snapshots["global_all"].rankings}

    assert acme_users == {"a1", "a2"}
    assert globex_users == {"g1"}
    assert global_users == {"a1", "a2", "g1"}
    assert snapshots["corporate_acme_all"].company == "Acme"

    corporate = await LeaderboardService(db_session).get_leaderboards(
        LeaderboardScope.CORPORATE, company="Acme"
    )
    assert {s.company for s in corporate} == {"Acme"}


@pytest.mark.asyncio
async def test_rerun_is_idempotent(db_session, fake_lock, make_user, make_event) -> None:
    await _seed_scenario_a(make_user, make_event)
    service = _service(db_session, fake_lock)

    await service.run(RunTrigger.MANUAL)
    first = {key: list(s.rankings) for key, s in (await _snapshots(db_session)).items()}
    await service.run(RunTrigger.MANUAL)
    second = {key: list(s.rankings) for key, s in (await _snapshots(db_session)).items()}

    assert first == second


@pytest.mark.asyncio
async def test_new_completed_event_only_raises_its_participants(
    db_session, fake_lock, make_user, make_event
) -> None:
    await _seed_scenario_a(make_user, make_event)
    service = _service(db_session, fake_lock)
    await service.run(RunTrigger.MANUAL)
    before = {r["user_id"]: r["score"] for r in (await _snapshots(db_session))["global_all"].rankings}

    await make_event(["U1"], sport_type="Cricket")
    await service.run(RunTrigger.MANUAL)
    after = {r["user_id"]: r["score"] for r in (await _snapshots(db_session))["global_all"].rankings}

    assert after["U1"] > before["U1"]
    assert after["U2"] == before["U2"]
    assert after["U3"] == before["U3"]


@pytest.mark.asyncio
async def test_only_completed_events_count(db_session, fake_lock, make_user, make_event) -> None:
    await make_user("U1", "Uma", "Acme")
    await make_event(["U1"], status=EventStatus.COMPLETED)
    await make_event(["U1"], status=EventStatus.UPCOMING)
    await make_event(["U1"], status=EventStatus.CANCELLED)

    result = await _service(db_session, fake_lock).run(RunTrigger.MANUAL)

    assert result.events_processed == 1
    entry = (await _snapshots(db_session))["global_all"].rankings[0]
    assert entry["events_attended"] == 1


@pytest.mark.asyncio
async def test_missing_sport_type_ranked_as_other(db_session, fake_lock, make_user, make_event) -> None:
    await make_user("U1", "Uma", "Acme")
    await make_event(["U1"], sport_type=None)

    await _service(db_session, fake_lock).run(RunTrigger.MANUAL)

    snapshots = await _snapshots(db_session)
    assert snapshots["global_other"].sport_type == "OTHER"
    assert snapshots["corporate_acme_other"].rankings[0]["user_id"] == "U1"


@pytest.mark.asyncio
async def test_users_resolved_once_per_run(db_session, make_user, make_event, monkeypatch) -> None:
    await make_user("U1", "Uma", "Acme")
    for _ in range(3):
        await make_event(["U1"])

    extractor = ParticipationExtractor(db_session)
    calls = []
    original = extractor._resolve_user

    async def counting_resolve(user_id):
        calls.append(user_id)
        return await original(user_id)

    monkeypatch.setattr(extractor, "_resolve_user", counting_resolve)
    participation = await extractor.extract()

    assert calls == ["U1"]
    assert len(participation.events) == 3


@pytest.mark.asyncio
async def test_publish_policy_clears_stale_snapshots(
    db_session, fake_lock, make_user, make_event
) -> None:
    await make_user("U1", "Uma", "Acme")
    event = await make_event(["U1"], sport_type="Cricket")
    service = _service(db_session, fake_lock, empty_partition_policy=EmptyPartitionPolicy.PUBLISH)
    await service.run(RunTrigger.MANUAL)

    # The only cricket event gets re-tagged; its old partitions are now stale
    event.sport_type = "Football"
    await db_session.commit()
    result = await service.run(RunTrigger.MANUAL)

    snapshots = await _snapshots(db_session)
    assert result.stale_partitions_cleared == 2
    assert snapshots["global_cricket"].rankings == []
    assert snapshots["corporate_acme_cricket"].rankings == []
    assert snapshots["global_football"].rankings[0]["user_id"] == "U1"


@pytest.mark.asyncio
async def test_skip_policy_leaves_stale_snapshots(db_session, fake_lock, make_user, make_event) -> None:
    await make_user("U1", "Uma", "Acme")
    event = await make_event(["U1"], sport_type="Cricket")
    service = _service(db_session, fake_lock, empty_partition_policy=EmptyPartitionPolicy.SKIP)
    await service.run(RunTrigger.MANUAL)

    event.sport_type = "Football"
    await db_session.commit()
    await service.run(RunTrigger.MANUAL)

    snapshots = await _snapshots(db_session)
    assert snapshots["global_cricket"].rankings[0]["user_id"] == "U1"


@pytest.mark.asyncio
async def test_slug_collision_keeps_one_snapshot_per_partition(
    db_session, fake_lock, make_user, make_event
) -> None:
    await make_user("U1", "Uma", "Acme Inc")
    await make_event(["U1"], sport_type="Cricket")
    service = _service(db_session, fake_lock)
    await service.run(RunTrigger.MANUAL)
    assert "corporate_acme-inc_all" in await _snapshots(db_session)

    # A second company slugging to the same key moves Acme Inc to a hashed key
    await make_user("U2", "Vik", "ACME inc")
    await make_event(["U1", "U2"], sport_type="Cricket")
    await service.run(RunTrigger.MANUAL)

    leaderboards = await LeaderboardService(db_session).get_leaderboards(
        LeaderboardScope.CORPORATE, sport_type="ALL", company="Acme Inc"
    )
    assert len(leaderboards) == 1
    assert leaderboards[0].id.startswith("corporate_acme-inc-")
    assert leaderboards[0].rankings[0]["events_attended"] == 2

    snapshots = await _snapshots(db_session)
    assert "corporate_acme-inc_all" not in snapshots
    assert "corporate_acme-inc_cricket" not in snapshots
    assert len([s for s in snapshots.values() if s.company == "ACME inc"]) == 2


@pytest.mark.asyncio
async def test_held_lock_blocks_run(db_session, fake_lock, make_event) -> None:
    await make_event(["U1"])
    fake_lock.held = True

    with pytest.raises(AggregationInProgressError):
        await _service(db_session, fake_lock).run(RunTrigger.SCHEDULED)

    runs, total = await JobService(db_session).list_runs()
    assert total == 0
    assert await LeaderboardService(db_session).get_leaderboards() == []


@pytest.mark.asyncio
async def test_lock_released_after_success(db_session, fake_lock, make_event) -> None:
    await make_event(["U1"])

    await _service(db_session, fake_lock).run(RunTrigger.SCHEDULED)

    assert fake_lock.acquired_count == 1
    assert fake_lock.released_count == 1
    assert not fake_lock.held


@pytest.mark.asyncio
async def test_run_is_recorded(db_session, fake_lock, make_event) -> None:
    await make_event(["U1", "U2"])

    result = await _service(db_session, fake_lock).run(RunTrigger.MANUAL, "admin")

    run = await JobService(db_session).get_run(result.run_id)
    assert run.status == RunStatus.COMPLETED
    assert run.trigger == RunTrigger.MANUAL
    assert run.triggered_by == "admin"
    assert run.events_processed == 1
    assert run.users_ranked == 2
    assert run.partitions_published == result.partitions_published


@pytest.mark.asyncio
async def test_write_failure_marks_run_failed(db_session, fake_lock, make_event, monkeypatch) -> None:
    await make_event(["U1"], sport_type="Cricket")
    await make_event(["U2"], sport_type="Football")

    original = LeaderboardService.publish_snapshot
    writes = {"count": 0}

    async def flaky_publish(self, ranking):
        if writes["count"] == 1:
            raise RuntimeError("storage unavailable")
        writes["count"] += 1
        await original(self, ranking)

    monkeypatch.setattr(LeaderboardService, "publish_snapshot", flaky_publish)

    with pytest.raises(RuntimeError):
        await _service(db_session, fake_lock).run(RunTrigger.SCHEDULED)

    assert not fake_lock.held
    runs, _ = await JobService(db_session).list_runs()
    assert runs[0].status == RunStatus.FAILED
    assert runs[0].error_message == "storage unavailable"
    assert runs[0].partitions_published == 1
    # Already-published partitions stay; later ones were never written
    published = await LeaderboardService(db_session).get_leaderboards()
    assert [s.id for s in published] == ["global_all"]


@pytest.mark.asyncio
async def test_timeout_fails_run(db_session, fake_lock, make_event, monkeypatch) -> None:
    await make_event(["U1"])

    async def slow_aggregate(self, result):
        await asyncio.sleep(5)

    monkeypatch.setattr(LeaderboardAggregationService, "_aggregate", slow_aggregate)
    service = LeaderboardAggregationService(db_session, fake_lock, RankingConfig(), timeout_seconds=0.05)

    with pytest.raises(AggregationTimeoutError):
        await service.run(RunTrigger.SCHEDULED)

    assert not fake_lock.held
    runs, _ = await JobService(db_session).list_runs(status="failed")
    assert len(runs) == 1
    assert "Timed out" in runs[0].error_message
