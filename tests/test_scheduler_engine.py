"""Tests for SchedulerEngine: APScheduler lifecycle and job management."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from git_reporter.errors import NotFoundError, ValidationError
from git_reporter.scheduler.engine import SchedulerEngine
from git_reporter.scheduler.executor import ExecutionResult
from git_reporter.scheduler.models import ScheduleConfig
from git_reporter.scheduler.store import ScheduleStore


@pytest.fixture
def executor() -> MagicMock:
    mock = MagicMock()
    mock.execute = AsyncMock(side_effect=lambda sid, **kw: ExecutionResult(sid, "sent"))
    return mock


@pytest.fixture
async def engine(schedule_store: ScheduleStore, executor: MagicMock):
    eng = SchedulerEngine(store=schedule_store, executor=executor, timezone="UTC", max_active=10)
    yield eng
    await eng.shutdown()


def _make_config(schedule_id: str = "s1", **kwargs) -> ScheduleConfig:
    defaults = {
        "owner_id": "u1",
        "repo_name": "acme/api",
        "cron_expression": "0 17 * * 1-5",
        "channel": "email",
        "recipient": "team@acme.io",
    }
    defaults.update(kwargs)
    return ScheduleConfig(id=schedule_id, **defaults)


# -- Lifecycle -----------------------------------------------------------------


async def test_initialize_loads_active_schedules(
    engine: SchedulerEngine, schedule_store: ScheduleStore
) -> None:
    await schedule_store.create_schedule(_make_config("a"))
    await schedule_store.create_schedule(_make_config("b"))
    await schedule_store.create_schedule(_make_config("off", active=False))

    await engine.initialize()

    assert engine.initialized is True
    assert sorted(engine.job_ids()) == ["a", "b"]
    stored = await schedule_store.get_schedule("a")
    assert stored.next_run is not None
    assert stored.next_run > datetime.now(UTC)
    assert (await schedule_store.get_schedule("off")).next_run is None


async def test_initialize_skips_invalid_rows(
    engine: SchedulerEngine, schedule_store: ScheduleStore
) -> None:
    await schedule_store.create_schedule(_make_config("good"))
    await schedule_store.create_schedule(_make_config("bad", cron_expression="61 * * * *"))

    await engine.initialize()

    assert engine.job_ids() == ["good"]


async def test_initialize_twice_is_a_noop(
    engine: SchedulerEngine, schedule_store: ScheduleStore
) -> None:
    await schedule_store.create_schedule(_make_config("a"))

    await engine.initialize()
    await engine.initialize()

    assert engine.job_ids() == ["a"]


async def test_initialize_after_restart_uses_last_run(
    engine: SchedulerEngine, schedule_store: ScheduleStore
) -> None:
    # A last_run far in the past never yields a next_run in the past
    await schedule_store.create_schedule(
        _make_config("a", last_run=datetime.now(UTC) - timedelta(days=30))
    )

    await engine.initialize()

    assert (await schedule_store.get_schedule("a")).next_run > datetime.now(UTC)


async def test_shutdown_cancels_jobs(engine: SchedulerEngine, schedule_store) -> None:
    await schedule_store.create_schedule(_make_config("a"))
    await engine.initialize()

    await engine.shutdown()

    assert engine.initialized is False
    assert engine.job_ids() == []
    assert engine.status() == {"initialized": False, "active_jobs": 0, "jobs": []}


# -- add_job -------------------------------------------------------------------


async def test_add_job_persists_and_registers(
    engine: SchedulerEngine, schedule_store: ScheduleStore
) -> None:
    await engine.initialize()
    config = await engine.add_job(_make_config())

    assert engine.has_job("s1")
    stored = await schedule_store.get_schedule("s1")
    assert stored is not None
    assert stored.next_run == config.next_run

    job = engine._scheduler.get_job("s1")
    assert job.max_instances == 1
    assert job.coalesce is True
    assert job.name == "report:acme/api"
    assert job.next_run_time == config.next_run


async def test_add_job_invalid_cron_changes_nothing(
    engine: SchedulerEngine, schedule_store: ScheduleStore
) -> None:
    with pytest.raises(ValidationError):
        await engine.add_job(_make_config(cron_expression="nope"))

    assert not engine.has_job("s1")
    assert await schedule_store.get_schedule("s1") is None


async def test_add_job_rejects_inactive(engine: SchedulerEngine) -> None:
    with pytest.raises(ValidationError):
        await engine.add_job(_make_config(active=False))
    assert not engine.has_job("s1")


async def test_active_schedule_cap(engine: SchedulerEngine, schedule_store: ScheduleStore) -> None:
    for i in range(10):
        await engine.add_job(_make_config(f"s{i}"))

    with pytest.raises(ValidationError, match="limit"):
        await engine.add_job(_make_config("s10"))

    assert not engine.has_job("s10")
    assert await schedule_store.get_schedule("s10") is None
    assert await schedule_store.count_active("u1") == 10

    # Other owners have their own quota
    await engine.add_job(_make_config("other", owner_id="u2"))
    assert engine.has_job("other")


async def test_add_job_twice_keeps_one_job(engine: SchedulerEngine, schedule_store) -> None:
    config = _make_config()
    await engine.add_job(config)
    await engine.add_job(config)

    assert engine.job_ids() == ["s1"]
    assert len(await schedule_store.list_schedules()) == 1


async def test_concurrent_adds_respect_cap(
    engine: SchedulerEngine, schedule_store: ScheduleStore
) -> None:
    for i in range(9):
        await engine.add_job(_make_config(f"s{i}"))

    results = await asyncio.gather(
        engine.add_job(_make_config("x1")),
        engine.add_job(_make_config("x2")),
        engine.add_job(_make_config("x3")),
        return_exceptions=True,
    )

    added = [r for r in results if isinstance(r, ScheduleConfig)]
    rejected = [r for r in results if isinstance(r, ValidationError)]
    assert len(added) == 1
    assert len(rejected) == 2
    assert await schedule_store.count_active("u1") == 10
    assert len(engine.job_ids()) == 10


async def test_readd_with_new_cron_overwrites_row(
    engine: SchedulerEngine, schedule_store: ScheduleStore
) -> None:
    await engine.initialize()
    await engine.add_job(_make_config())

    await engine.add_job(
        _make_config(cron_expression="0 3 * * *", channel="message", recipient="+33600000000")
    )

    stored = await schedule_store.get_schedule("s1")
    assert stored.cron_expression == "0 3 * * *"
    assert stored.channel == "message"
    assert stored.recipient == "+33600000000"
    job = engine._scheduler.get_job("s1")
    assert stored.next_run == job.next_run_time
    assert stored.next_run.hour == 3
    assert engine.job_ids() == ["s1"]


# -- update_job / remove_job ---------------------------------------------------


async def test_update_job_swaps_timer(engine: SchedulerEngine, schedule_store) -> None:
    await engine.initialize()
    config = await engine.add_job(_make_config())

    for cron in ("0 9 * * *", "30 8 * * 1", "0 12 * * *"):
        config.cron_expression = cron
        await engine.update_job(config)

    assert engine.job_ids() == ["s1"]
    stored = await schedule_store.get_schedule("s1")
    assert stored.cron_expression == "0 12 * * *"
    job = engine._scheduler.get_job("s1")
    assert job.next_run_time.hour == 12
    assert job.next_run_time.minute == 0


async def test_update_job_invalid_keeps_old_job(engine: SchedulerEngine, schedule_store) -> None:
    await engine.initialize()
    config = await engine.add_job(_make_config())
    old_next = engine._scheduler.get_job("s1").next_run_time

    config.cron_expression = "99 99 * * *"
    with pytest.raises(ValidationError):
        await engine.update_job(config)

    assert engine._scheduler.get_job("s1").next_run_time == old_next
    assert (await schedule_store.get_schedule("s1")).cron_expression == "0 17 * * 1-5"


async def test_update_job_deactivate_removes_job(engine: SchedulerEngine, schedule_store) -> None:
    config = await engine.add_job(_make_config())
    config.active = False

    await engine.update_job(config)

    assert not engine.has_job("s1")
    assert (await schedule_store.get_schedule("s1")).active is False


async def test_update_job_reactivate_respects_cap(
    engine: SchedulerEngine, schedule_store: ScheduleStore
) -> None:
    for i in range(10):
        await engine.add_job(_make_config(f"s{i}"))
    await schedule_store.create_schedule(_make_config("paused", active=False))

    paused = await schedule_store.get_schedule("paused")
    paused.active = True
    with pytest.raises(ValidationError):
        await engine.update_job(paused)

    assert (await schedule_store.get_schedule("paused")).active is False
    assert not engine.has_job("paused")


async def test_update_job_missing(engine: SchedulerEngine) -> None:
    with pytest.raises(NotFoundError):
        await engine.update_job(_make_config("ghost"))


async def test_remove_job_is_idempotent(engine: SchedulerEngine) -> None:
    await engine.add_job(_make_config())

    assert engine.remove_job("s1") is True
    assert engine.remove_job("s1") is False
    assert engine.remove_job("never-existed") is False


# -- Execution -----------------------------------------------------------------


async def test_run_job_is_manual(engine: SchedulerEngine, executor: MagicMock) -> None:
    result = await engine.run_job("s1")

    assert result.status == "sent"
    executor.execute.assert_awaited_once_with("s1", manual=True)


async def test_fire_runs_timer_execution(engine: SchedulerEngine, executor: MagicMock) -> None:
    await engine._fire("s1")
    executor.execute.assert_awaited_once_with("s1")


def test_get_next_run_uses_engine_timezone(schedule_store, executor) -> None:
    engine = SchedulerEngine(store=schedule_store, executor=executor, timezone="Europe/Paris")
    nxt = engine.get_next_run("0 17 * * 1-5", datetime(2025, 6, 6, 18, 0))
    assert str(nxt.tzinfo) == "Europe/Paris"
    assert (nxt.year, nxt.month, nxt.day, nxt.hour) == (2025, 6, 9, 17)
