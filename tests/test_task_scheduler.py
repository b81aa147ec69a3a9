# tests/test_task_scheduler.py

from __future__ import annotations

import json

import pytest

from script_runner.core.errors import InvalidCron, IOFailure, NotFound, ValidationError
from script_runner.scripts.script_store import ScriptStore
from script_runner.tasks.task_models import TaskDefinition, TaskState
from script_runner.tasks.task_scheduler import MISSING_SCRIPT_NAME, TaskScheduler
from script_runner.tasks.task_store import TaskStore

from .fakes import FakeExecutor, RunCollector, SimulatedClock


def _shell(store: ScriptStore, name: str = "hello"):
    return store.create(name=name, script_type="sh", content="echo hi")


@pytest.mark.asyncio
async def test_create_arms_timer_and_runs_on_each_firing(
    scheduler: TaskScheduler,
    script_store: ScriptStore,
    executor: FakeExecutor,
    runs: RunCollector,
    clock: SimulatedClock,
) -> None:
    script = _shell(script_store)
    task = scheduler.create(script.id, "*/1 * * * *")

    assert task.script_name == "hello"
    assert scheduler.task_state(task.id) is TaskState.ARMED
    assert script_store.get(script.id).cron_expression == "*/1 * * * *"

    await clock.advance_minutes(2)
    await scheduler.drain()

    assert [s.id for s in executor.calls] == [script.id, script.id]
    assert [r.exit_code for r in runs.runs] == [0, 0]
    assert all(r.ok and r.task_id == task.id for r in runs.runs)
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_invalid_cron_is_rejected_without_a_record(
    scheduler: TaskScheduler, script_store: ScriptStore, task_store: TaskStore
) -> None:
    script = _shell(script_store)

    with pytest.raises(InvalidCron):
        scheduler.create(script.id, "* * * *")
    with pytest.raises(ValidationError):
        scheduler.create(script.id, "")

    assert scheduler.list_tasks() == []
    assert task_store.count_tasks() == 0
    assert scheduler.live_timer_count == 0
    assert script_store.get(script.id).cron_expression == ""


@pytest.mark.asyncio
async def test_create_for_unknown_script_is_not_found(scheduler: TaskScheduler) -> None:
    with pytest.raises(NotFound):
        scheduler.create("missing", "* * * * *")
    assert scheduler.list_tasks() == []


@pytest.mark.asyncio
async def test_deleted_task_never_spawns_even_if_due(
    scheduler: TaskScheduler,
    script_store: ScriptStore,
    executor: FakeExecutor,
    clock: SimulatedClock,
) -> None:
    script = _shell(script_store)
    task = scheduler.create(script.id, "*/1 * * * *")
    timer = scheduler.timer(task.id)
    assert timer is not None

    scheduler.delete(task.id)
    await clock.advance_minutes(3)
    await scheduler.drain()

    assert executor.calls == []
    assert timer.fire_count == 0
    assert scheduler.task_state(task.id) is TaskState.STOPPED


@pytest.mark.asyncio
async def test_delete_unknown_task_is_not_found(scheduler: TaskScheduler) -> None:
    with pytest.raises(NotFound):
        scheduler.delete("nope")


@pytest.mark.asyncio
async def test_cron_cache_is_last_write_wins_and_cleared_with_last_task(
    scheduler: TaskScheduler, script_store: ScriptStore
) -> None:
    script = _shell(script_store)
    first = scheduler.create(script.id, "0 * * * *")
    second = scheduler.create(script.id, "30 2 * * *")
    assert script_store.get(script.id).cron_expression == "30 2 * * *"

    # Another task still references the script: cache stays.
    scheduler.delete(second.id)
    assert script_store.get(script.id).cron_expression == "30 2 * * *"

    scheduler.delete(first.id)
    assert script_store.get(script.id).cron_expression == ""
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_script_delete_cascades_and_silences_timers(
    scheduler: TaskScheduler,
    script_store: ScriptStore,
    task_store: TaskStore,
    executor: FakeExecutor,
    clock: SimulatedClock,
) -> None:
    doomed = _shell(script_store, "doomed")
    keeper = _shell(script_store, "keeper")
    t1 = scheduler.create(doomed.id, "*/1 * * * *")
    t2 = scheduler.create(doomed.id, "*/2 * * * *")
    t3 = scheduler.create(keeper.id, "*/1 * * * *")
    timers = [scheduler.timer(t1.id), scheduler.timer(t2.id)]

    script_store.delete(doomed.id)

    assert [t.id for t in scheduler.list_tasks()] == [t3.id]
    assert [t.id for t in task_store.read_persisted()] == [t3.id]

    await clock.advance_minutes(4)
    await scheduler.drain()

    assert all(t is not None and t.fire_count == 0 for t in timers)
    assert {s.id for s in executor.calls} == {keeper.id}
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_list_denormalizes_current_script_name(
    scheduler: TaskScheduler, script_store: ScriptStore, task_store: TaskStore
) -> None:
    script = _shell(script_store, "before")
    task = scheduler.create(script.id, "* * * * *")
    script_store.update(script.id, name="after")

    [summary] = scheduler.list_tasks()
    assert summary.script_name == "after"
    assert summary.cron_expression == "* * * * *"

    # A definition whose script vanished behind our back shows a placeholder.
    task_store.add(TaskDefinition(id="orphan", script_id="gone", cron_expression="* * * * *"))
    names = {t.id: t.script_name for t in scheduler.list_tasks()}
    assert names == {task.id: "after", "orphan": MISSING_SCRIPT_NAME}
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_scheduled_failures_are_reported_not_raised(
    script_store: ScriptStore,
    task_store: TaskStore,
    runs: RunCollector,
    clock: SimulatedClock,
) -> None:
    failing = FakeExecutor(fail_launch=True)
    scheduler = TaskScheduler(task_store, script_store, failing, sink=runs, clock=clock, sleep=clock.sleep)
    script = _shell(script_store)
    task = scheduler.create(script.id, "*/1 * * * *")

    await clock.advance_minutes(2)
    await scheduler.drain()

    assert len(runs.runs) == 2
    assert all(r.error and "not found" in r.error and r.exit_code is None for r in runs.runs)
    # The timer keeps going after failures; there is no retry in between.
    assert scheduler.task_state(task.id) is TaskState.ARMED
    assert len(failing.calls) == 2
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_non_zero_exit_is_reported_to_sink(
    script_store: ScriptStore,
    task_store: TaskStore,
    runs: RunCollector,
    clock: SimulatedClock,
) -> None:
    scheduler = TaskScheduler(
        task_store, script_store, FakeExecutor(exit_code=7), sink=runs, clock=clock, sleep=clock.sleep
    )
    script = _shell(script_store)
    scheduler.create(script.id, "*/1 * * * *")

    await clock.advance_minutes(1)
    await scheduler.drain()

    [run] = runs.runs
    assert run.exit_code == 7
    assert run.error is None
    assert not run.ok
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_reconcile_rearms_valid_tasks_and_drops_the_rest(
    settings,
    script_store: ScriptStore,
    task_store: TaskStore,
    executor: FakeExecutor,
    runs: RunCollector,
    clock: SimulatedClock,
) -> None:
    live = _shell(script_store, "live")
    settings.tasks_db_path.write_text(
        json.dumps(
            {
                "version": 1,
                "tasks": [
                    {"id": "t-ok", "script_id": live.id, "cron_expression": "*/1 * * * *"},
                    {"id": "t-gone", "script_id": "deleted-script", "cron_expression": "* * * * *"},
                    {"id": "t-bad", "script_id": live.id, "cron_expression": "* * * *"},
                    {"id": "t-ok", "script_id": live.id, "cron_expression": "0 0 * * *"},
                ],
            }
        ),
        "utf-8",
    )

    scheduler = TaskScheduler(task_store, script_store, executor, sink=runs, clock=clock, sleep=clock.sleep)
    report = scheduler.reconcile()

    assert (report.armed, report.dropped) == (1, 3)
    assert [t.id for t in scheduler.list_tasks()] == ["t-ok"]
    assert scheduler.task_state("t-ok") is TaskState.ARMED
    # Dropped definitions are gone from the durable file too.
    assert [t.id for t in TaskStore(settings.tasks_db_path).read_persisted()] == ["t-ok"]

    await clock.advance_minutes(1)
    await scheduler.drain()
    assert [s.id for s in executor.calls] == [live.id]
    scheduler.shutdown()


@pytest.mark.asyncio
async def test_shutdown_stops_timers_but_keeps_definitions(
    scheduler: TaskScheduler,
    script_store: ScriptStore,
    task_store: TaskStore,
    executor: FakeExecutor,
    clock: SimulatedClock,
) -> None:
    script = _shell(script_store)
    task = scheduler.create(script.id, "*/1 * * * *")

    scheduler.shutdown()
    await clock.advance_minutes(2)

    assert executor.calls == []
    assert scheduler.live_timer_count == 0
    assert task_store.get(task.id) is not None
    assert scheduler.task_state(task.id) is TaskState.DEFINED


@pytest.mark.asyncio
async def test_failed_task_write_leaves_no_task_or_timer(
    settings,
    scheduler: TaskScheduler,
    script_store: ScriptStore,
    task_store: TaskStore,
    executor: FakeExecutor,
    clock: SimulatedClock,
) -> None:
    script = _shell(script_store)
    settings.tasks_db_path.with_suffix(".json.tmp").mkdir()

    with pytest.raises(IOFailure):
        scheduler.create(script.id, "*/1 * * * *")

    assert scheduler.list_tasks() == []
    assert task_store.count_tasks() == 0
    assert scheduler.live_timer_count == 0
    assert script_store.get(script.id).cron_expression == ""

    await clock.advance_minutes(2)
    assert executor.calls == []


@pytest.mark.asyncio
async def test_failed_task_delete_keeps_task_armed(
    settings,
    scheduler: TaskScheduler,
    script_store: ScriptStore,
    executor: FakeExecutor,
    clock: SimulatedClock,
) -> None:
    script = _shell(script_store)
    task = scheduler.create(script.id, "*/1 * * * *")
    settings.tasks_db_path.with_suffix(".json.tmp").mkdir()

    with pytest.raises(IOFailure):
        scheduler.delete(task.id)

    assert [t.id for t in scheduler.list_tasks()] == [task.id]
    assert scheduler.task_state(task.id) is TaskState.ARMED

    await clock.advance_minutes(1)
    await scheduler.drain()
    assert [s.id for s in executor.calls] == [script.id]
    scheduler.shutdown()
