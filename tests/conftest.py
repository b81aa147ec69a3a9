# tests/conftest.py

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from script_runner.scripts.script_models import ScriptType
from script_runner.scripts.script_store import ScriptStore
from script_runner.tasks.task_scheduler import TaskScheduler
from script_runner.tasks.task_store import TaskStore

from .fakes import SHELL, FakeExecutor, RunCollector, SimulatedClock



@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and the stores.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic. Shell scripts run under
    /bin/sh and Python scripts under the current interpreter.
    """
    interpreters = {
        ScriptType.SHELL: SHELL,
        ScriptType.NODE: "node",
        ScriptType.PYTHON: sys.executable,
    }
    return SimpleNamespace(
        app_name="script-runner-test",
        console_enabled=False,
        data_dir=tmp_path,
        scripts_dir=tmp_path / "user_scripts",
        scripts_db_path=tmp_path / "scripts.json",
        tasks_db_path=tmp_path / "tasks.json",
        cron_timezone=None,
        interpreters=lambda: dict(interpreters),
    )


@pytest.fixture()
def script_store(settings: SimpleNamespace) -> ScriptStore:
    return ScriptStore(settings.scripts_db_path, settings.scripts_dir)


@pytest.fixture()
def task_store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def clock() -> SimulatedClock:
    # 12:00:30 so that "*/1 * * * *" first fires 30s later.
    return SimulatedClock(datetime(2024, 1, 1, 12, 0, 30, tzinfo=timezone.utc))


@pytest.fixture()
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture()
def runs() -> RunCollector:
    return RunCollector()


@pytest.fixture()
def scheduler(
    task_store: TaskStore,
    script_store: ScriptStore,
    executor: FakeExecutor,
    runs: RunCollector,
    clock: SimulatedClock,
) -> TaskScheduler:
    """
    Scheduler wired with a fake executor and simulated time.

    NOTE: the stores are real JSON stores because their durability is part of
    what we want to test.
    """
    return TaskScheduler(task_store, script_store, executor, sink=runs, clock=clock, sleep=clock.sleep)
