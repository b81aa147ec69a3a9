# src/script_runner/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (stores/executor/scheduler),
- reconciles durable state into live timers before any command is handled.
"""

from __future__ import annotations

import logging

from ..config import INTERPRETER_ENV_VARS, get_settings
from ..core.ports import RunSink
from ..core.state import AppState
from ..scripts.script_executor import ProcessExecutor
from ..scripts.script_store import ScriptStore
from ..tasks.cron import Clock, Sleeper, local_clock, resolve_timezone
from ..tasks.task_scheduler import ReconcileReport, TaskScheduler
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.scripts_dir.mkdir(parents=True, exist_ok=True)
    settings.scripts_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    sink: RunSink | None = None,
    clock: Clock | None = None,
    sleep: Sleeper | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings(). Nothing is loaded from disk yet;
    call reconcile() for that.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if clock is None:
        clock = local_clock(resolve_timezone(getattr(settings, "cron_timezone", None)))

    scripts = ScriptStore(settings.scripts_db_path, settings.scripts_dir)
    tasks = TaskStore(settings.tasks_db_path)
    executor = ProcessExecutor(settings.interpreters(), config_hints=INTERPRETER_ENV_VARS)
    scheduler = TaskScheduler(tasks, scripts, executor, sink=sink, clock=clock, sleep=sleep)

    return AppState(
        settings=settings,
        scripts=scripts,
        tasks=tasks,
        executor=executor,
        scheduler=scheduler,
    )


def reconcile(state: AppState) -> ReconcileReport:
    """
    Startup reconciliation: scripts first, then tasks (which need the scripts).

    Must run on the event loop before any request handling.
    """
    n_scripts = state.scripts.load()
    report = state.scheduler.reconcile()
    state.reconciled = True
    logger.info(
        "Startup reconciliation done: scripts=%d tasks armed=%d dropped=%d",
        n_scripts,
        report.armed,
        report.dropped,
    )
    return report
