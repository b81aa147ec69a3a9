# src/script_runner/tasks/task_scheduler.py

from __future__ import annotations

"""
Task scheduler.

Owns the task definitions (through TaskStore) and a separate runtime registry
task_id -> CronTimer. On every firing it:
- resolves the script,
- runs it through the injected executor in its own asyncio task,
- reports the outcome to the run sink (logging by default).

Scheduled runs are fire-and-forget: failures are logged, never retried and
never propagated. Stopping a timer does not cancel a run already in flight.
"""

import asyncio
import logging
import threading
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, replace

from ..core.errors import InvalidCron, IOFailure, NotFound, ScriptRunnerError, ValidationError
from ..core.ports import RunSink, ScriptRepo, ScriptRunner
from ..logging_setup import RUN_OUTPUT_LOGGER
from ..scripts.script_api import run_script
from .cron import Clock, CronTimer, Sleeper, normalize_cron
from .task_models import ScheduledRun, TaskDefinition, TaskState, TaskSummary
from .task_store import TaskStore

logger = logging.getLogger(__name__)
run_output_logger = logging.getLogger(RUN_OUTPUT_LOGGER)

MISSING_SCRIPT_NAME = "N/A"


@dataclass(slots=True, frozen=True)
class ReconcileReport:
    armed: int
    dropped: int


def log_scheduled_run(run: ScheduledRun) -> None:
    """Default run sink."""
    if run.error is not None:
        logger.error(
            "Scheduled run of %s (task %s) failed to start: %s",
            run.script_name,
            run.task_id,
            run.error,
        )
        return
    if run.exit_code != 0:
        logger.warning(
            "Scheduled run of %s (task %s) exited with code %s",
            run.script_name,
            run.task_id,
            run.exit_code,
        )
    else:
        logger.info("Scheduled run of %s (task %s) finished", run.script_name, run.task_id)
    run_output_logger.info("Scheduled task %s (task %s) output:\n%s", run.script_name, run.task_id, run.output)


class TaskScheduler:
    """
    Task Scheduler.

    create/delete/reconcile must run on the event loop thread (timers are
    asyncio tasks). The scheduler lock is never held while calling into the
    script store, so store -> scheduler cascades cannot deadlock.
    """

    def __init__(
        self,
        task_store: TaskStore,
        scripts: ScriptRepo,
        executor: ScriptRunner,
        *,
        sink: RunSink | None = None,
        clock: Clock | None = None,
        sleep: Sleeper | None = None,
    ) -> None:
        self._store = task_store
        self._scripts = scripts
        self._executor = executor
        self._sink = sink or log_scheduled_run
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.RLock()
        self._timers: dict[str, CronTimer] = {}
        self._inflight: set[asyncio.Task[None]] = set()

        scripts.add_delete_listener(self.delete_all_for_script)

    # ---- runtime registry ----

    def _arm(self, task: TaskDefinition) -> None:
        timer = CronTimer(
            task.cron_expression,
            lambda: self._on_fire(task),
            name=f"task-{task.id}",
            clock=self._clock,
            sleep=self._sleep,
        )
        timer.start()
        self._timers[task.id] = timer

    def _disarm(self, task_ids: Iterable[str]) -> None:
        for task_id in task_ids:
            timer = self._timers.pop(task_id, None)
            if timer is not None:
                timer.stop()

    def timer(self, task_id: str) -> CronTimer | None:
        return self._timers.get(task_id)

    def task_state(self, task_id: str) -> TaskState:
        timer = self._timers.get(task_id)
        if timer is not None and timer.running:
            return TaskState.ARMED
        if self._store.get(task_id) is not None:
            return TaskState.DEFINED
        return TaskState.STOPPED

    @property
    def live_timer_count(self) -> int:
        return sum(1 for t in self._timers.values() if t.running)

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    # ---- firing ----

    def _on_fire(self, task: TaskDefinition) -> None:
        logger.info("Task %s (script ID: %s) triggered", task.id, task.script_id)
        run = asyncio.get_running_loop().create_task(
            self._run_scheduled(task, time.time()), name=f"run-{task.id}"
        )
        self._inflight.add(run)
        run.add_done_callback(self._inflight.discard)

    async def _run_scheduled(self, task: TaskDefinition, fired_at: float) -> None:
        script = self._scripts.find(task.script_id)
        script_name = script.name if script is not None else MISSING_SCRIPT_NAME
        try:
            result = await run_script(self._scripts, self._executor, task.script_id)
            outcome = ScheduledRun(
                task_id=task.id,
                script_id=task.script_id,
                script_name=script_name,
                fired_at=fired_at,
                output=result.full_output,
                exit_code=result.exit_code,
            )
        except ScriptRunnerError as e:
            outcome = ScheduledRun(
                task_id=task.id,
                script_id=task.script_id,
                script_name=script_name,
                fired_at=fired_at,
                error=str(e),
            )
        except Exception as e:
            logger.exception("Scheduled run crashed task_id=%s", task.id)
            outcome = ScheduledRun(
                task_id=task.id,
                script_id=task.script_id,
                script_name=script_name,
                fired_at=fired_at,
                error=f"internal error: {e}",
            )

        try:
            self._sink(outcome)
        except Exception:
            logger.exception("Run sink failed task_id=%s", task.id)

    async def drain(self) -> None:
        """Wait for every run already in flight."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ---- public API ----

    def _summary(self, task: TaskDefinition) -> TaskSummary:
        script = self._scripts.find(task.script_id)
        return TaskSummary(
            id=task.id,
            script_id=task.script_id,
            script_name=script.name if script is not None else MISSING_SCRIPT_NAME,
            cron_expression=task.cron_expression,
        )

    def _update_cron_cache(self, script_id: str, expression: str) -> None:
        # Display-only value; a failed write must not undo the task change that caused it.
        try:
            self._scripts.set_cron_cache(script_id, expression)
        except IOFailure:
            logger.warning("Could not update cron cache of script %s", script_id, exc_info=True)

    def create(self, script_id: str, cron_expression: str) -> TaskSummary:
        """
        Attach a cron schedule to an existing script and arm its timer.

        The script's cron cache becomes this expression (last write wins).
        """
        if not script_id or not (cron_expression or "").strip():
            raise ValidationError("Script ID and cron expression are required.")

        script = self._scripts.get(script_id)
        expr = normalize_cron(cron_expression)
        task = TaskDefinition(id=str(uuid.uuid4()), script_id=script_id, cron_expression=expr)

        with self._lock:
            self._arm(task)
            try:
                self._store.add(task)
            except Exception:
                self._disarm([task.id])
                raise

        self._update_cron_cache(script_id, expr)
        logger.info("Task created: %s (script %s) cron %r", task.id, script.name, expr)
        return self._summary(task)

    def list_tasks(self) -> list[TaskSummary]:
        return [self._summary(t) for t in self._store.list_tasks()]

    def delete(self, task_id: str) -> None:
        """
        Stop the timer, then remove the definition. The script's cron cache is
        cleared only when no other task still points at that script.
        """
        with self._lock:
            task = self._store.get(task_id)
            if task is None:
                raise NotFound("Task", task_id)
            self._disarm([task_id])
            try:
                self._store.remove([task_id])
            except Exception:
                self._arm(task)
                raise
            orphaned = not self._store.list_for_script(task.script_id)

        if orphaned:
            self._update_cron_cache(task.script_id, "")
        logger.info("Task deleted: %s", task_id)

    def delete_all_for_script(self, script_id: str) -> int:
        """Cascade path for script deletion: stop every matching timer, then drop the records."""
        with self._lock:
            tasks = self._store.list_for_script(script_id)
            ids = [t.id for t in tasks]
            if not ids:
                return 0
            self._disarm(ids)
            try:
                removed = self._store.remove(ids)
            except Exception:
                for task in tasks:
                    self._arm(task)
                raise
        logger.info("Deleted %d task(s) of script %s", removed, script_id)
        return removed

    def reconcile(self) -> ReconcileReport:
        """
        Rebuild live timers from the persisted definitions.

        Definitions whose script no longer exists, whose cron expression no
        longer parses, or whose id is duplicated are dropped with a warning;
        the rest are armed exactly like fresh creations. The durable file is
        rewritten without the dropped entries.
        """
        kept: list[TaskDefinition] = []
        seen: set[str] = set()
        dropped = 0

        for task in self._store.read_persisted():
            if task.id in seen:
                logger.warning("Dropping duplicate task id %s", task.id)
                dropped += 1
                continue
            if not self._scripts.exists(task.script_id):
                logger.warning(
                    "Dropping task %s: script %s no longer exists", task.id, task.script_id
                )
                dropped += 1
                continue
            try:
                expr = normalize_cron(task.cron_expression)
            except InvalidCron as e:
                logger.warning("Dropping task %s: %s", task.id, e)
                dropped += 1
                continue
            seen.add(task.id)
            kept.append(replace(task, cron_expression=expr))

        with self._lock:
            self._disarm(list(self._timers))
            self._store.replace_all(kept)
            for task in kept:
                self._arm(task)

        scheduled = {t.script_id for t in kept}
        for script in self._scripts.list_scripts():
            if script.cron_expression and script.id not in scheduled:
                self._update_cron_cache(script.id, "")

        logger.info("Reconciled tasks: armed=%d dropped=%d", len(kept), dropped)
        return ReconcileReport(armed=len(kept), dropped=dropped)

    def shutdown(self) -> None:
        """Stop every live timer. Durable state is left untouched."""
        with self._lock:
            count = len(self._timers)
            self._disarm(list(self._timers))
        logger.info("Scheduler stopped (%d timer(s))", count)
