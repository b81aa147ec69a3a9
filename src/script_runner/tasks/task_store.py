# src/script_runner/tasks/task_store.py

from __future__ import annotations

import logging
import threading
from pathlib import Path

from ..core.persistence import read_collection, write_collection
from .task_models import TaskDefinition

logger = logging.getLogger(__name__)


class TaskStore:
    """
    Durable collection of task definitions (id, script_id, cron_expression).

    No validation happens here; the scheduler decides what is valid.
    Every mutation rewrites the whole JSON file before returning.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._tasks: dict[str, TaskDefinition] = {}

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _commit(self, tasks: dict[str, TaskDefinition]) -> None:
        """Persist `tasks`, then make it the in-memory collection. A failed write changes nothing."""
        write_collection(self._db_path, "tasks", [t.to_record() for t in tasks.values()])
        self._tasks = tasks

    # ---- public API ----

    def read_persisted(self) -> list[TaskDefinition]:
        """Definitions exactly as stored on disk (entries missing a field are skipped)."""
        out: list[TaskDefinition] = []
        for rec in read_collection(self._db_path, "tasks"):
            task_id = str(rec.get("id") or "").strip()
            script_id = str(rec.get("script_id") or "").strip()
            expr = str(rec.get("cron_expression") or "").strip()
            if not task_id or not script_id or not expr:
                logger.warning("Skipping malformed task record: %r", rec)
                continue
            out.append(TaskDefinition(id=task_id, script_id=script_id, cron_expression=expr))
        return out

    def replace_all(self, tasks: list[TaskDefinition]) -> None:
        with self._lock:
            self._commit({t.id: t for t in tasks})
        logger.info("TaskStore ready db=%s total=%s", self._db_path, len(self._tasks))

    def count_tasks(self) -> int:
        return len(self._tasks)

    def get(self, task_id: str) -> TaskDefinition | None:
        return self._tasks.get(task_id)

    def list_tasks(self) -> list[TaskDefinition]:
        return list(self._tasks.values())

    def list_for_script(self, script_id: str) -> list[TaskDefinition]:
        return [t for t in self._tasks.values() if t.script_id == script_id]

    def add(self, task: TaskDefinition) -> None:
        with self._lock:
            self._commit({**self._tasks, task.id: task})
        logger.debug("Task stored id=%s script_id=%s cron=%s", task.id, task.script_id, task.cron_expression)

    def remove(self, task_ids: list[str]) -> int:
        with self._lock:
            drop = set(task_ids)
            kept = {k: v for k, v in self._tasks.items() if k not in drop}
            removed = len(self._tasks) - len(kept)
            if removed:
                self._commit(kept)
            return removed
