# src/script_runner/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..scripts.script_executor import ProcessExecutor
from ..scripts.script_store import ScriptStore
from ..tasks.task_scheduler import TaskScheduler
from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    scripts: ScriptStore
    tasks: TaskStore
    executor: ProcessExecutor
    scheduler: TaskScheduler

    reconciled: bool = False
