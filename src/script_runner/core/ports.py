# src/script_runner/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the scheduler and the run helpers.

The scheduler depends on Protocols instead of concrete stores/executors.
This keeps the process layer swappable and makes testing easier.
"""

from collections.abc import Callable, Mapping
from typing import Protocol

from ..scripts.script_executor import RunResult
from ..scripts.script_models import Script
from ..tasks.task_models import ScheduledRun


class ScriptRepo(Protocol):
    """What the scheduler needs from the script store."""

    def get(self, script_id: str) -> Script: ...
    def find(self, script_id: str) -> Script | None: ...
    def exists(self, script_id: str) -> bool: ...
    def list_scripts(self) -> list[Script]: ...
    def set_cron_cache(self, script_id: str, expression: str) -> None: ...
    def add_delete_listener(self, listener: Callable[[str], None]) -> None: ...


class ScriptRunner(Protocol):
    """Process executor port: one run of one script."""

    async def execute(self, script: Script, env: Mapping[str, str] | None = None) -> RunResult: ...


# Observability sink for fire-and-forget scheduled runs.
RunSink = Callable[[ScheduledRun], None]
