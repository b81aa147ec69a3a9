# src/script_runner/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class TaskState(StrEnum):
    """
    Runtime lifecycle of a scheduled task.

    DEFINED -> ARMED is the only non-terminal path; STOPPED is terminal.
    There is no paused state: deleting the task is the only way to stop it.
    """

    DEFINED = "defined"
    ARMED = "armed"
    STOPPED = "stopped"


@dataclass(slots=True, frozen=True)
class TaskDefinition:
    """What gets persisted. The live timer lives in the scheduler's registry, never here."""

    id: str
    script_id: str
    cron_expression: str

    def to_record(self) -> dict[str, str]:
        return {
            "id": self.id,
            "script_id": self.script_id,
            "cron_expression": self.cron_expression,
        }


@dataclass(slots=True, frozen=True)
class TaskSummary:
    id: str
    script_id: str
    script_name: str
    cron_expression: str


@dataclass(slots=True, frozen=True)
class ScheduledRun:
    """
    Outcome of one timer firing, handed to the run sink.

    Exactly one of exit_code / error is set. Nobody awaits this; there is no retry.
    """

    task_id: str
    script_id: str
    script_name: str
    fired_at: float
    output: str = ""
    exit_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.exit_code == 0
