# src/script_runner/scripts/script_models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ScriptType(StrEnum):
    """
    Supported interpreter kinds.

    The value doubles as the payload file extension ({script_id}.{value}).
    """

    SHELL = "sh"
    NODE = "js"
    PYTHON = "py"

    @classmethod
    def parse(cls, raw: object) -> ScriptType | None:
        """Accept the value itself or a common alias; None if unsupported (or not a string)."""
        if not isinstance(raw, str):
            return None
        key = raw.strip().lower()
        if not key:
            return None
        try:
            return cls(key)
        except ValueError:
            return _ALIASES.get(key)

    @property
    def extension(self) -> str:
        return self.value


_ALIASES: dict[str, ScriptType] = {
    "shell": ScriptType.SHELL,
    "bash": ScriptType.SHELL,
    "node": ScriptType.NODE,
    "javascript": ScriptType.NODE,
    "python": ScriptType.PYTHON,
}


@dataclass(slots=True)
class Script:
    id: str
    name: str
    type: ScriptType
    file_path: str

    # Display-only cache of the most recently attached cron expression ("" if none).
    cron_expression: str = ""

    def to_record(self) -> dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "file_path": self.file_path,
            "cron_expression": self.cron_expression,
        }

    def summary(self) -> ScriptSummary:
        return ScriptSummary(
            id=self.id,
            name=self.name,
            type=self.type,
            cron_expression=self.cron_expression,
        )


@dataclass(slots=True, frozen=True)
class ScriptSummary:
    """Bulk-listing view: never carries payload content."""

    id: str
    name: str
    type: ScriptType
    cron_expression: str


@dataclass(slots=True, frozen=True)
class ScriptContent:
    id: str
    name: str
    type: ScriptType
    content: str
