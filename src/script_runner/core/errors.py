# src/script_runner/core/errors.py

"""
Error taxonomy shared by the stores, the scheduler and the executor.

Validation and lookup errors are raised before any state changes.
str(exc) is always a message fit for an operator.
"""

from __future__ import annotations


class ScriptRunnerError(Exception):
    """Base class for every error the core raises on purpose."""


class NotFound(ScriptRunnerError):
    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(f"{kind} not found: {item_id}")
        self.kind = kind
        self.item_id = item_id


class ValidationError(ScriptRunnerError):
    pass


class InvalidCron(ValidationError):
    def __init__(self, expression: str, reason: str = "") -> None:
        msg = f"Invalid cron expression: {expression!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
        self.expression = expression


class LaunchFailure(ScriptRunnerError):
    """The interpreter process could not be started at all."""

    def __init__(self, command: str, detail: str) -> None:
        super().__init__(detail)
        self.command = command
        self.detail = detail


class IOFailure(ScriptRunnerError):
    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class PayloadMissing(IOFailure):
    """A script record exists but its payload file is gone from disk."""
