# src/script_runner/scripts/script_executor.py

from __future__ import annotations

"""
Process executor.

Launches exactly one interpreter process per call with the script path as its
only argument, captures stdout/stderr as they arrive and assembles a RunResult.

A non-zero exit code is a normal outcome and is reported in the result.
Only a process that cannot be started raises (LaunchFailure).
"""

import asyncio
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from ..core.errors import LaunchFailure, ValidationError
from .script_models import Script, ScriptType

logger = logging.getLogger(__name__)

SEPARATOR = "---------------------"
READ_CHUNK = 4096


@dataclass(slots=True, frozen=True)
class RunResult:
    full_output: str
    exit_code: int


def format_output(script: Script, stdout: str, stderr: str, exit_code: int) -> str:
    out = (
        f"Running script: {script.name} (ID: {script.id})\n"
        f"Type: {script.type.value}\n"
        f"Path: {script.file_path}\n"
        f"{SEPARATOR}\n"
    )
    out += stdout
    out += f"\n{SEPARATOR}\nScript finished with exit code {exit_code}\n"
    if stderr:
        out += f"\nErrors:\n{stderr}"
    return out


async def _drain(stream: asyncio.StreamReader | None, sink: bytearray, label: str) -> None:
    if stream is None:
        return
    while True:
        chunk = await stream.read(READ_CHUNK)
        if not chunk:
            return
        sink.extend(chunk)
        logger.debug("captured %d bytes from %s", len(chunk), label)


class ProcessExecutor:
    """
    Stateless apart from its configuration; safe to call concurrently.

    interpreters: one binary per ScriptType (from Settings.interpreters()).
    config_hints: ScriptType -> name of the setting that configures it,
                  only used to make launch errors actionable.
    """

    def __init__(
        self,
        interpreters: Mapping[ScriptType, str],
        *,
        config_hints: Mapping[ScriptType, str] | None = None,
        inherit_env: bool = True,
    ) -> None:
        self._interpreters = dict(interpreters)
        self._hints = dict(config_hints or {})
        self._inherit_env = inherit_env

    @property
    def interpreters(self) -> dict[ScriptType, str]:
        return dict(self._interpreters)

    def resolve_command(self, script_type: ScriptType) -> str:
        binary = self._interpreters.get(script_type)
        if not binary:
            raise ValidationError(f"Unsupported script type: {script_type}")
        return binary

    def _build_env(self, env: Mapping[str, str] | None) -> dict[str, str]:
        base = dict(os.environ) if self._inherit_env else {}
        if env:
            base.update(env)
        return base

    async def execute(self, script: Script, env: Mapping[str, str] | None = None) -> RunResult:
        command = self.resolve_command(script.type)
        logger.debug("Executing: %s %s", command, script.file_path)

        try:
            proc = await asyncio.create_subprocess_exec(
                command,
                script.file_path,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._build_env(env),
            )
        except FileNotFoundError as e:
            hint = self._hints.get(script.type)
            detail = f"Failed to start script: interpreter '{command}' not found."
            if hint:
                detail += f" Check {hint} or make sure the command is on PATH."
            logger.error("Launch failed for %s (ID: %s): %s", script.name, script.id, e)
            raise LaunchFailure(command, detail) from e
        except OSError as e:
            logger.error("Launch failed for %s (ID: %s): %s", script.name, script.id, e)
            raise LaunchFailure(command, f"Failed to start script: {e}") from e

        out_buf = bytearray()
        err_buf = bytearray()
        await asyncio.gather(
            _drain(proc.stdout, out_buf, "stdout"),
            _drain(proc.stderr, err_buf, "stderr"),
        )
        exit_code = await proc.wait()

        stdout = out_buf.decode("utf-8", errors="replace")
        stderr = err_buf.decode("utf-8", errors="replace")
        logger.info("Script %s (ID: %s) finished with exit code %s.", script.name, script.id, exit_code)
        return RunResult(full_output=format_output(script, stdout, stderr, exit_code), exit_code=exit_code)
