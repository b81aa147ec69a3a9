# src/script_runner/scripts/script_api.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from ..core.errors import PayloadMissing
from ..core.ports import ScriptRepo, ScriptRunner
from .script_executor import RunResult

logger = logging.getLogger(__name__)


async def run_script(
    scripts: ScriptRepo,
    executor: ScriptRunner,
    script_id: str,
    env: Mapping[str, str] | None = None,
) -> RunResult:
    """
    Resolve a script and run it once.

    Raises NotFound (unknown id), PayloadMissing (file vanished from disk) or
    LaunchFailure (interpreter could not start). A failing script is not an
    error: its exit code is in the result.
    """
    script = scripts.get(script_id)
    if not Path(script.file_path).exists():
        logger.warning("Script file missing on disk for %s (ID: %s): %s", script.name, script.id, script.file_path)
        raise PayloadMissing(
            f"Script file for {script.name} (ID: {script.id}) was not found on disk.",
            script.file_path,
        )
    return await executor.execute(script, env)
