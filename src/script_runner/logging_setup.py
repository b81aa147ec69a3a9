# src/script_runner/logging_setup.py

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Full stdout/stderr of scheduled runs goes here (file only, never the console).
RUN_OUTPUT_LOGGER = "script_runner.runs"
EXECUTOR_LOGGER = "script_runner.scripts.script_executor"


class _ConsoleNoiseFilter(logging.Filter):
    """
    Make interactive console usable:
    - allow script_runner logs
    - but keep executor DEBUG chatter (per-chunk capture) out; INFO+ passes
    - keep scheduled run output out entirely (it lands in runs.log)
    - suppress asyncio / third-party noise unless ERROR+
    - suppress Python warnings (captured as 'py.warnings') unless ERROR+
    """

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        if name == RUN_OUTPUT_LOGGER or name.startswith(RUN_OUTPUT_LOGGER + "."):
            return False

        if name.startswith("script_runner."):
            if name == EXECUTOR_LOGGER:
                return record.levelno >= logging.INFO
            return True

        if name == "py.warnings":
            return record.levelno >= logging.ERROR

        # asyncio, croniter and anything else: errors only.
        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/script-runner",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> None:
    """
    Configure logging with:
    - Console handler: readable + filtered for interactive use
    - script-runner.log: everything, for debugging
    - runs.log: scheduled run output only

    Call this ONCE, very early (before first logger.info).
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    run_logger = logging.getLogger(RUN_OUTPUT_LOGGER)

    # Remove any pre-existing handlers to avoid duplicates.
    for logger in (root, run_logger):
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter())
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_dir / "script-runner.log"), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    rh = logging.FileHandler(str(log_dir / "runs.log"), encoding="utf-8")
    rh.setLevel(logging.DEBUG)
    rh.setFormatter(fmt)
    run_logger.addHandler(rh)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
