# tests/test_logging_setup.py

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from script_runner.logging_setup import (
    EXECUTOR_LOGGER,
    RUN_OUTPUT_LOGGER,
    _ConsoleNoiseFilter,
    setup_logging,
)
from script_runner.tasks.task_models import ScheduledRun
from script_runner.tasks.task_scheduler import log_scheduled_run


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    ("name", "level", "shown"),
    [
        ("script_runner.scripts.script_store", logging.DEBUG, True),
        (EXECUTOR_LOGGER, logging.DEBUG, False),
        (EXECUTOR_LOGGER, logging.INFO, True),
        (RUN_OUTPUT_LOGGER, logging.ERROR, False),
        ("asyncio", logging.WARNING, False),
        ("asyncio", logging.ERROR, True),
        ("py.warnings", logging.WARNING, False),
    ],
)
def test_console_filter(name: str, level: int, shown: bool) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown


@pytest.fixture()
def restore_logging():
    root = logging.getLogger()
    run_logger = logging.getLogger(RUN_OUTPUT_LOGGER)
    saved = (list(root.handlers), root.level, list(run_logger.handlers))
    yield
    for logger in (root, run_logger):
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()
    root.handlers[:] = saved[0]
    root.setLevel(saved[1])
    run_logger.handlers[:] = saved[2]
    logging.captureWarnings(False)


def test_scheduled_run_output_goes_to_runs_log(tmp_path: Path, restore_logging) -> None:
    setup_logging(log_dir=tmp_path)

    log_scheduled_run(
        ScheduledRun(
            task_id="t1",
            script_id="s1",
            script_name="nightly",
            fired_at=0.0,
            output="run-output-marker",
            exit_code=0,
        )
    )
    for h in logging.getLogger(RUN_OUTPUT_LOGGER).handlers + logging.getLogger().handlers:
        h.flush()

    assert "run-output-marker" in (tmp_path / "runs.log").read_text("utf-8")
    main_log = (tmp_path / "script-runner.log").read_text("utf-8")
    assert "run-output-marker" in main_log
    assert "Scheduled run of nightly (task t1) finished" in main_log
