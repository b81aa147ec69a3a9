# src/script_runner/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, reconciles persisted scripts/tasks into
live timers, then runs the console REPL (or waits for a signal when the
console is disabled). Timers and commands share one event loop.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from ..cli.bootstrap import create_initial_state, reconcile
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)

# In-flight runs are not cancelled on exit; give them this long to finish.
SHUTDOWN_DRAIN_SECONDS = 10.0


async def _shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.scheduler.shutdown()
    except Exception:
        logger.exception("Failed to stop scheduler timers.")

    if state.scheduler.inflight_count:
        logger.info("Waiting for %d running script(s)...", state.scheduler.inflight_count)
        try:
            await asyncio.wait_for(state.scheduler.drain(), timeout=SHUTDOWN_DRAIN_SECONDS)
        except TimeoutError:
            logger.warning("Scripts still running after %.0fs; exiting anyway.", SHUTDOWN_DRAIN_SECONDS)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings)
    reconcile(state)

    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_signal, sig)
        except (NotImplementedError, RuntimeError):
            # Some platforms (Windows) do not support loop signal handlers.
            pass

    try:
        if settings.console_enabled:
            console = asyncio.create_task(run_console_loop(state))
            stopper = asyncio.create_task(stop_main.wait())
            _, pending = await asyncio.wait({console, stopper}, return_when=asyncio.FIRST_COMPLETED)
            for t in pending:
                t.cancel()
        else:
            logger.info("Console disabled. Running scheduled tasks only. Press Ctrl+C to stop.")
            await stop_main.wait()
    finally:
        await _shutdown(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)
    for script_type, binary in settings.interpreters().items():
        logger.info("Interpreter for %s scripts: %s", script_type.value, binary)

    asyncio.run(_run(settings))
    logger.info("Bye.")


if __name__ == "__main__":
    main()
