# src/script_runner/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class _InputReader:
    """
    Reads console lines in a daemon thread and hands them to the event loop.

    A daemon thread (instead of asyncio.to_thread) so a pending input() never
    blocks interpreter exit. The next prompt is shown only after the previous
    reply has been printed.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, prompt: str) -> None:
        self._loop = loop
        self._prompt = prompt
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._ready = threading.Event()
        self._thread = threading.Thread(target=self._run, name="console-input", daemon=True)

    def start(self) -> None:
        self._ready.set()
        self._thread.start()

    def _push(self, line: str | None) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, line)
        except RuntimeError:
            # Loop already closed.
            return False
        return True

    def _run(self) -> None:
        while True:
            self._ready.wait()
            self._ready.clear()
            try:
                line = input(self._prompt)
            except (EOFError, KeyboardInterrupt):
                self._push(None)
                return
            if not self._push(line):
                return

    async def next_line(self) -> str | None:
        """None means EOF."""
        return await self._queue.get()

    def prompt_again(self) -> None:
        self._ready.set()


async def run_console_loop(state: AppState, *, prompt: str = ">>> ") -> None:
    """Interactive console on the scheduler's event loop; timers keep firing while we wait."""
    logger.info("Console connector started.")
    app_name = str(getattr(getattr(state, "settings", None), "app_name", "script-runner"))
    _print_ts(f"[{app_name}] Use /help for commands. Use /exit to quit.\n")

    reader = _InputReader(asyncio.get_running_loop(), prompt)
    reader.start()

    while True:
        raw = await reader.next_line()
        if raw is None:
            logger.info("Console EOF received, exiting.")
            print()
            break

        user_input = raw.strip()
        if not user_input:
            reader.prompt_again()
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = await command_registry.handle(state, user_input, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is None:
            _print_ts("Not a command. Use /help to list available commands.")
        else:
            _print_ts(reply)
        reader.prompt_again()

    logger.info("Console connector finished.")
