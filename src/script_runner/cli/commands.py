# src/script_runner/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from ..core.errors import ScriptRunnerError, ValidationError
from ..core.state import AppState
from ..scripts.script_api import run_script
from ..scripts.script_models import ScriptType

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[
    [AppState, str, CommandEmitter | None], str | Awaitable[str]
]

logger = logging.getLogger(__name__)

# Separates the header of /add and /edit from the inline script body.
BODY_SEPARATOR = "::"


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /run, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}
        # Commands that may run before startup reconciliation has finished.
        self._before_ready: set[str] = set()

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
        before_ready: bool = False,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler
        if before_ready:
            self._before_ready.update([key, *(a.lower() for a in aliases)])

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        ScriptRunnerError messages are returned as the reply; anything else propagates.
        """
        if not line.startswith("/"):
            return None

        name, _, rest = line[1:].partition(" ")
        name = name.strip().lower()
        if not name:
            return "Empty command. Use /help to list available commands."

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        if not getattr(state, "reconciled", True) and name not in self._before_ready:
            return "Not ready: scripts and tasks are still being loaded."

        try:
            reply = handler(state, rest.strip(), emit)
            if inspect.isawaitable(reply):
                reply = await reply
        except ScriptRunnerError as e:
            logger.debug("/%s rejected: %s", name, e)
            return f"Error: {e}"
        return reply

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _split_body(args: str, usage: str) -> tuple[list[str], str]:
    head, sep, body = args.partition(BODY_SEPARATOR)
    if not sep:
        raise ValidationError(f"Usage: {usage}")
    # Allow one-line multi-line scripts: "echo a\necho b".
    return head.split(), body.strip().replace("\\n", "\n")


def cmd_help(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    interpreters = ", ".join(f"{t.value}={b}" for t, b in state.executor.interpreters.items())
    return (
        "Status:\n"
        f"  Data dir: {state.settings.data_dir}\n"
        f"  Interpreters: {interpreters}\n"
        f"  Scripts: {state.scripts.count_scripts()}\n"
        f"  Tasks: {state.tasks.count_tasks()} (live timers: {state.scheduler.live_timer_count}, "
        f"runs in flight: {state.scheduler.inflight_count})"
    )


def cmd_scripts(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    summaries = state.scripts.list_summaries()
    if not summaries:
        return "No scripts yet. Use /add or /import."
    lines = ["Scripts:"]
    for s in summaries:
        cron = f" [cron: {s.cron_expression}]" if s.cron_expression else ""
        lines.append(f"  {s.id}  {s.name} ({s.type.value}){cron}")
    return "\n".join(lines)


def cmd_add(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    """/add <type> <name> :: <content>"""
    head, body = _split_body(args, "/add <type> <name> :: <content>")
    if len(head) < 2:
        raise ValidationError("Usage: /add <type> <name> :: <content>")
    script = state.scripts.create(name=" ".join(head[1:]), script_type=head[0], content=body)
    return f"Created {script.name} ({script.type.value}) id={script.id}"


def cmd_import(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    """/import <type> <path> [name]"""
    parts = args.split()
    if len(parts) < 2:
        raise ValidationError("Usage: /import <type> <path> [name]")
    path = Path(parts[1]).expanduser()
    try:
        payload = path.read_bytes()
    except OSError as e:
        raise ValidationError(f"Cannot read {path}: {e}") from e
    name = " ".join(parts[2:]) or path.stem
    script = state.scripts.create(name=name, script_type=parts[0], payload=payload)
    return f"Imported {path} as {script.name} ({script.type.value}) id={script.id}"


def cmd_show(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /show <script_id>"
    sc = state.scripts.get_content(args.split()[0])
    return f"{sc.name} ({sc.type.value}) id={sc.id}\n{sc.content}"


def cmd_rename(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    script_id, _, name = args.partition(" ")
    if not script_id or not name.strip():
        return "Usage: /rename <script_id> <new name>"
    script = state.scripts.update(script_id, name=name)
    return f"Renamed to {script.name}"


def cmd_edit(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    head, body = _split_body(args, "/edit <script_id> :: <content>")
    if len(head) != 1:
        raise ValidationError("Usage: /edit <script_id> :: <content>")
    script = state.scripts.update(head[0], content=body)
    return f"Updated content of {script.name}"


def cmd_rm(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /rm <script_id>"
    name = state.scripts.delete(args.split()[0])
    return f"Script {name} and its scheduled tasks were deleted."


async def cmd_run(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /run <script_id>"
    script_id = args.split()[0]
    if emit:
        emit(f"Running {script_id}...")
    result = await run_script(state.scripts, state.executor, script_id)
    return f"{result.full_output}\n(exit code {result.exit_code})"


def cmd_tasks(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    tasks = state.scheduler.list_tasks()
    if not tasks:
        return "No scheduled tasks."
    lines = ["Scheduled tasks:"]
    for t in tasks:
        lines.append(f"  {t.id}  {t.script_name} ({t.script_id})  '{t.cron_expression}'")
    return "\n".join(lines)


def cmd_schedule(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    """/schedule <script_id> <m> <h> <dom> <mon> <dow>"""
    script_id, _, expr = args.partition(" ")
    if not script_id or not expr.strip():
        return "Usage: /schedule <script_id> <minute> <hour> <day-of-month> <month> <day-of-week>"
    task = state.scheduler.create(script_id, expr)
    return f"Scheduled {task.script_name} with '{task.cron_expression}' task_id={task.id}"


def cmd_unschedule(state: AppState, args: str, emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /unschedule <task_id>"
    state.scheduler.delete(args.split()[0])
    return "Scheduled task deleted."


registry.register(
    "help", cmd_help, help_text="Show available commands.", aliases=["h", "?"], before_ready=True
)
registry.register("status", cmd_status, help_text="Show data dir, interpreters and counters.")
registry.register("scripts", cmd_scripts, help_text="List scripts.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Create a script: /add <sh|js|py> <name> :: <content>.")
registry.register("import", cmd_import, help_text="Create a script from a file: /import <type> <path> [name].")
registry.register("show", cmd_show, help_text="Show script content: /show <script_id>.", aliases=["cat"])
registry.register("rename", cmd_rename, help_text="Rename a script: /rename <script_id> <name>.")
registry.register("edit", cmd_edit, help_text="Replace script content: /edit <script_id> :: <content>.")
registry.register("rm", cmd_rm, help_text="Delete a script and its tasks: /rm <script_id>.", aliases=["delete"])
registry.register("run", cmd_run, help_text="Run a script now: /run <script_id>.")
registry.register("tasks", cmd_tasks, help_text="List scheduled tasks.")
registry.register(
    "schedule", cmd_schedule, help_text="Attach a cron schedule: /schedule <script_id> <5 cron fields>."
)
registry.register("unschedule", cmd_unschedule, help_text="Delete a scheduled task: /unschedule <task_id>.")
