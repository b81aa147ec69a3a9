# src/script_runner/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- Interpreter binaries are configuration, never hardcoded in the executor.
- SR_BASH_PATH keeps the name the first release used.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from .scripts.script_models import ScriptType

ENV_PREFIX = "SR"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


# Which variable configures which interpreter (used in error messages too).
INTERPRETER_ENV_VARS: Dict[ScriptType, str] = {
    ScriptType.SHELL: _k("BASH_PATH"),
    ScriptType.NODE: _k("NODE_PATH"),
    ScriptType.PYTHON: _k("PYTHON_PATH"),
}

DEFAULT_INTERPRETERS: Dict[ScriptType, str] = {
    ScriptType.SHELL: "/bin/bash",
    ScriptType.NODE: "node",
    ScriptType.PYTHON: "python3",
}


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    scripts_dir: Path
    scripts_db_path: Path
    tasks_db_path: Path

    # ---- Interpreters ----
    bash_path: str
    node_path: str
    python_path: str

    # ---- Scheduling ----
    cron_timezone: Optional[str]

    def interpreters(self) -> Dict[ScriptType, str]:
        """Mapping consumed by ProcessExecutor: one binary per script type."""
        return {
            ScriptType.SHELL: self.bash_path,
            ScriptType.NODE: self.node_path,
            ScriptType.PYTHON: self.python_path,
        }

    @staticmethod
    def from_env() -> "Settings":
        app_name = _first_env(_k("APP_NAME"), default="script-runner") or "script-runner"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/script-runner"))
        scripts_dir = _env_path(_k("SCRIPTS_DIR"), data_dir / "user_scripts")
        scripts_db_path = _env_path(_k("SCRIPTS_DB_PATH"), data_dir / "scripts.json")
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.json")

        bash_path = _env(INTERPRETER_ENV_VARS[ScriptType.SHELL], DEFAULT_INTERPRETERS[ScriptType.SHELL])
        node_path = _env(INTERPRETER_ENV_VARS[ScriptType.NODE], DEFAULT_INTERPRETERS[ScriptType.NODE])
        python_path = _env(
            INTERPRETER_ENV_VARS[ScriptType.PYTHON], DEFAULT_INTERPRETERS[ScriptType.PYTHON]
        )

        cron_timezone = (_first_env(_k("CRON_TIMEZONE"), default="") or "").strip() or None

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            scripts_dir=scripts_dir,
            scripts_db_path=scripts_db_path,
            tasks_db_path=tasks_db_path,
            bash_path=bash_path,
            node_path=node_path,
            python_path=python_path,
            cron_timezone=cron_timezone,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
