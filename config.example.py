# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use:
- .env (local, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "SR_APP_NAME": "App display name (default: script-runner).",
    "SR_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "SR_CONSOLE_ENABLED": "Run the interactive console (true/false). false => headless scheduler.",
    # Paths (gitignored)
    "SR_DATA_DIR": "Local data directory (default: .local/script-runner).",
    "SR_SCRIPTS_DIR": "Script payload files (default: <data_dir>/user_scripts).",
    "SR_SCRIPTS_DB_PATH": "Script collection JSON (default: <data_dir>/scripts.json).",
    "SR_TASKS_DB_PATH": "Scheduled task definitions JSON (default: <data_dir>/tasks.json).",
    # Interpreters (one binary per script type)
    "SR_BASH_PATH": "Interpreter for .sh scripts (default: /bin/bash).",
    "SR_NODE_PATH": "Interpreter for .js scripts (default: node).",
    "SR_PYTHON_PATH": "Interpreter for .py scripts (default: python3).",
    # Scheduling
    "SR_CRON_TIMEZONE": "IANA timezone for cron expressions, e.g. Europe/Berlin (default: local time).",
}
