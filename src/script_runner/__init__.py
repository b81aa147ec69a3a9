"""Script registry, cron scheduler and process executor."""

__version__ = "0.1.0"
