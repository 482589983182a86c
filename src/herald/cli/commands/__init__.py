"""CLI command modules."""

from herald.cli.commands import (
    config,
    cron,
    database,
    recipients,
    schedule,
    serve,
    sweep,
)

__all__ = [
    "config",
    "cron",
    "database",
    "recipients",
    "schedule",
    "serve",
    "sweep",
]
