"""Shared wiring for commands that talk to the database or trigger service."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import typer

from herald.cli.console import error
from herald.config import ConfigError, HeraldConfig, load_config
from herald.db import Database


def load_or_exit(config_path: Path | None) -> HeraldConfig:
    """Load configuration, printing a readable error instead of a traceback."""
    try:
        return load_config(config_path)
    except FileNotFoundError as e:
        error(str(e))
        raise typer.Exit(1) from None
    except ValueError as e:
        error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from None


def build_database(config: HeraldConfig) -> Database:
    if config.database.url:
        return Database(database_url=config.database.url)
    return Database(database_path=config.database.path)


@asynccontextmanager
async def open_database(config: HeraldConfig) -> AsyncIterator[Database]:
    """Connect, ensure tables exist, and always disconnect."""
    database = build_database(config)
    await database.connect()
    try:
        await database.create_all()
        yield database
    finally:
        await database.disconnect()


def build_coordinator(config: HeraldConfig):
    from herald.triggers import QStashTriggerCoordinator

    try:
        return QStashTriggerCoordinator.from_config(config)
    except ConfigError as e:
        error(str(e))
        raise typer.Exit(1) from None


def build_sender(config: HeraldConfig):
    from herald.delivery import HttpMessageSender

    try:
        return HttpMessageSender.from_config(config.messaging)
    except ConfigError as e:
        error(str(e))
        raise typer.Exit(1) from None
