"""Database management commands."""

import asyncio
import subprocess
import sys
from pathlib import Path
from typing import Annotated

import typer

from herald.cli.console import console, error, success


def register(app: typer.Typer) -> None:
    """Register the db command group."""
    db_app = typer.Typer(help="Database management commands")

    @db_app.command("init")
    def db_init(
        config: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="Path to configuration file"),
        ] = None,
    ) -> None:
        """Create any missing tables."""
        from herald.cli.runtime import build_database, load_or_exit

        herald_config = load_or_exit(config)
        database = build_database(herald_config)

        async def run() -> None:
            await database.connect()
            try:
                await database.create_all()
            finally:
                await database.disconnect()

        asyncio.run(run())
        success(f"Database ready: {database.url}")

    @db_app.command("migrate")
    def db_migrate(
        revision: Annotated[
            str,
            typer.Option(
                "--revision",
                "-r",
                help="Target revision",
            ),
        ] = "head",
    ) -> None:
        """Run Alembic migrations."""
        console.print(f"[bold]Running migrations to {revision}...[/bold]")
        result = subprocess.run(
            [sys.executable, "-m", "alembic", "upgrade", revision],
            capture_output=False,
        )
        if result.returncode == 0:
            success("Migrations completed successfully")
        else:
            error("Migration failed")
            raise typer.Exit(1)

    app.add_typer(db_app, name="db")
