"""Configuration management commands."""

from pathlib import Path
from typing import Annotated

import click
import typer

from herald.cli.console import console, error, success


def register(app: typer.Typer) -> None:
    """Register the config command."""

    @app.command()
    def config(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, validate"),
        ] = None,
        path: Annotated[
            Path | None,
            typer.Option(
                "--path",
                "-p",
                help="Path to config file (default: $HERALD_HOME/config.toml)",
            ),
        ] = None,
    ) -> None:
        """Show or validate the configuration file."""
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from pydantic import ValidationError
        from rich.syntax import Syntax

        from herald.config import load_config
        from herald.config.paths import get_config_path

        expanded_path = path.expanduser() if path else get_config_path()

        if action == "show":
            if not expanded_path.exists():
                error(f"Config file not found: {expanded_path}")
                raise typer.Exit(1)

            content = expanded_path.read_text()
            syntax = Syntax(content, "toml", theme="monokai", line_numbers=True)
            console.print(f"[bold]Config file: {expanded_path}[/bold]\n")
            console.print(syntax)

        elif action == "validate":
            if not expanded_path.exists():
                error(f"Config file not found: {expanded_path}")
                raise typer.Exit(1)
            try:
                loaded = load_config(expanded_path)
            except ValidationError as e:
                error("Configuration is invalid:")
                console.print(str(e))
                raise typer.Exit(1) from None
            except ValueError as e:
                error(f"Could not parse config: {e}")
                raise typer.Exit(1) from None

            success("Configuration is valid")
            console.print(f"  Database: {loaded.database.url or loaded.database.path}")
            console.print(f"  Public URL: {loaded.scheduler.public_url}")
            console.print(
                f"  Scheduler key: {'set' if loaded.scheduler.api_key else 'missing'}"
            )
            console.print(f"  QStash: {'set' if loaded.qstash.token else 'missing'}")
            console.print(f"  Messaging: {loaded.messaging.url or 'missing'}")

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, validate")
            raise typer.Exit(1)
