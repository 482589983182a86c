"""Recipient directory commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import click
import typer

from herald.cli.console import console, create_table, error, success, warning


def register(app: typer.Typer) -> None:
    """Register the recipients command."""

    @app.command()
    def recipients(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: add, list"),
        ] = None,
        recipient_id: Annotated[
            str | None,
            typer.Option("--id", "-i", help="Recipient ID (add)"),
        ] = None,
        owner: Annotated[
            str | None,
            typer.Option("--owner", "-o", help="Coach ID"),
        ] = None,
        name: Annotated[
            str | None,
            typer.Option("--name", "-n", help="Full name (add)"),
        ] = None,
        inactive: Annotated[
            bool,
            typer.Option("--inactive", help="Store the recipient as inactive (add)"),
        ] = False,
        config: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="Path to configuration file"),
        ] = None,
    ) -> None:
        """Maintain the coach-to-recipient directory used for targeting."""
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        if action not in ("add", "list"):
            error(f"Unknown action: {action}")
            console.print("Valid actions: add, list")
            raise typer.Exit(1)
        if owner is None:
            error("--owner is required")
            raise typer.Exit(1)
        if action == "add" and recipient_id is None:
            error("--id is required for add")
            raise typer.Exit(1)

        from herald.cli.runtime import load_or_exit

        herald_config = load_or_exit(config)
        if action == "add":
            asyncio.run(
                _recipients_add(herald_config, recipient_id, owner, name, not inactive)
            )
        else:
            asyncio.run(_recipients_list(herald_config, owner))


async def _recipients_add(config, recipient_id, owner, name, is_active) -> None:
    from herald.cli.runtime import open_database
    from herald.delivery import RecipientDirectory

    async with open_database(config) as database:
        info = await RecipientDirectory(database).add(
            recipient_id, owner, full_name=name, is_active=is_active
        )
    success(f"Saved recipient {info.id} for {info.owner_id}")


async def _recipients_list(config, owner: str) -> None:
    from herald.cli.runtime import open_database
    from herald.delivery import RecipientDirectory

    async with open_database(config) as database:
        found = await RecipientDirectory(database).list_for_owner(owner)

    if not found:
        warning(f"No recipients for {owner}")
        return

    table = create_table("Recipients", [("ID", "cyan"), ("Name", ""), ("Active", "")])
    for r in found:
        table.add_row(r.id, r.full_name or "-", "yes" if r.is_active else "no")
    console.print(table)
