"""Fallback sweep commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import click
import typer

from herald.cli.console import console, dim, error, success, warning


def register(app: typer.Typer) -> None:
    """Register the sweep command."""

    @app.command()
    def sweep(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: run, install"),
        ] = None,
        config: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="Path to configuration file"),
        ] = None,
        cron: Annotated[
            str | None,
            typer.Option(
                "--cron", help="Sweep cron for install (default: scheduler.sweep_cron)"
            ),
        ] = None,
    ) -> None:
        """Re-check every active schedule for missed deliveries.

        `run` performs one sweep now. `install` registers a recurring trigger
        that calls the server's /scheduler/sweep endpoint.
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from herald.cli.runtime import load_or_exit

        herald_config = load_or_exit(config)

        if action == "run":
            asyncio.run(_sweep_run(herald_config))
        elif action == "install":
            asyncio.run(_sweep_install(herald_config, cron))
        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: run, install")
            raise typer.Exit(1)


async def _sweep_run(config) -> None:
    from herald.cli.runtime import build_coordinator, build_sender, open_database
    from herald.delivery import (
        DeliveryDispatcher,
        DeliveryLedger,
        RecipientDirectory,
    )
    from herald.scheduling.processor import FiringProcessor
    from herald.scheduling.store import ScheduleStore
    from herald.scheduling.sweep import FallbackSweep

    coordinator = build_coordinator(config)
    sender = build_sender(config)
    async with open_database(config) as database:
        store = ScheduleStore(database)
        dispatcher = DeliveryDispatcher(
            store,
            DeliveryLedger(database),
            RecipientDirectory(database),
            sender,
            max_concurrency=config.delivery.max_concurrency,
            send_timeout=config.delivery.send_timeout,
        )
        processor = FiringProcessor(store, dispatcher, coordinator)
        result = await FallbackSweep(store, processor).run()

    console.print(
        f"Checked {result.schedules} schedule(s), dispatched {result.dispatched}, "
        f"sent {result.processed}/{result.total}"
    )
    for err in result.errors:
        target = err.get("recipientId") or err["scheduleId"]
        warning(f"{target}: {err['error']}")


async def _sweep_install(config, cron: str | None) -> None:
    from herald.cli.runtime import build_coordinator
    from herald.errors import RegistrationError
    from herald.scheduling.timezone import is_valid_cron
    from herald.triggers import SWEEP_PATH

    expression = cron or config.scheduler.sweep_cron
    if not is_valid_cron(expression):
        error(f"Invalid cron expression: {expression}")
        raise typer.Exit(1)

    coordinator = build_coordinator(config)
    try:
        handle = await coordinator.register_recurring(None, expression, path=SWEEP_PATH)
    except RegistrationError as e:
        error(str(e))
        raise typer.Exit(1) from None
    success(f"Sweep trigger installed: {handle}")
    dim(f"Calls {config.scheduler.public_url}{SWEEP_PATH} on '{expression}'")
