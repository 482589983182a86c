"""Schedule management commands."""

import asyncio
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import click
import typer

from herald.cli.console import console, create_table, dim, error, success, warning


def _format_countdown(next_fire: datetime | None) -> str:
    """Format a countdown string for the next fire time."""
    if next_fire is None:
        return "[dim]-[/dim]"

    now = datetime.now(UTC)
    if next_fire <= now:
        return "[green]now[/green]"

    total_minutes = int((next_fire - now).total_seconds()) // 60
    if total_minutes < 60:
        return f"in {total_minutes}m"
    hours, minutes = divmod(total_minutes, 60)
    if hours < 24:
        return f"in {hours}h {minutes}m" if minutes else f"in {hours}h"
    days, hours = divmod(hours, 24)
    return f"in {days}d {hours}h" if hours else f"in {days}d"


def register(app: typer.Typer) -> None:
    """Register the schedule command."""

    @app.command()
    def schedule(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: list, show, pause, resume, cancel, delete"),
        ] = None,
        schedule_id: Annotated[
            str | None,
            typer.Option("--id", "-i", help="Schedule ID"),
        ] = None,
        owner: Annotated[
            str | None,
            typer.Option("--owner", "-o", help="Only schedules of this coach"),
        ] = None,
        config: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="Path to configuration file"),
        ] = None,
        force: Annotated[
            bool,
            typer.Option("--force", "-f", help="Cancel or delete without confirmation"),
        ] = False,
    ) -> None:
        """Inspect and manage scheduled messages.

        Examples:
            herald schedule list --owner coach-1
            herald schedule show --id 4f9c...
            herald schedule cancel --id 4f9c...
            herald schedule delete --id 4f9c... --force
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        if action not in ("list", "show", "pause", "resume", "cancel", "delete"):
            error(f"Unknown action: {action}")
            console.print("Valid actions: list, show, pause, resume, cancel, delete")
            raise typer.Exit(1)

        if action != "list" and schedule_id is None:
            error(f"--id is required for {action}")
            raise typer.Exit(1)

        from herald.cli.runtime import load_or_exit

        herald_config = load_or_exit(config)

        if action == "list":
            asyncio.run(_schedule_list(herald_config, owner))
        elif action == "show":
            asyncio.run(_schedule_show(herald_config, schedule_id))
        elif action == "cancel":
            if not force and not typer.confirm(f"Cancel schedule {schedule_id}?"):
                dim("Cancelled")
                return
            asyncio.run(_schedule_transition(herald_config, schedule_id, action))
        elif action == "delete":
            if not force and not typer.confirm(
                f"Delete schedule {schedule_id} and its delivery history?"
            ):
                dim("Cancelled")
                return
            asyncio.run(_schedule_delete(herald_config, schedule_id))
        else:
            asyncio.run(_schedule_transition(herald_config, schedule_id, action))


async def _schedule_list(config, owner: str | None) -> None:
    from herald.cli.runtime import open_database
    from herald.scheduling.store import ScheduleStore

    async with open_database(config) as database:
        store = ScheduleStore(database)
        if owner:
            schedules = await store.list_for_owner(owner)
        else:
            schedules = await store.list_all()

    if not schedules:
        warning("No schedules found")
        return

    table = create_table(
        "Schedules",
        [
            ("ID", {"style": "dim", "max_width": 12}),
            ("Owner", ""),
            ("Cadence", "cyan"),
            ("Cron (UTC)", ""),
            ("Status", ""),
            ("Last sent", ""),
            ("Next", ""),
        ],
    )
    for s in schedules:
        status = s.status.value if s.is_active else f"{s.status.value} (pending)"
        table.add_row(
            s.id[:12],
            s.owner_id,
            s.cadence,
            s.cron_expression or "-",
            status,
            s.last_sent_at.strftime("%Y-%m-%d %H:%M") if s.last_sent_at else "-",
            _format_countdown(s.next_send_at),
        )
    console.print(table)
    dim(f"{len(schedules)} schedule(s)")


async def _schedule_show(config, schedule_id: str) -> None:
    from herald.cli.runtime import open_database
    from herald.delivery import DeliveryLedger
    from herald.scheduling.store import ScheduleStore

    async with open_database(config) as database:
        schedule = await ScheduleStore(database).get(schedule_id)
        if schedule is None:
            error(f"Schedule not found: {schedule_id}")
            raise typer.Exit(1)
        deliveries = await DeliveryLedger(database).list_for_schedule(
            schedule_id, limit=20
        )

    console.print(f"[bold]{schedule.title or schedule.id}[/bold]")
    console.print(f"Owner: {schedule.owner_id}")
    console.print(
        f"Cadence: {schedule.cadence} at {schedule.start_time} {schedule.timezone}"
        f" (UTC cron: {schedule.cron_expression or '-'})"
    )
    console.print(f"Status: {schedule.status.value}")
    console.print(f"Trigger: {schedule.trigger_handle or '-'}")
    console.print(f"Content: {schedule.content}")

    if not deliveries:
        dim("No deliveries yet")
        return

    table = create_table(
        "Recent deliveries",
        [("Recipient", ""), ("Window", "dim"), ("Status", ""), ("At", ""), ("Error", "red")],
    )
    for d in deliveries:
        table.add_row(
            d.recipient_id,
            d.window_id,
            d.status.value,
            d.sent_at.strftime("%Y-%m-%d %H:%M"),
            d.error or "",
        )
    console.print(table)


async def _schedule_transition(config, schedule_id: str, action: str) -> None:
    from herald.cli.runtime import build_coordinator, open_database
    from herald.delivery import DeliveryLedger
    from herald.errors import InvalidTransitionError, ScheduleNotFoundError
    from herald.scheduling.service import ScheduleService
    from herald.scheduling.store import ScheduleStore

    coordinator = build_coordinator(config)
    async with open_database(config) as database:
        store = ScheduleStore(database)
        service = ScheduleService(store, DeliveryLedger(database), coordinator)
        try:
            current = await store.require(schedule_id)
            if action == "pause":
                updated = await service.pause(schedule_id, current.owner_id)
            elif action == "resume":
                updated = await service.resume(schedule_id, current.owner_id)
            else:
                updated = await service.cancel(schedule_id, current.owner_id)
        except (ScheduleNotFoundError, InvalidTransitionError) as e:
            error(str(e))
            raise typer.Exit(1) from None

    success(f"Schedule {updated.id} is now {updated.status.value}")


async def _schedule_delete(config, schedule_id: str) -> None:
    from herald.cli.runtime import build_coordinator, open_database
    from herald.delivery import DeliveryLedger
    from herald.errors import ScheduleNotFoundError
    from herald.scheduling.service import ScheduleService
    from herald.scheduling.store import ScheduleStore

    coordinator = build_coordinator(config)
    async with open_database(config) as database:
        store = ScheduleStore(database)
        service = ScheduleService(store, DeliveryLedger(database), coordinator)
        try:
            current = await store.require(schedule_id)
            await service.delete(schedule_id, current.owner_id)
        except ScheduleNotFoundError as e:
            error(str(e))
            raise typer.Exit(1) from None

    success(f"Deleted schedule {schedule_id}")
