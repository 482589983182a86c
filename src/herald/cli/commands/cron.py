"""Timezone conversion preview."""

from datetime import date
from typing import Annotated

import typer

from herald.cli.console import console, error


def register(app: typer.Typer) -> None:
    """Register the cron command."""

    @app.command()
    def cron(
        local_time: Annotated[str, typer.Argument(help="Local start time, HH:MM")],
        timezone: Annotated[
            str,
            typer.Option("--tz", "-z", help="IANA timezone or +HH:MM offset"),
        ] = "UTC",
        cadence: Annotated[
            str,
            typer.Option("--cadence", help="5min, daily, weekly or monthly"),
        ] = "daily",
        on: Annotated[
            str | None,
            typer.Option("--date", "-d", help="Start date (YYYY-MM-DD), default today"),
        ] = None,
        day_of_week: Annotated[
            int | None,
            typer.Option("--day-of-week", help="0-6, Sunday = 0 (weekly)"),
        ] = None,
        day_of_month: Annotated[
            int | None,
            typer.Option("--day-of-month", help="1-28 (monthly)"),
        ] = None,
    ) -> None:
        """Show the UTC cron a local start time converts to.

        Examples:
            herald cron 09:00 --tz America/New_York
            herald cron 23:30 --tz +02:00 --cadence weekly --day-of-week 1
        """
        from herald.scheduling.timezone import (
            from_utc_cron,
            local_start_instant,
            resolve_offset_minutes,
            to_utc_cron,
        )

        try:
            start = date.fromisoformat(on) if on else date.today()
            offset = resolve_offset_minutes(timezone, start, local_time)
            expression = to_utc_cron(
                local_time,
                offset,
                cadence,
                day_of_week=day_of_week,
                day_of_month=day_of_month,
            )
            starts_at = local_start_instant(start, local_time, timezone)
        except ValueError as e:
            error(str(e))
            raise typer.Exit(1) from None

        console.print(f"[bold]UTC cron:[/bold] {expression}")
        console.print(f"Offset: {offset:+d} minutes")
        console.print(f"Starts at: {starts_at.isoformat()}")
        if expression.split()[1].isdigit():
            console.print(f"Local time (re-derived): {from_utc_cron(expression, offset)}")
