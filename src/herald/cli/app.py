"""Main CLI application."""

import typer

from herald.cli.commands import (
    config,
    cron,
    database,
    recipients,
    schedule,
    serve,
    sweep,
)

app = typer.Typer(
    name="herald",
    help="Herald - scheduled message delivery",
    no_args_is_help=True,
)

for module in (config, cron, database, recipients, schedule, serve, sweep):
    module.register(app)


if __name__ == "__main__":
    app()
