"""Server command for running the Herald HTTP service."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    """Register the serve command."""

    @app.command()
    def serve(
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
        host: Annotated[
            str | None,
            typer.Option(
                "--host",
                "-h",
                help="Host to bind to (default: server.host)",
            ),
        ] = None,
        port: Annotated[
            int | None,
            typer.Option(
                "--port",
                "-p",
                help="Port to bind to (default: server.port)",
            ),
        ] = None,
    ) -> None:
        """Start the Herald server (processing endpoints and schedule API)."""
        try:
            asyncio.run(_run_server(config, host, port))
        except KeyboardInterrupt:
            # Use print here since logging may not be configured yet
            print("\nServer stopped")


async def _run_server(
    config_path: Path | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the server asynchronously."""
    from herald.cli.console import console, dim, error
    from herald.cli.runtime import (
        build_coordinator,
        build_database,
        build_sender,
        load_or_exit,
    )
    from herald.logging import configure_logging
    from herald.server import ServerRunner, create_app

    configure_logging(use_rich=True, log_to_file=True)

    console.print("[bold]Loading configuration...[/bold]")
    herald_config = load_or_exit(config_path)

    if herald_config.sentry:
        from herald.observability import init_sentry

        if init_sentry(herald_config.sentry, server_mode=True):
            dim("Sentry initialized")

    from herald.config import ConfigError

    # Fail at startup rather than on the first callback
    try:
        herald_config.require_scheduler_key()
    except ConfigError as e:
        error(str(e))
        raise SystemExit(1) from None
    coordinator = build_coordinator(herald_config)
    sender = build_sender(herald_config)

    database = build_database(herald_config)
    fastapi_app = create_app(
        config=herald_config,
        database=database,
        coordinator=coordinator,
        sender=sender,
    )

    bind_host = host or herald_config.server.host
    bind_port = port or herald_config.server.port
    console.print(f"[bold]Serving on {bind_host}:{bind_port}[/bold]")
    dim(f"Callbacks: {herald_config.scheduler.public_url}/scheduler/process")

    runner = ServerRunner(fastapi_app, host=bind_host, port=bind_port)
    await runner.run()
    logger.info("server_stopped")
