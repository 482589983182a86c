"""FastAPI application for the Herald server."""

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from herald.delivery import (
    DeliveryDispatcher,
    DeliveryLedger,
    MessageSender,
    RecipientDirectory,
)
from herald.errors import (
    AuthorizationError,
    HeraldError,
    InvalidTransitionError,
    RegistrationError,
    ScheduleNotFoundError,
    ScheduleValidationError,
    TargetResolutionError,
)
from herald.scheduling.processor import FiringProcessor
from herald.scheduling.service import ScheduleService
from herald.scheduling.store import ScheduleStore
from herald.scheduling.sweep import FallbackSweep
from herald.server.routes import health, scheduler, schedules

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from herald.config import HeraldConfig
    from herald.db import Database
    from herald.triggers import TriggerCoordinator

logger = logging.getLogger(__name__)

_ERROR_STATUS: list[tuple[type[HeraldError], int]] = [
    (AuthorizationError, 401),
    (ScheduleNotFoundError, 404),
    (InvalidTransitionError, 409),
    (ScheduleValidationError, 422),
    (RegistrationError, 502),
    (TargetResolutionError, 503),
]


def _status_for(exc: HeraldError) -> int:
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return 500


async def _herald_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HeraldError)
    code = _status_for(exc)
    if code >= 500:
        logger.warning(
            "request_failed",
            extra={
                "http.path": request.url.path,
                "http.status": code,
                "error.type": type(exc).__name__,
                "error.message": str(exc),
            },
        )
    return JSONResponse(
        status_code=code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


class HeraldServer:
    """Main server application.

    Wires the store, ledger, dispatcher and lifecycle service around the
    injected collaborators and exposes them to the routes via `app.state`.
    """

    def __init__(
        self,
        config: "HeraldConfig",
        database: "Database",
        coordinator: "TriggerCoordinator",
        sender: MessageSender,
    ):
        self._config = config
        self._database = database

        self.store = ScheduleStore(database)
        self.ledger = DeliveryLedger(database)
        self.recipients = RecipientDirectory(database)
        self.dispatcher = DeliveryDispatcher(
            self.store,
            self.ledger,
            self.recipients,
            sender,
            max_concurrency=config.delivery.max_concurrency,
            send_timeout=config.delivery.send_timeout,
        )
        self.processor = FiringProcessor(self.store, self.dispatcher, coordinator)
        self.sweep = FallbackSweep(self.store, self.processor)
        self.service = ScheduleService(self.store, self.ledger, coordinator)

        self._app = self._create_app()

    @property
    def app(self) -> FastAPI:
        """Get the FastAPI application."""
        return self._app

    @property
    def scheduler_key(self) -> str | None:
        key = self._config.scheduler.api_key
        return key.get_secret_value() if key else None

    def _create_app(self) -> FastAPI:
        """Create and configure the FastAPI app."""

        @asynccontextmanager
        async def lifespan(app: FastAPI) -> "AsyncIterator[None]":
            logger.info("server_starting")
            owns_connection = not self._database.is_connected
            if owns_connection:
                await self._database.connect()
            await self._database.create_all()

            yield

            logger.info("server_stopping")
            if owns_connection:
                await self._database.disconnect()

        app = FastAPI(
            title="Herald",
            description="Scheduled message delivery API",
            version="0.1.0",
            lifespan=lifespan,
        )

        app.state.server = self
        app.state.database = self._database
        app.add_exception_handler(HeraldError, _herald_error_handler)

        app.include_router(health.router, tags=["health"])
        app.include_router(scheduler.router, prefix="/scheduler", tags=["scheduler"])
        app.include_router(schedules.router, prefix="/schedules", tags=["schedules"])

        return app


def create_app(
    config: "HeraldConfig",
    database: "Database",
    coordinator: "TriggerCoordinator",
    sender: MessageSender,
) -> FastAPI:
    """Create the FastAPI application."""
    server = HeraldServer(
        config=config,
        database=database,
        coordinator=coordinator,
        sender=sender,
    )
    return server.app
