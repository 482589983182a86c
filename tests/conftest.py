"""Shared test fixtures and factories."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import pytest
from pydantic import SecretStr
from typer.testing import CliRunner

from herald.config import HeraldConfig, MessagingConfig, QStashConfig, SchedulerConfig
from herald.db import Database
from herald.delivery import (
    DeliveryDispatcher,
    DeliveryLedger,
    DeliveryRequest,
    RecipientDirectory,
)
from herald.errors import (
    CancellationError,
    PerRecipientDeliveryError,
    RegistrationError,
)
from herald.scheduling.processor import FiringProcessor
from herald.scheduling.service import ScheduleService
from herald.scheduling.store import ScheduleStore
from herald.scheduling.sweep import FallbackSweep
from herald.scheduling.types import (
    ScheduleDefinition,
    ScheduleStatus,
    TargetType,
    TriggerPayload,
)
from herald.triggers.base import PROCESS_PATH, format_handle

OWNER = "coach-1"
SCHEDULER_KEY = "test-scheduler-key-0001"

# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path: Path) -> HeraldConfig:
    """Configuration with every collaborator set."""
    return HeraldConfig(
        database={"path": tmp_path / "herald.db"},
        scheduler=SchedulerConfig(
            api_key=SecretStr(SCHEDULER_KEY),
            public_url="https://herald.example.com",
        ),
        qstash=QStashConfig(token=SecretStr("qstash-token-abcdef")),
        messaging=MessagingConfig(url="https://chat.example.com/messages"),
    )


@pytest.fixture
def config_toml_content(tmp_path: Path) -> str:
    """Valid TOML config content."""
    return f"""
[database]
path = "{tmp_path / "cli.db"}"

[scheduler]
api_key = "{SCHEDULER_KEY}"
public_url = "https://herald.example.com"

[messaging]
url = "https://chat.example.com/messages"
"""


@pytest.fixture
def config_file(tmp_path: Path, config_toml_content: str) -> Path:
    """Create a temporary config file."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(config_toml_content)
    return config_path


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner(env={"NO_COLOR": "1"})


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Create a temporary test database."""
    db = Database(database_path=tmp_path / "test.db")
    await db.connect()
    await db.create_all()

    yield db

    await db.disconnect()


# =============================================================================
# Collaborator Fakes
# =============================================================================


class FakeCoordinator:
    """Trigger coordinator that records registrations instead of calling out."""

    def __init__(self) -> None:
        self.once_calls: list[dict[str, Any]] = []
        self.recurring_calls: list[dict[str, Any]] = []
        self.cancelled: list[str] = []
        self.fail_once = False
        self.fail_recurring = False
        self.fail_cancel = False
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return str(self._counter)

    async def register_once(
        self,
        payload: TriggerPayload,
        fire_at: datetime,
        *,
        path: str = PROCESS_PATH,
    ) -> str:
        if self.fail_once:
            raise RegistrationError("publish rejected")
        self.once_calls.append({"payload": payload, "fire_at": fire_at, "path": path})
        return format_handle("message", self._next_id())

    async def register_recurring(
        self,
        payload: TriggerPayload | None,
        cron_expression: str,
        *,
        path: str = PROCESS_PATH,
    ) -> str:
        if self.fail_recurring:
            raise RegistrationError("schedule rejected")
        self.recurring_calls.append(
            {"payload": payload, "cron": cron_expression, "path": path}
        )
        return format_handle("schedule", self._next_id())

    async def cancel(self, handle: str) -> None:
        if self.fail_cancel:
            raise CancellationError(f"cannot delete {handle}")
        self.cancelled.append(handle)


class FakeSender:
    """Message sender that records sends and fails for chosen recipients.

    Recipients in `flaky` fail their first attempt only. `before_send` runs
    ahead of every attempt.
    """

    def __init__(
        self, failing: set[str] | None = None, delay: float = 0.0
    ) -> None:
        self.failing = failing or set()
        self.flaky: set[str] = set()
        self.delay = delay
        self.before_send: Callable[[DeliveryRequest], Awaitable[None]] | None = None
        self.attempts: list[str] = []
        self.sent: list[DeliveryRequest] = []

    async def send(self, request: DeliveryRequest) -> str | None:
        self.attempts.append(request.recipient_id)
        if self.before_send is not None:
            await self.before_send(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if request.recipient_id in self.flaky:
            self.flaky.discard(request.recipient_id)
            raise PerRecipientDeliveryError(request.recipient_id, "connection reset")
        if request.recipient_id in self.failing:
            raise PerRecipientDeliveryError(request.recipient_id, "recipient offline")
        self.sent.append(request)
        return f"msg-{len(self.sent)}"


@pytest.fixture
def coordinator() -> FakeCoordinator:
    return FakeCoordinator()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def store(database: Database) -> ScheduleStore:
    return ScheduleStore(database)


@pytest.fixture
def ledger(database: Database) -> DeliveryLedger:
    return DeliveryLedger(database)


@pytest.fixture
def recipients(database: Database) -> RecipientDirectory:
    return RecipientDirectory(database)


@pytest.fixture
def dispatcher(
    store: ScheduleStore,
    ledger: DeliveryLedger,
    recipients: RecipientDirectory,
    sender: FakeSender,
) -> DeliveryDispatcher:
    return DeliveryDispatcher(store, ledger, recipients, sender, send_timeout=2.0)


@pytest.fixture
def processor(
    store: ScheduleStore,
    dispatcher: DeliveryDispatcher,
    coordinator: FakeCoordinator,
) -> FiringProcessor:
    return FiringProcessor(store, dispatcher, coordinator)


@pytest.fixture
def service(
    store: ScheduleStore, ledger: DeliveryLedger, coordinator: FakeCoordinator
) -> ScheduleService:
    return ScheduleService(store, ledger, coordinator)


@pytest.fixture
def sweep(store: ScheduleStore, processor: FiringProcessor) -> FallbackSweep:
    return FallbackSweep(store, processor)


# =============================================================================
# Factories
# =============================================================================


def make_schedule(**overrides: Any) -> ScheduleDefinition:
    """Build an active daily schedule that started on 2026-01-01 09:00 UTC."""
    values: dict[str, Any] = {
        "id": "sched-1",
        "owner_id": OWNER,
        "content": "Time to check in!",
        "cadence": "daily",
        "start_date": date(2026, 1, 1),
        "start_time": "09:00",
        "timezone": "UTC",
        "utc_offset_minutes": 0,
        "cron_expression": "00 09 * * *",
        "starts_at": datetime(2026, 1, 1, 9, 0, tzinfo=UTC),
        "target_type": TargetType.ALL,
        "status": ScheduleStatus.ACTIVE,
        "is_active": True,
        "trigger_handle": "schedule:existing",
    }
    values.update(overrides)
    return ScheduleDefinition(**values)


async def add_recipients(
    directory: RecipientDirectory, *recipient_ids: str, owner_id: str = OWNER
) -> None:
    for recipient_id in recipient_ids:
        await directory.add(recipient_id, owner_id, full_name=recipient_id.title())
