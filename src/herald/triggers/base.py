"""Trigger coordinator protocol and handle format."""

from datetime import datetime
from typing import Literal, Protocol, runtime_checkable

from herald.scheduling.types import TriggerPayload

HandleKind = Literal["schedule", "message"]

PROCESS_PATH = "/scheduler/process"
ACTIVATE_PATH = "/scheduler/activate"
SWEEP_PATH = "/scheduler/sweep"


def format_handle(kind: HandleKind, job_id: str) -> str:
    """Build an opaque handle: "schedule:<id>" or "message:<id>"."""
    return f"{kind}:{job_id}"


def parse_handle(handle: str) -> tuple[HandleKind, str]:
    """Split a handle into its kind and the external job id.

    Bare ids are treated as recurring schedule ids.
    """
    kind, sep, job_id = handle.partition(":")
    if not sep:
        return "schedule", handle
    if kind == "schedule":
        return "schedule", job_id
    if kind == "message":
        return "message", job_id
    raise ValueError(f"Unknown trigger handle kind: {kind!r}")


@runtime_checkable
class TriggerCoordinator(Protocol):
    """External wake-up service.

    Implementations raise RegistrationError when a job cannot be created and
    CancellationError when one cannot be removed.
    """

    async def register_once(
        self,
        payload: TriggerPayload,
        fire_at: datetime,
        *,
        path: str = PROCESS_PATH,
    ) -> str: ...

    async def register_recurring(
        self,
        payload: TriggerPayload | None,
        cron_expression: str,
        *,
        path: str = PROCESS_PATH,
    ) -> str: ...

    async def cancel(self, handle: str) -> None: ...
