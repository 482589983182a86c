"""Schedule lifecycle: creation, registration, pause, resume, cancel."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

from herald.db import utc_now
from herald.delivery.ledger import DeliveryLedger
from herald.errors import (
    CancellationError,
    InvalidTransitionError,
    RegistrationError,
    ScheduleValidationError,
)
from herald.scheduling.cadence import Cadence
from herald.scheduling.store import ScheduleStore
from herald.scheduling.timezone import (
    local_start_instant,
    next_cron_fire,
    resolve_offset_minutes,
    to_utc_cron,
)
from herald.scheduling.types import (
    DeliveryRecord,
    ScheduleDefinition,
    ScheduleStatus,
    TargetType,
    TriggerPayload,
    can_transition,
)
from herald.triggers.base import ACTIVATE_PATH, PROCESS_PATH, TriggerCoordinator

logger = logging.getLogger(__name__)


@dataclass
class ScheduleRequest:
    """Coach input for a new schedule."""

    owner_id: str
    content: str
    cadence: str
    start_date: date
    start_time: str
    timezone: str = "UTC"
    target_type: str = TargetType.ALL.value
    target_ids: list[str] = field(default_factory=list)
    title: str = ""
    end_date: date | None = None
    day_of_week: int | None = None
    day_of_month: int | None = None


class ScheduleService:
    """Owns the schedule state machine and the trigger registrations."""

    def __init__(
        self,
        store: ScheduleStore,
        ledger: DeliveryLedger,
        coordinator: TriggerCoordinator,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._coordinator = coordinator

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def build(self, request: ScheduleRequest) -> ScheduleDefinition:
        """Validate a request and derive the stored schedule (not yet saved).

        Raises:
            ScheduleValidationError: If any field is invalid.
        """
        content = request.content.strip()
        if not content:
            raise ScheduleValidationError("Message content is empty")

        cadence = Cadence.parse(request.cadence)
        if cadence is None:
            raise ScheduleValidationError(f"Unknown cadence: {request.cadence!r}")

        try:
            target_type = TargetType(request.target_type)
        except ValueError as e:
            raise ScheduleValidationError(
                f"Unknown target type: {request.target_type!r}"
            ) from e
        target_ids = list(dict.fromkeys(request.target_ids))
        if target_type is TargetType.SPECIFIC and not target_ids:
            raise ScheduleValidationError("Specific targeting requires recipient ids")

        if request.end_date is not None and request.end_date < request.start_date:
            raise ScheduleValidationError("End date is before start date")

        try:
            offset = resolve_offset_minutes(
                request.timezone, request.start_date, request.start_time
            )
            starts_at = local_start_instant(
                request.start_date, request.start_time, request.timezone
            )
        except ValueError as e:
            raise ScheduleValidationError(str(e)) from e

        frequency: dict[str, Any] | None = None
        cron: str | None = None
        if cadence.is_recurring:
            day_of_week = request.day_of_week
            day_of_month = request.day_of_month
            if cadence is Cadence.WEEKLY and day_of_week is None:
                # Sunday = 0, matching cron
                day_of_week = request.start_date.isoweekday() % 7
            if cadence is Cadence.MONTHLY and day_of_month is None:
                if request.start_date.day > 28:
                    raise ScheduleValidationError(
                        "Start date is after the 28th; pass an explicit day of month"
                    )
                day_of_month = request.start_date.day
            try:
                cron = to_utc_cron(
                    request.start_time,
                    offset,
                    cadence,
                    day_of_week=day_of_week,
                    day_of_month=day_of_month,
                )
            except ValueError as e:
                raise ScheduleValidationError(str(e)) from e
            if cadence is Cadence.WEEKLY:
                frequency = {"dayOfWeek": day_of_week}
            elif cadence is Cadence.MONTHLY:
                frequency = {"dayOfMonth": day_of_month}

        if cron:
            next_send_at = next_cron_fire(cron, starts_at - timedelta(seconds=1))
        else:
            next_send_at = starts_at

        return ScheduleDefinition(
            id=uuid.uuid4().hex,
            owner_id=request.owner_id,
            title=request.title,
            content=content,
            cadence=cadence.value,
            start_date=request.start_date,
            start_time=request.start_time,
            timezone=request.timezone,
            utc_offset_minutes=offset,
            cron_expression=cron,
            starts_at=starts_at,
            end_date=request.end_date,
            frequency_config=frequency,
            target_type=target_type,
            target_ids=target_ids if target_type is TargetType.SPECIFIC else [],
            status=ScheduleStatus.ACTIVE,
            is_active=False,
            next_send_at=next_send_at,
        )

    async def create(
        self, request: ScheduleRequest, now: datetime | None = None
    ) -> ScheduleDefinition:
        """Create a schedule and register its trigger.

        The row is stored inactive first, so a firing that races the
        registration is a no-op. On registration failure the row is removed.

        Raises:
            ScheduleValidationError: If the request is invalid.
            RegistrationError: If the trigger service rejected the job.
        """
        now = now or utc_now()
        schedule = await self._store.add(self.build(request))

        try:
            handle, first_firing = await self._register(schedule, now)
        except RegistrationError:
            await self._store.delete(schedule.id)
            logger.warning(
                "schedule_registration_failed", extra={"schedule.id": schedule.id}
            )
            raise

        await self._store.activate(schedule.id, handle)
        schedule.trigger_handle = handle
        schedule.is_active = True

        if first_firing:
            await self._request_first_firing(schedule, now)

        logger.info(
            "schedule_created",
            extra={
                "schedule.id": schedule.id,
                "schedule.owner_id": schedule.owner_id,
                "schedule.cadence": schedule.cadence,
                "schedule.cron": schedule.cron_expression,
                "trigger.handle": handle,
            },
        )
        return schedule

    async def _register(
        self, schedule: ScheduleDefinition, now: datetime
    ) -> tuple[str, bool]:
        """Register the schedule's trigger.

        Returns:
            (handle, whether an immediate first firing should be requested)
        """
        payload = TriggerPayload(schedule.id, schedule.owner_id)
        cadence = schedule.cadence_kind

        if cadence is Cadence.ONCE or not schedule.cron_expression:
            handle = await self._coordinator.register_once(
                payload, schedule.starts_at, path=PROCESS_PATH
            )
            return handle, False

        if cadence is not Cadence.FIVE_MINUTES and schedule.starts_at > now:
            activation = TriggerPayload(
                schedule.id,
                schedule.owner_id,
                cron_expression=schedule.cron_expression,
            )
            handle = await self._coordinator.register_once(
                activation, schedule.starts_at, path=ACTIVATE_PATH
            )
            return handle, False

        handle = await self._coordinator.register_recurring(
            payload, schedule.cron_expression, path=PROCESS_PATH
        )
        return handle, True

    async def _request_first_firing(
        self, schedule: ScheduleDefinition, now: datetime
    ) -> None:
        payload = TriggerPayload(schedule.id, schedule.owner_id, is_first_firing=True)
        try:
            await self._coordinator.register_once(
                payload, max(now, schedule.starts_at), path=PROCESS_PATH
            )
        except RegistrationError as e:
            # The recurring job is live; the sweep delivers the first firing
            logger.warning(
                "first_firing_registration_failed",
                extra={"schedule.id": schedule.id, "error.message": str(e)},
            )

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def _move(
        self,
        schedule: ScheduleDefinition,
        target: ScheduleStatus,
        **values: Any,
    ) -> None:
        if not can_transition(schedule.status, target):
            raise InvalidTransitionError(
                schedule.id, schedule.status.value, target.value
            )
        moved = await self._store.transition(
            schedule.id, schedule.status, target, **values
        )
        if not moved:
            current = await self._store.require(schedule.id)
            raise InvalidTransitionError(
                schedule.id, current.status.value, target.value
            )

    async def pause(self, schedule_id: str, owner_id: str) -> ScheduleDefinition:
        """Stop deliveries without removing the trigger; firings become no-ops."""
        schedule = await self._store.require(schedule_id, owner_id)
        await self._move(schedule, ScheduleStatus.PAUSED)
        return await self._store.require(schedule_id)

    async def resume(
        self, schedule_id: str, owner_id: str, now: datetime | None = None
    ) -> ScheduleDefinition:
        """Reactivate a paused schedule.

        Activation or one-shot callbacks that arrived while paused were
        ignored, so the missing trigger is registered again here.
        """
        now = now or utc_now()
        schedule = await self._store.require(schedule_id, owner_id)
        await self._move(schedule, ScheduleStatus.ACTIVE)

        handle = schedule.trigger_handle or ""
        payload = TriggerPayload(schedule.id, schedule.owner_id)
        try:
            if (
                schedule.is_recurring
                and schedule.cron_expression
                and not handle.startswith("schedule:")
                and schedule.starts_at <= now
            ):
                new_handle = await self._coordinator.register_recurring(
                    payload, schedule.cron_expression, path=PROCESS_PATH
                )
                await self._store.set_handle(schedule.id, new_handle)
            elif schedule.cadence_kind is Cadence.ONCE and schedule.starts_at <= now:
                new_handle = await self._coordinator.register_once(
                    payload, now, path=PROCESS_PATH
                )
                await self._store.set_handle(schedule.id, new_handle)
        except RegistrationError as e:
            logger.warning(
                "resume_registration_failed",
                extra={"schedule.id": schedule.id, "error.message": str(e)},
            )

        return await self._store.require(schedule_id)

    async def cancel(self, schedule_id: str, owner_id: str) -> ScheduleDefinition:
        """Cancel a schedule and tear down its trigger.

        A failed teardown is logged; the schedule stays cancelled and any
        later callback is rejected by the status re-check.
        """
        schedule = await self._store.require(schedule_id, owner_id)
        await self._move(
            schedule, ScheduleStatus.CANCELLED, is_active=False, next_send_at=None
        )
        await self._teardown(schedule)
        return await self._store.require(schedule_id)

    async def delete(self, schedule_id: str, owner_id: str) -> None:
        """Remove a schedule, its trigger and its delivery history.

        Any schedule can be deleted, whatever its status. Callbacks that still
        arrive afterwards find nothing and are answered `not_found`.
        """
        schedule = await self._store.require(schedule_id, owner_id)
        if not schedule.status.is_terminal:
            await self._teardown(schedule)
        await self._store.delete(schedule_id)
        logger.info("schedule_deleted", extra={"schedule.id": schedule_id})

    async def _teardown(self, schedule: ScheduleDefinition) -> None:
        if not schedule.trigger_handle:
            return
        try:
            await self._coordinator.cancel(schedule.trigger_handle)
        except CancellationError as e:
            logger.error(
                "trigger_teardown_failed",
                extra={
                    "schedule.id": schedule.id,
                    "trigger.handle": schedule.trigger_handle,
                    "error.message": str(e),
                },
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_for_owner(self, owner_id: str) -> list[ScheduleDefinition]:
        return await self._store.list_for_owner(owner_id)

    async def get_with_deliveries(
        self, schedule_id: str, owner_id: str
    ) -> tuple[ScheduleDefinition, list[DeliveryRecord]]:
        schedule = await self._store.require(schedule_id, owner_id)
        deliveries = await self._ledger.list_for_schedule(schedule_id)
        return schedule, deliveries

    async def stats(self, owner_id: str) -> dict[str, Any]:
        return await self._store.get_stats(owner_id)
