"""Firing processor: the path every trigger, activation and sweep goes through.

The trigger payload only names a schedule. Status, active flag and
`last_sent_at` are always re-read from the store before anything is sent.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from herald.db import utc_now
from herald.delivery.dispatcher import DeliveryDispatcher, DispatchResult
from herald.errors import CancellationError
from herald.scheduling.store import ScheduleStore
from herald.scheduling.types import ScheduleDefinition, ScheduleStatus, TriggerPayload
from herald.scheduling.window import evaluation_slot, is_expired, schedule_is_due
from herald.triggers.base import PROCESS_PATH, TriggerCoordinator

logger = logging.getLogger(__name__)


class FiringStatus(StrEnum):
    DISPATCHED = "dispatched"
    NOT_DUE = "not_due"
    INACTIVE = "inactive"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


@dataclass
class FiringResult:
    status: FiringStatus
    dispatch: DispatchResult = field(default_factory=DispatchResult)
    handle: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = self.dispatch.to_dict()
        data["status"] = self.status.value
        if self.handle is not None:
            data["handle"] = self.handle
        return data


class FiringProcessor:
    """Turns one wake-up into at most one dispatch."""

    def __init__(
        self,
        store: ScheduleStore,
        dispatcher: DeliveryDispatcher,
        coordinator: TriggerCoordinator,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._coordinator = coordinator

    async def _load(self, payload: TriggerPayload) -> ScheduleDefinition | None:
        schedule = await self._store.get(payload.schedule_id)
        if schedule is None or schedule.owner_id != payload.owner_id:
            logger.warning(
                "firing_schedule_not_found",
                extra={"schedule.id": payload.schedule_id},
            )
            return None
        return schedule

    async def process(
        self, payload: TriggerPayload, now: datetime | None = None
    ) -> FiringResult:
        """Handle a callback from the trigger service."""
        schedule = await self._load(payload)
        if schedule is None:
            return FiringResult(FiringStatus.NOT_FOUND)
        if payload.is_first_firing:
            logger.info("first_firing_received", extra={"schedule.id": schedule.id})
        return await self.fire(schedule, now)

    async def fire(
        self, schedule: ScheduleDefinition, now: datetime | None = None
    ) -> FiringResult:
        """Evaluate and, if due, dispatch a freshly loaded schedule."""
        now = now or utc_now()

        if schedule.status is not ScheduleStatus.ACTIVE or not schedule.is_active:
            logger.info(
                "firing_ignored_inactive",
                extra={
                    "schedule.id": schedule.id,
                    "schedule.status": schedule.status.value,
                },
            )
            return FiringResult(FiringStatus.INACTIVE)

        if is_expired(schedule, now):
            await self._expire(schedule)
            return FiringResult(FiringStatus.EXPIRED)

        slot = evaluation_slot(schedule, now)
        if not schedule_is_due(schedule, now, slot):
            return FiringResult(FiringStatus.NOT_DUE)

        result = await self._dispatcher.dispatch(schedule, slot)
        return FiringResult(FiringStatus.DISPATCHED, result)

    async def activate(
        self, payload: TriggerPayload, now: datetime | None = None
    ) -> FiringResult:
        """Deferred activation of a recurring schedule.

        Registers the real recurring job, then performs the first delivery
        in-process. A schedule that already has a recurring job (a duplicate
        activation callback) is only fired.

        Raises:
            RegistrationError: If the recurring job cannot be registered.
        """
        schedule = await self._load(payload)
        if schedule is None:
            return FiringResult(FiringStatus.NOT_FOUND)
        if schedule.status is not ScheduleStatus.ACTIVE or not schedule.is_active:
            return FiringResult(FiringStatus.INACTIVE)

        handle = schedule.trigger_handle
        cron = schedule.cron_expression or payload.cron_expression
        if cron and not (handle and handle.startswith("schedule:")):
            job_payload = TriggerPayload(schedule.id, schedule.owner_id)
            handle = await self._coordinator.register_recurring(
                job_payload, cron, path=PROCESS_PATH
            )
            if not await self._store.store_recurring_handle(schedule.id, handle):
                # A duplicate activation stored its job first; drop ours
                await self._cancel_handle(handle, schedule.id)
                current = await self._store.get(schedule.id)
                if current is None:
                    return FiringResult(FiringStatus.NOT_FOUND)
                result = await self.fire(current, now)
                result.handle = current.trigger_handle
                return result
            schedule.trigger_handle = handle
            logger.info(
                "schedule_activated",
                extra={"schedule.id": schedule.id, "trigger.cron": cron},
            )
            # A cancel may have landed while we were registering
            current = await self._store.get(schedule.id)
            if current is None or current.status.is_terminal:
                await self._cancel_handle(handle, schedule.id)
                return FiringResult(FiringStatus.INACTIVE, handle=handle)
            schedule = current

        result = await self.fire(schedule, now)
        result.handle = handle
        return result

    async def _expire(self, schedule: ScheduleDefinition) -> None:
        """End a schedule whose end date has passed."""
        moved = await self._store.transition(
            schedule.id,
            schedule.status,
            ScheduleStatus.CANCELLED,
            is_active=False,
            next_send_at=None,
        )
        if moved and schedule.trigger_handle:
            await self._cancel_handle(schedule.trigger_handle, schedule.id)
        logger.info("schedule_expired", extra={"schedule.id": schedule.id})

    async def _cancel_handle(self, handle: str, schedule_id: str) -> None:
        try:
            await self._coordinator.cancel(handle)
        except CancellationError as e:
            logger.warning(
                "trigger_cancel_failed",
                extra={
                    "schedule.id": schedule_id,
                    "trigger.handle": handle,
                    "error.message": str(e),
                },
            )
