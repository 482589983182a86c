"""Delivery dispatcher: one firing of one schedule.

For each resolved recipient the dispatcher claims the ledger slot, sends,
and records the outcome. Sends run concurrently under a semaphore; the
schedule's `last_sent_at` is advanced once, after every attempt finished.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from herald.delivery.ledger import DeliveryLedger
from herald.delivery.recipients import RecipientDirectory
from herald.delivery.sender import DeliveryRequest, MessageSender
from herald.errors import PerRecipientDeliveryError
from herald.scheduling.cadence import Cadence
from herald.scheduling.store import ScheduleStore
from herald.scheduling.timezone import next_cron_fire
from herald.scheduling.types import ScheduleDefinition, ScheduleStatus
from herald.scheduling.window import delivery_window

logger = logging.getLogger(__name__)


@dataclass
class RecipientError:
    recipient_id: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"recipientId": self.recipient_id, "error": self.error}


@dataclass
class DispatchResult:
    """Outcome of one firing.

    `processed` counts successful sends, `skipped` counts recipients whose
    slot was already claimed by another firing.
    """

    processed: int = 0
    total: int = 0
    skipped: int = 0
    errors: list[RecipientError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "total": self.total,
            "skipped": self.skipped,
            "errors": [e.to_dict() for e in self.errors],
        }


class _Outcome:
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class DeliveryDispatcher:
    def __init__(
        self,
        store: ScheduleStore,
        ledger: DeliveryLedger,
        recipients: RecipientDirectory,
        sender: MessageSender,
        *,
        max_concurrency: int = 8,
        send_timeout: float = 15.0,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._recipients = recipients
        self._sender = sender
        self._max_concurrency = max_concurrency
        self._send_timeout = send_timeout

    async def dispatch(
        self, schedule: ScheduleDefinition, evaluation_time: datetime
    ) -> DispatchResult:
        """Deliver one firing of `schedule`.

        `schedule` must be the state the due check was made against; its
        `last_sent_at` selects the ledger window.

        Raises:
            TargetResolutionError: Recipients could not be determined. Nothing
                is sent and `last_sent_at` is left untouched.
        """
        recipient_ids = await self._recipients.resolve(schedule)
        window_id = delivery_window(schedule.cadence, schedule.last_sent_at)
        result = DispatchResult(total=len(recipient_ids))

        logger.info(
            "dispatch_started",
            extra={
                "schedule.id": schedule.id,
                "delivery.window": window_id,
                "delivery.recipients": len(recipient_ids),
            },
        )

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def deliver(recipient_id: str) -> tuple[str, str, str | None]:
            async with semaphore:
                return await self._deliver_one(schedule, recipient_id, window_id)

        outcomes = await asyncio.gather(*(deliver(rid) for rid in recipient_ids))
        for recipient_id, outcome, error in outcomes:
            if outcome == _Outcome.SENT:
                result.processed += 1
            elif outcome == _Outcome.SKIPPED:
                result.skipped += 1
            else:
                result.errors.append(RecipientError(recipient_id, error or "unknown"))

        await self._finish_firing(schedule, evaluation_time, result)

        logger.info(
            "dispatch_finished",
            extra={
                "schedule.id": schedule.id,
                "delivery.window": window_id,
                "delivery.processed": result.processed,
                "delivery.skipped": result.skipped,
                "delivery.failed": len(result.errors),
            },
        )
        return result

    async def _deliver_one(
        self, schedule: ScheduleDefinition, recipient_id: str, window_id: str
    ) -> tuple[str, str, str | None]:
        record_id = await self._ledger.claim(schedule.id, recipient_id, window_id)
        if record_id is None:
            return recipient_id, _Outcome.SKIPPED, None

        request = DeliveryRequest(
            schedule_id=schedule.id,
            owner_id=schedule.owner_id,
            recipient_id=recipient_id,
            text=schedule.content,
        )
        try:
            message_id = await asyncio.wait_for(
                self._sender.send(request), timeout=self._send_timeout
            )
        except TimeoutError:
            error = f"Send timed out after {self._send_timeout:g}s"
        except PerRecipientDeliveryError as e:
            error = str(e)
        except Exception as e:
            error = str(e) or type(e).__name__
        else:
            await self._ledger.mark_sent(record_id, message_id)
            return recipient_id, _Outcome.SENT, None

        logger.warning(
            "delivery_failed",
            extra={
                "schedule.id": schedule.id,
                "recipient.id": recipient_id,
                "error.message": error,
            },
        )
        await self._ledger.mark_failed(record_id, error)
        return recipient_id, _Outcome.FAILED, error

    async def _finish_firing(
        self,
        schedule: ScheduleDefinition,
        evaluation_time: datetime,
        result: DispatchResult,
    ) -> None:
        next_send_at = None
        if schedule.cron_expression and schedule.is_recurring:
            next_send_at = next_cron_fire(schedule.cron_expression, evaluation_time)
        advanced = await self._store.advance_last_sent(
            schedule.id, evaluation_time, next_send_at
        )
        if not advanced:
            logger.debug(
                "last_sent_not_advanced",
                extra={
                    "schedule.id": schedule.id,
                    "schedule.evaluation_time": evaluation_time.isoformat(),
                },
            )

        if schedule.cadence_kind is not Cadence.ONCE:
            return
        if result.processed or await self._ledger.has_sent(schedule.id):
            await self._store.transition(
                schedule.id,
                ScheduleStatus.ACTIVE,
                ScheduleStatus.COMPLETED,
                is_active=False,
                next_send_at=None,
            )
        else:
            logger.warning(
                "once_schedule_not_completed",
                extra={"schedule.id": schedule.id, "delivery.total": result.total},
            )
