"""Fallback sweep: re-evaluate every active schedule.

The trigger service delivers at least once, not exactly once, and can miss
a firing entirely. The sweep runs the same due-check and dispatch path for
all active schedules and relies on the delivery ledger to absorb overlap
with trigger-driven firings. It is invoked from outside (HTTP endpoint, CLI,
or a recurring trigger); nothing here keeps a timer.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from herald.db import utc_now
from herald.errors import HeraldError
from herald.scheduling.processor import FiringProcessor, FiringStatus
from herald.scheduling.store import ScheduleStore
from herald.scheduling.types import TriggerPayload

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    schedules: int = 0
    dispatched: int = 0
    processed: int = 0
    total: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schedules": self.schedules,
            "dispatched": self.dispatched,
            "processed": self.processed,
            "total": self.total,
            "errors": list(self.errors),
        }


class FallbackSweep:
    def __init__(self, store: ScheduleStore, processor: FiringProcessor) -> None:
        self._store = store
        self._processor = processor

    async def run(self, now: datetime | None = None) -> SweepResult:
        """Evaluate all active schedules once.

        Each schedule is re-read just before it is evaluated, so one paused
        or cancelled while earlier schedules were sending is left alone. A
        failing schedule is logged and reported; the sweep moves on.
        """
        now = now or utc_now()
        result = SweepResult()
        schedules = await self._store.list_active()
        result.schedules = len(schedules)

        for schedule in schedules:
            try:
                firing = await self._processor.process(
                    TriggerPayload(schedule.id, schedule.owner_id), now
                )
            except HeraldError as e:
                logger.warning(
                    "sweep_schedule_failed",
                    extra={"schedule.id": schedule.id, "error.message": str(e)},
                )
                result.errors.append({"scheduleId": schedule.id, "error": str(e)})
                continue
            except Exception as e:
                logger.exception(
                    "sweep_schedule_error", extra={"schedule.id": schedule.id}
                )
                result.errors.append({"scheduleId": schedule.id, "error": str(e)})
                continue

            if firing.status is FiringStatus.DISPATCHED:
                result.dispatched += 1
                result.processed += firing.dispatch.processed
                result.total += firing.dispatch.total
                for err in firing.dispatch.errors:
                    result.errors.append(
                        {
                            "scheduleId": schedule.id,
                            "recipientId": err.recipient_id,
                            "error": err.error,
                        }
                    )

        logger.info(
            "sweep_finished",
            extra={
                "sweep.schedules": result.schedules,
                "sweep.dispatched": result.dispatched,
                "sweep.processed": result.processed,
                "sweep.errors": len(result.errors),
            },
        )
        return result
