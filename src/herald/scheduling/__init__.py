"""Scheduling core: cadences, due windows, timezone conversion and lifecycle.

Stateful components live in submodules and are imported from there:
`herald.scheduling.store`, `herald.scheduling.service`,
`herald.scheduling.processor` and `herald.scheduling.sweep`.
"""

from herald.scheduling.cadence import Cadence
from herald.scheduling.timezone import from_utc_cron, to_utc_cron
from herald.scheduling.types import (
    DeliveryRecord,
    DeliveryStatus,
    ScheduleDefinition,
    ScheduleStatus,
    TargetType,
    TriggerPayload,
)
from herald.scheduling.window import delivery_window, is_due, schedule_is_due

__all__ = [
    "Cadence",
    "DeliveryRecord",
    "DeliveryStatus",
    "ScheduleDefinition",
    "ScheduleStatus",
    "TargetType",
    "TriggerPayload",
    "delivery_window",
    "from_utc_cron",
    "is_due",
    "schedule_is_due",
    "to_utc_cron",
]
