"""Schedule types.

Public types:
- ScheduleStatus / TargetType / DeliveryStatus: persisted enum values
- ScheduleDefinition: domain view of a scheduled_messages row
- DeliveryRecord: domain view of a message_deliveries row
- TriggerPayload: body the trigger service posts back to us
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from herald.scheduling.cadence import Cadence


class ScheduleStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED)


class TargetType(StrEnum):
    ALL = "all"
    SPECIFIC = "specific"


class DeliveryStatus(StrEnum):
    SENT = "sent"
    FAILED = "failed"
    PENDING = "pending"


# Allowed lifecycle transitions: current -> reachable targets
TRANSITIONS: dict[ScheduleStatus, frozenset[ScheduleStatus]] = {
    ScheduleStatus.ACTIVE: frozenset(
        {ScheduleStatus.PAUSED, ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED}
    ),
    ScheduleStatus.PAUSED: frozenset({ScheduleStatus.ACTIVE, ScheduleStatus.CANCELLED}),
    ScheduleStatus.COMPLETED: frozenset(),
    ScheduleStatus.CANCELLED: frozenset(),
}


def can_transition(current: ScheduleStatus, target: ScheduleStatus) -> bool:
    return target in TRANSITIONS[current]


@dataclass
class ScheduleDefinition:
    """A schedule as the scheduling core sees it.

    `cadence` is kept as the raw stored string; use `cadence_kind` for the
    parsed value (None when the stored value is not a known cadence).
    """

    id: str
    owner_id: str
    content: str
    cadence: str
    start_date: date
    start_time: str
    timezone: str
    utc_offset_minutes: int
    starts_at: datetime
    target_type: TargetType
    status: ScheduleStatus
    is_active: bool
    title: str = ""
    target_ids: list[str] = field(default_factory=list)
    cron_expression: str | None = None
    end_date: date | None = None
    frequency_config: dict[str, Any] | None = None
    last_sent_at: datetime | None = None
    next_send_at: datetime | None = None
    trigger_handle: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def cadence_kind(self) -> Cadence | None:
        return Cadence.parse(self.cadence)

    @property
    def is_recurring(self) -> bool:
        kind = self.cadence_kind
        return kind is not None and kind.is_recurring

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape used by the HTTP API."""
        return {
            "id": self.id,
            "ownerId": self.owner_id,
            "title": self.title,
            "content": self.content,
            "cadence": self.cadence,
            "startDate": self.start_date.isoformat(),
            "startTime": self.start_time,
            "timezone": self.timezone,
            "utcOffsetMinutes": self.utc_offset_minutes,
            "cronExpression": self.cron_expression,
            "startsAt": self.starts_at.isoformat(),
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "frequencyConfig": self.frequency_config,
            "targetType": self.target_type.value,
            "targetIds": list(self.target_ids),
            "status": self.status.value,
            "isActive": self.is_active,
            "lastSentAt": self.last_sent_at.isoformat() if self.last_sent_at else None,
            "nextSendAt": self.next_send_at.isoformat() if self.next_send_at else None,
            "triggerHandle": self.trigger_handle,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class DeliveryRecord:
    """One ledger row."""

    id: str
    schedule_id: str
    recipient_id: str
    window_id: str
    sent_at: datetime
    status: DeliveryStatus
    error: str | None = None
    transport_message_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "scheduleId": self.schedule_id,
            "recipientId": self.recipient_id,
            "windowId": self.window_id,
            "sentAt": self.sent_at.isoformat(),
            "status": self.status.value,
            "error": self.error,
            "transportMessageId": self.transport_message_id,
        }


@dataclass(frozen=True)
class TriggerPayload:
    """Body registered with the trigger service and posted back on firing.

    Only identifies the schedule; status is always re-read from the store.
    """

    schedule_id: str
    owner_id: str
    is_first_firing: bool = False
    cron_expression: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "scheduleId": self.schedule_id,
            "ownerId": self.owner_id,
        }
        if self.is_first_firing:
            data["isFirstFiring"] = True
        if self.cron_expression:
            data["cronExpression"] = self.cron_expression
        return data
