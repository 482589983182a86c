"""Due-window evaluation.

`is_due` is the pure cadence rule. `schedule_is_due` layers the
schedule-level guards (status, active flag, start instant, end date) on top
and is what both the trigger path and the fallback sweep call.

Windows are half-open and measured from `last_sent_at`: a daily schedule
last sent at T is due again from T+24h inclusive. Comparisons use
wall-clock deltas, so small skew between the trigger source and this
process only shifts a firing by that skew.
"""

import logging
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING, assert_never
from zoneinfo import ZoneInfo

from herald.scheduling.cadence import Cadence
from herald.scheduling.timezone import previous_cron_fire, resolve_tzinfo
from herald.scheduling.types import ScheduleStatus

if TYPE_CHECKING:
    from herald.scheduling.types import ScheduleDefinition

logger = logging.getLogger(__name__)

def is_due(
    cadence: "Cadence | str | None",
    last_sent_at: datetime | None,
    now: datetime,
    status: ScheduleStatus = ScheduleStatus.ACTIVE,
) -> bool:
    """Decide whether a schedule with this cadence is due at `now`.

    Unknown cadence values are never due.
    """
    kind = Cadence.parse(cadence)
    if kind is None:
        logger.warning("unknown_cadence", extra={"schedule.cadence": str(cadence)})
        return False

    if last_sent_at is not None and now < last_sent_at:
        return False

    match kind:
        case Cadence.ONCE:
            return status is ScheduleStatus.ACTIVE
        case Cadence.FIVE_MINUTES | Cadence.DAILY | Cadence.WEEKLY | Cadence.MONTHLY:
            if last_sent_at is None:
                return True
            window = kind.window
            assert window is not None
            return now - last_sent_at >= window
        case _:
            assert_never(kind)


def delivery_window(cadence: "Cadence | str", last_sent_at: datetime | None) -> str:
    """Ledger window identifier for a firing that starts from this state.

    Two firings that read the same `last_sent_at` share a window and
    therefore compete for the same ledger slots. `once` schedules are
    anchored the same way: a fully failed attempt still advances
    `last_sent_at`, so the next attempt gets a fresh window.
    """
    kind = Cadence.parse(cadence)
    if kind is None:
        raise ValueError(f"Unknown cadence: {cadence!r}")
    anchor = last_sent_at.isoformat() if last_sent_at else "initial"
    return f"{kind.value}:{anchor}"


def firing_slot(now: datetime) -> datetime:
    """Truncate an evaluation time to the minute.

    Cron triggers fire on minute boundaries; recording the slot instead of
    the arrival time keeps consecutive firings exactly one window apart.
    """
    return now.replace(second=0, microsecond=0)


def evaluation_slot(schedule: "ScheduleDefinition", now: datetime) -> datetime:
    """The instant a firing at `now` is evaluated and recorded against.

    For cron-driven schedules this is the latest cron occurrence at or
    before `now`, as long as that occurrence is itself due, so sweep and
    immediate first firings stay on the coach's grid. Otherwise it is the
    minute of `now`.
    """
    minute = firing_slot(now)
    if schedule.cron_expression and schedule.is_recurring:
        scheduled = previous_cron_fire(schedule.cron_expression, minute)
        if scheduled >= schedule.starts_at and is_due(
            schedule.cadence, schedule.last_sent_at, scheduled
        ):
            return scheduled
    return minute


def end_instant(schedule: "ScheduleDefinition") -> datetime | None:
    """First instant after the schedule's end date, in the schedule's zone."""
    if schedule.end_date is None:
        return None
    tz = resolve_tzinfo(schedule.timezone) or ZoneInfo("UTC")
    return datetime.combine(schedule.end_date, time.min, tzinfo=tz) + timedelta(
        days=1
    )


def is_expired(schedule: "ScheduleDefinition", now: datetime) -> bool:
    end = end_instant(schedule)
    return end is not None and now >= end


def schedule_is_due(
    schedule: "ScheduleDefinition", now: datetime, at: datetime | None = None
) -> bool:
    """Apply schedule-level guards at `now`, then the cadence rule at `at`.

    `at` defaults to `now`; firings pass their evaluation slot.
    """
    if schedule.status is not ScheduleStatus.ACTIVE or not schedule.is_active:
        return False
    if now < schedule.starts_at:
        logger.debug(
            "schedule_not_started",
            extra={
                "schedule.id": schedule.id,
                "schedule.starts_at": schedule.starts_at.isoformat(),
            },
        )
        return False
    if is_expired(schedule, now):
        return False
    due = is_due(
        schedule.cadence, schedule.last_sent_at, at or now, schedule.status
    )
    logger.debug(
        "schedule_due_check",
        extra={
            "schedule.id": schedule.id,
            "schedule.cadence": schedule.cadence,
            "schedule.last_sent_at": (
                schedule.last_sent_at.isoformat() if schedule.last_sent_at else None
            ),
            "schedule.due": due,
        },
    )
    return due
