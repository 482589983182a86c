"""Wall-clock to UTC conversion for schedule crons.

Coaches enter a local start time ("09:00") and a timezone. The trigger
service only understands UTC crons, so the local time is shifted by the
zone's offset (minutes east of UTC; UTC-5 is -300) with modulo-24h
rollover. When the shift crosses midnight, weekly and monthly day fields
move with it.

The local time, timezone and resolved offset are stored next to the cron,
so `from_utc_cron` can always recover what the coach entered.
"""

import re
from datetime import UTC, date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from herald.scheduling.cadence import Cadence

MINUTES_PER_DAY = 24 * 60
FIVE_MINUTE_CRON = "*/5 * * * *"

_LOCAL_TIME = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::[0-5]\d)?$")
_FIXED_OFFSET = re.compile(r"^(?:UTC|GMT)?\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.I)


def parse_local_time(value: str) -> tuple[int, int]:
    """Parse "HH:MM" (seconds tolerated and ignored) into (hour, minute).

    Raises:
        ValueError: If the value is not a valid 24h wall-clock time.
    """
    match = _LOCAL_TIME.match(value.strip())
    if not match:
        raise ValueError(f"Invalid local time {value!r}, expected HH:MM")
    return int(match.group(1)), int(match.group(2))


def shift_to_utc(local_time: str, offset_minutes: int) -> tuple[int, int, int]:
    """Shift a local wall-clock time to UTC.

    Returns:
        (hour, minute, day_shift) where day_shift is -1, 0 or +1 relative to
        the local calendar day.
    """
    hour, minute = parse_local_time(local_time)
    total = hour * 60 + minute - offset_minutes
    day_shift, utc_minutes = divmod(total, MINUTES_PER_DAY)
    return utc_minutes // 60, utc_minutes % 60, day_shift


def to_utc_cron(
    local_time: str,
    offset_minutes: int,
    cadence: Cadence | str = Cadence.DAILY,
    *,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
) -> str:
    """Build the 5-field UTC cron for a local start time.

    Args:
        local_time: "HH:MM" in the coach's zone.
        offset_minutes: Zone offset east of UTC, in minutes.
        cadence: Schedule cadence; `once` has no cron.
        day_of_week: 0-6 (Sunday-Saturday) in local terms, weekly only.
        day_of_month: 1-28 in local terms, monthly only; 1-27 when the UTC
            time falls on the next calendar day.

    Examples:
        >>> to_utc_cron("09:00", -300)
        '00 14 * * *'
        >>> to_utc_cron("23:30", 120)
        '30 21 * * *'
    """
    kind = Cadence.parse(cadence)
    if kind is None:
        raise ValueError(f"Unknown cadence: {cadence!r}")
    if kind is Cadence.ONCE:
        raise ValueError("One-shot schedules have no cron expression")
    if kind is Cadence.FIVE_MINUTES:
        return FIVE_MINUTE_CRON

    hour, minute, day_shift = shift_to_utc(local_time, offset_minutes)
    prefix = f"{minute:02d} {hour:02d}"

    if kind is Cadence.WEEKLY:
        local_dow = 1 if day_of_week is None else day_of_week
        if not 0 <= local_dow <= 6:
            raise ValueError(f"day_of_week must be 0-6, got {local_dow}")
        return f"{prefix} * * {(local_dow + day_shift) % 7}"

    if kind is Cadence.MONTHLY:
        local_dom = 1 if day_of_month is None else day_of_month
        if not 1 <= local_dom <= 28:
            raise ValueError(f"day_of_month must be 1-28, got {local_dom}")
        utc_dom = local_dom + day_shift
        if utc_dom > 28:
            # A 29th would be skipped in non-leap Februaries
            raise ValueError(
                f"day_of_month {local_dom} at {local_time} falls on the {utc_dom}th"
                " in UTC; pick a day between 1 and 27"
            )
        # The 1st shifted back a day lands on the previous month's last day
        dom_field = "L" if utc_dom < 1 else str(utc_dom)
        return f"{prefix} {dom_field} * *"

    return f"{prefix} * * *"


def from_utc_cron(cron_expression: str, offset_minutes: int) -> str:
    """Recover the local "HH:MM" a UTC cron was derived from."""
    fields = cron_expression.split()
    if len(fields) != 5:
        raise ValueError(f"Expected a 5-field cron, got {cron_expression!r}")
    try:
        minute, hour = int(fields[0]), int(fields[1])
    except ValueError as e:
        raise ValueError(
            f"Cron {cron_expression!r} does not pin a single time of day"
        ) from e
    local = (hour * 60 + minute + offset_minutes) % MINUTES_PER_DAY
    return f"{local // 60:02d}:{local % 60:02d}"


def resolve_tzinfo(name: str | None) -> tzinfo | None:
    """Resolve an IANA name or a fixed "+HH:MM" / "UTC-5" offset.

    Returns None when the value cannot be resolved.
    """
    if not name:
        return None
    value = name.strip()
    if value.upper() in ("UTC", "Z", "GMT"):
        return UTC

    match = _FIXED_OFFSET.match(value)
    if match:
        sign, hours, minutes = match.group(1), int(match.group(2)), match.group(3)
        delta = timedelta(hours=hours, minutes=int(minutes or 0))
        if delta > timedelta(hours=14):
            return None
        return timezone(-delta if sign == "-" else delta)

    try:
        return ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def local_start_instant(start_date: date, local_time: str, tz_name: str) -> datetime:
    """UTC instant of a local date + wall-clock time in the given zone.

    Raises:
        ValueError: If the time or timezone is invalid.
    """
    tz = resolve_tzinfo(tz_name)
    if tz is None:
        raise ValueError(f"Unknown timezone {tz_name!r}")
    hour, minute = parse_local_time(local_time)
    local = datetime.combine(start_date, time(hour, minute), tzinfo=tz)
    return local.astimezone(UTC)


def resolve_offset_minutes(tz_name: str, on_date: date, local_time: str) -> int:
    """Offset east of UTC (minutes) in effect for that local date and time."""
    tz = resolve_tzinfo(tz_name)
    if tz is None:
        raise ValueError(f"Unknown timezone {tz_name!r}")
    hour, minute = parse_local_time(local_time)
    offset = datetime.combine(on_date, time(hour, minute), tzinfo=tz).utcoffset()
    assert offset is not None
    return int(offset.total_seconds() // 60)


def next_cron_fire(cron_expression: str, after: datetime) -> datetime:
    """Next UTC fire time of a UTC cron strictly after `after`."""
    nxt = croniter(cron_expression, after.astimezone(UTC)).get_next(datetime)
    return nxt.astimezone(UTC)


def is_valid_cron(cron_expression: str) -> bool:
    return croniter.is_valid(cron_expression)


def previous_cron_fire(cron_expression: str, at: datetime) -> datetime:
    """Latest UTC fire time of a UTC cron at or before `at`."""
    start = at.astimezone(UTC) + timedelta(seconds=1)
    prev = croniter(cron_expression, start).get_prev(datetime)
    return prev.astimezone(UTC)
