"""Cadence: the closed set of recurrence rules a schedule can use."""

from datetime import timedelta
from enum import Enum


class Cadence(Enum):
    """How often a schedule fires.

    Every member has exactly one evaluation rule in
    `herald.scheduling.window.is_due`; adding a member without a rule is a
    type error there.
    """

    ONCE = "once"
    FIVE_MINUTES = "5min"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: "str | Cadence | None") -> "Cadence | None":
        """Parse a raw cadence value, returning None when it is unknown."""
        if isinstance(value, Cadence):
            return value
        if value is None:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def is_recurring(self) -> bool:
        return self is not Cadence.ONCE

    @property
    def window(self) -> timedelta | None:
        """Minimum gap between two firings, None for one-shot schedules.

        Monthly is a fixed 30 days, not a calendar month.
        """
        return _WINDOWS.get(self)


_WINDOWS: dict[Cadence, timedelta] = {
    Cadence.FIVE_MINUTES: timedelta(minutes=5),
    Cadence.DAILY: timedelta(hours=24),
    Cadence.WEEKLY: timedelta(days=7),
    Cadence.MONTHLY: timedelta(days=30),
}
