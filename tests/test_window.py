"""Tests for due-window evaluation."""

from datetime import UTC, date, datetime, timedelta

import pytest

from herald.scheduling.cadence import Cadence
from herald.scheduling.types import ScheduleStatus
from herald.scheduling.window import (
    delivery_window,
    end_instant,
    evaluation_slot,
    firing_slot,
    is_due,
    is_expired,
    schedule_is_due,
)
from tests.conftest import make_schedule

T = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class TestIsDue:
    """The pure cadence rule, measured from last_sent_at."""

    @pytest.mark.parametrize("cadence", ["5min", "daily", "weekly", "monthly"])
    def test_never_sent_is_due(self, cadence):
        assert is_due(cadence, None, T)

    @pytest.mark.parametrize(
        ("cadence", "window"),
        [
            ("5min", timedelta(minutes=5)),
            ("daily", timedelta(hours=24)),
            ("weekly", timedelta(days=7)),
            ("monthly", timedelta(days=30)),
        ],
    )
    def test_window_boundary_is_inclusive(self, cadence, window):
        assert is_due(cadence, T, T + window)
        assert not is_due(cadence, T, T + window - timedelta(microseconds=1))

    def test_clock_behind_last_send_is_not_due(self):
        assert not is_due("daily", T, T - timedelta(seconds=1))

    def test_unknown_cadence_is_never_due(self):
        assert not is_due("hourly", None, T)
        assert not is_due(None, None, T)

    def test_accepts_enum_member(self):
        assert is_due(Cadence.DAILY, T, T + timedelta(days=1))

    def test_once_is_due_while_active(self):
        assert is_due("once", None, T)

    def test_once_not_due_after_completion(self):
        assert not is_due("once", None, T, ScheduleStatus.COMPLETED)

    def test_once_ignores_elapsed_time(self):
        assert is_due("once", T - timedelta(days=400), T)


class TestDeliveryWindow:
    def test_once_window_is_per_attempt(self):
        assert delivery_window("once", None) == "once:initial"
        assert delivery_window("once", T) == f"once:{T.isoformat()}"

    def test_first_firing(self):
        assert delivery_window("daily", None) == "daily:initial"

    def test_anchored_on_last_send(self):
        assert delivery_window("weekly", T) == f"weekly:{T.isoformat()}"

    def test_next_window_differs(self):
        assert delivery_window("daily", T) != delivery_window(
            "daily", T + timedelta(days=1)
        )

    def test_unknown_cadence(self):
        with pytest.raises(ValueError):
            delivery_window("hourly", None)


class TestEvaluationSlot:
    def test_firing_slot_truncates_to_minute(self):
        assert firing_slot(T.replace(second=41, microsecond=12)) == T

    def test_late_trigger_snaps_to_cron_time(self):
        schedule = make_schedule(last_sent_at=T)
        now = T + timedelta(days=1, seconds=37)
        assert evaluation_slot(schedule, now) == T + timedelta(days=1)

    def test_sweep_hours_later_snaps_to_cron_time(self):
        schedule = make_schedule(last_sent_at=T)
        now = T + timedelta(days=1, hours=2, minutes=42)
        assert evaluation_slot(schedule, now) == T + timedelta(days=1)

    def test_not_due_occurrence_falls_back_to_minute(self):
        schedule = make_schedule(last_sent_at=T)
        now = T + timedelta(hours=2, minutes=42, seconds=5)
        assert evaluation_slot(schedule, now) == T + timedelta(hours=2, minutes=42)

    def test_before_first_occurrence_uses_minute(self):
        schedule = make_schedule(starts_at=T)
        now = T - timedelta(minutes=3, seconds=10)
        assert evaluation_slot(schedule, now) == T - timedelta(minutes=3)

    def test_once_uses_minute(self):
        schedule = make_schedule(cadence="once", cron_expression=None)
        now = T + timedelta(seconds=12)
        assert evaluation_slot(schedule, now) == T


class TestScheduleIsDue:
    def test_due_after_start(self):
        schedule = make_schedule(starts_at=T)
        assert schedule_is_due(schedule, T)

    def test_not_due_before_start(self):
        schedule = make_schedule(starts_at=T)
        assert not schedule_is_due(schedule, T - timedelta(minutes=1))

    def test_paused_is_not_due(self):
        schedule = make_schedule(status=ScheduleStatus.PAUSED)
        assert not schedule_is_due(schedule, T)

    def test_inactive_flag_is_not_due(self):
        schedule = make_schedule(is_active=False)
        assert not schedule_is_due(schedule, T)

    def test_cadence_rule_applies_at_slot(self):
        schedule = make_schedule(last_sent_at=T)
        now = T + timedelta(days=1, seconds=30)
        assert not schedule_is_due(schedule, now, T + timedelta(hours=23))
        assert schedule_is_due(schedule, now, T + timedelta(days=1))

    def test_past_end_date_is_not_due(self):
        schedule = make_schedule(end_date=date(2026, 3, 1))
        assert not schedule_is_due(schedule, T)


class TestExpiry:
    def test_no_end_date(self):
        schedule = make_schedule()
        assert end_instant(schedule) is None
        assert not is_expired(schedule, T + timedelta(days=3650))

    def test_end_date_is_inclusive(self):
        schedule = make_schedule(end_date=date(2026, 3, 5))
        assert end_instant(schedule) == datetime(2026, 3, 6, tzinfo=UTC)
        assert not is_expired(schedule, datetime(2026, 3, 5, 23, 59, tzinfo=UTC))
        assert is_expired(schedule, datetime(2026, 3, 6, tzinfo=UTC))

    def test_end_date_in_schedule_zone(self):
        schedule = make_schedule(
            end_date=date(2026, 3, 5), timezone="America/New_York"
        )
        # Midnight after the 5th in New York is 05:00 UTC on the 6th
        assert not is_expired(schedule, datetime(2026, 3, 6, 4, 59, tzinfo=UTC))
        assert is_expired(schedule, datetime(2026, 3, 6, 5, 0, tzinfo=UTC))
