"""Tests for local-time to UTC cron conversion."""

from datetime import UTC, date, datetime, timedelta

import pytest

from herald.scheduling.cadence import Cadence
from herald.scheduling.timezone import (
    from_utc_cron,
    is_valid_cron,
    local_start_instant,
    next_cron_fire,
    parse_local_time,
    previous_cron_fire,
    resolve_offset_minutes,
    resolve_tzinfo,
    shift_to_utc,
    to_utc_cron,
)


class TestParseLocalTime:
    def test_hour_and_minute(self):
        assert parse_local_time("09:05") == (9, 5)

    def test_single_digit_hour(self):
        assert parse_local_time("9:05") == (9, 5)

    def test_seconds_ignored(self):
        assert parse_local_time("23:59:30") == (23, 59)

    @pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "", "9"])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_local_time(value)


class TestShiftToUtc:
    def test_same_day(self):
        assert shift_to_utc("09:00", -300) == (14, 0, 0)

    def test_rolls_forward(self):
        assert shift_to_utc("23:00", -300) == (4, 0, 1)

    def test_rolls_back(self):
        assert shift_to_utc("01:00", 120) == (23, 0, -1)

    def test_half_hour_offset(self):
        assert shift_to_utc("09:00", 330) == (3, 30, 0)


class TestToUtcCron:
    """Daily conversion plus day-field rollover for weekly and monthly."""

    def test_daily_west_of_utc(self):
        assert to_utc_cron("09:00", -300) == "00 14 * * *"

    def test_daily_east_of_utc(self):
        assert to_utc_cron("23:30", 120) == "30 21 * * *"

    def test_daily_utc(self):
        assert to_utc_cron("07:15", 0, Cadence.DAILY) == "15 07 * * *"

    def test_five_minutes_ignores_time(self):
        assert to_utc_cron("09:00", -300, "5min") == "*/5 * * * *"

    def test_once_has_no_cron(self):
        with pytest.raises(ValueError, match="no cron"):
            to_utc_cron("09:00", 0, Cadence.ONCE)

    def test_unknown_cadence(self):
        with pytest.raises(ValueError, match="Unknown cadence"):
            to_utc_cron("09:00", 0, "hourly")

    def test_weekly_same_day(self):
        assert to_utc_cron("09:00", -300, "weekly", day_of_week=3) == "00 14 * * 3"

    def test_weekly_rolls_to_next_day(self):
        # Monday 23:00 in New York is Tuesday 04:00 UTC
        assert to_utc_cron("23:00", -300, "weekly", day_of_week=1) == "00 04 * * 2"

    def test_weekly_rolls_back_across_sunday(self):
        # Sunday 01:00 at UTC+2 is Saturday 23:00 UTC
        assert to_utc_cron("01:00", 120, "weekly", day_of_week=0) == "00 23 * * 6"

    def test_weekly_defaults_to_monday(self):
        assert to_utc_cron("09:00", 0, "weekly") == "00 09 * * 1"

    def test_weekly_rejects_out_of_range_day(self):
        with pytest.raises(ValueError, match="day_of_week"):
            to_utc_cron("09:00", 0, "weekly", day_of_week=7)

    def test_monthly_same_day(self):
        assert to_utc_cron("09:00", 0, "monthly", day_of_month=15) == "00 09 15 * *"

    def test_monthly_rolls_forward(self):
        assert to_utc_cron("23:00", -300, "monthly", day_of_month=10) == "00 04 11 * *"

    def test_monthly_rolls_back(self):
        assert to_utc_cron("01:00", 120, "monthly", day_of_month=15) == "00 23 14 * *"

    def test_monthly_first_rolls_back_to_last_day(self):
        assert to_utc_cron("01:00", 120, "monthly", day_of_month=1) == "00 23 L * *"

    def test_monthly_rejects_day_after_28th(self):
        with pytest.raises(ValueError, match="day_of_month"):
            to_utc_cron("09:00", 0, "monthly", day_of_month=31)

    def test_monthly_28th_cannot_roll_forward(self):
        with pytest.raises(ValueError, match="between 1 and 27"):
            to_utc_cron("23:00", -300, "monthly", day_of_month=28)
        assert to_utc_cron("23:00", -300, "monthly", day_of_month=27) == "00 04 28 * *"
        assert to_utc_cron("09:00", -300, "monthly", day_of_month=28) == "00 14 28 * *"

    def test_generated_crons_are_valid(self):
        for cadence in ("5min", "daily", "weekly", "monthly"):
            assert is_valid_cron(to_utc_cron("23:45", -420, cadence))


class TestFromUtcCron:
    def test_recovers_local_time(self):
        assert from_utc_cron("00 14 * * *", -300) == "09:00"

    def test_recovers_across_midnight(self):
        assert from_utc_cron("30 21 * * *", 120) == "23:30"

    def test_inverse_of_to_utc_cron(self):
        for offset in (-600, -300, 0, 330, 720):
            for local in ("00:00", "09:15", "23:59"):
                assert from_utc_cron(to_utc_cron(local, offset), offset) == local

    def test_rejects_interval_cron(self):
        with pytest.raises(ValueError):
            from_utc_cron("*/5 * * * *", 0)

    def test_rejects_wrong_field_count(self):
        with pytest.raises(ValueError, match="5-field"):
            from_utc_cron("0 9 * *", 0)


class TestResolveTzinfo:
    def test_utc_aliases(self):
        for name in ("UTC", "utc", "Z", "GMT"):
            assert resolve_tzinfo(name) is UTC

    def test_fixed_offset(self):
        tz = resolve_tzinfo("+05:30")
        assert tz is not None
        assert tz.utcoffset(None) == timedelta(hours=5, minutes=30)

    def test_prefixed_offset(self):
        tz = resolve_tzinfo("UTC-5")
        assert tz is not None
        assert tz.utcoffset(None) == timedelta(hours=-5)

    def test_iana_name(self):
        tz = resolve_tzinfo("America/New_York")
        assert tz is not None
        winter = datetime(2026, 1, 15, 12, tzinfo=tz)
        assert winter.utcoffset() == timedelta(hours=-5)

    def test_offset_out_of_range(self):
        assert resolve_tzinfo("+15:00") is None

    def test_unknown_zone(self):
        assert resolve_tzinfo("Nowhere/City") is None

    def test_empty(self):
        assert resolve_tzinfo(None) is None
        assert resolve_tzinfo("") is None


class TestStartInstant:
    def test_new_york_winter(self):
        assert local_start_instant(
            date(2026, 1, 15), "09:00", "America/New_York"
        ) == datetime(2026, 1, 15, 14, 0, tzinfo=UTC)

    def test_offset_follows_daylight_saving(self):
        zone = "America/New_York"
        assert resolve_offset_minutes(zone, date(2026, 1, 15), "09:00") == -300
        assert resolve_offset_minutes(zone, date(2026, 7, 15), "09:00") == -240

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            local_start_instant(date(2026, 1, 15), "09:00", "Mars/Olympus")


class TestCronFires:
    def test_next_fire_is_strictly_after(self):
        at = datetime(2026, 1, 1, 9, 0, tzinfo=UTC)
        assert next_cron_fire("00 09 * * *", at) == datetime(
            2026, 1, 2, 9, 0, tzinfo=UTC
        )

    def test_previous_fire_includes_exact_match(self):
        at = datetime(2026, 1, 2, 9, 0, tzinfo=UTC)
        assert previous_cron_fire("00 09 * * *", at) == at

    def test_previous_fire_before_time_of_day(self):
        at = datetime(2026, 1, 2, 8, 59, tzinfo=UTC)
        assert previous_cron_fire("00 09 * * *", at) == datetime(
            2026, 1, 1, 9, 0, tzinfo=UTC
        )
