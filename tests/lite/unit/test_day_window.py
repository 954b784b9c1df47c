"""Tests for day window calculation, including DST transition days."""

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from nextmeeting_lite.domain.day_window import compute_day_window, local_midnight_utc
from nextmeeting_lite.lite_exceptions import InvalidTimezoneError

pytestmark = pytest.mark.unit


class TestComputeDayWindow:
    def test_compute_day_window_when_winter_nicosia_then_plus_two_bounds(self):
        window = compute_day_window(datetime(2026, 2, 9, 10, 20, tzinfo=UTC), "Europe/Nicosia")

        assert window.start == datetime(2026, 2, 8, 22, 0, tzinfo=UTC)
        assert window.end == datetime(2026, 2, 9, 22, 0, tzinfo=UTC)
        assert window.length == timedelta(hours=24)
        assert window.zone_name == "Europe/Nicosia"

    def test_compute_day_window_when_utc_then_calendar_day(self):
        window = compute_day_window(datetime(2026, 2, 9, 23, 59, tzinfo=UTC), "UTC")

        assert window.start == datetime(2026, 2, 9, tzinfo=UTC)
        assert window.end == datetime(2026, 2, 10, tzinfo=UTC)

    def test_compute_day_window_uses_zone_local_date_of_now(self):
        """22:30Z on the 8th is already the 9th in Nicosia."""
        window = compute_day_window(datetime(2026, 2, 8, 22, 30, tzinfo=UTC), "Europe/Nicosia")

        assert window.start == datetime(2026, 2, 8, 22, 0, tzinfo=UTC)

    def test_compute_day_window_when_spring_forward_then_23_hours(self):
        window = compute_day_window(datetime(2026, 3, 29, 12, 0, tzinfo=UTC), "Europe/Nicosia")

        assert window.start == datetime(2026, 3, 28, 22, 0, tzinfo=UTC)
        assert window.end == datetime(2026, 3, 29, 21, 0, tzinfo=UTC)
        assert window.length == timedelta(hours=23)

    def test_compute_day_window_when_fall_back_then_25_hours(self):
        window = compute_day_window(datetime(2026, 10, 25, 12, 0, tzinfo=UTC), "Europe/Nicosia")

        assert window.start == datetime(2026, 10, 24, 21, 0, tzinfo=UTC)
        assert window.end == datetime(2026, 10, 25, 22, 0, tzinfo=UTC)
        assert window.length == timedelta(hours=25)

    def test_compute_day_window_when_negative_offset_dst_day_then_23_hours(self):
        window = compute_day_window(datetime(2026, 3, 8, 15, 0, tzinfo=UTC), "America/New_York")

        assert window.start == datetime(2026, 3, 8, 5, 0, tzinfo=UTC)
        assert window.end == datetime(2026, 3, 9, 4, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        "now, zone_name, start, end",
        [
            # 00:00 -> 01:00 on the last Sunday of March
            (
                datetime(2026, 3, 29, 15, 0, tzinfo=UTC),
                "Asia/Beirut",
                datetime(2026, 3, 28, 22, 0, tzinfo=UTC),
                datetime(2026, 3, 29, 21, 0, tzinfo=UTC),
            ),
            # 24:00 -> 01:00 on the first Saturday of September
            (
                datetime(2026, 9, 6, 15, 0, tzinfo=UTC),
                "America/Santiago",
                datetime(2026, 9, 6, 4, 0, tzinfo=UTC),
                datetime(2026, 9, 7, 3, 0, tzinfo=UTC),
            ),
        ],
    )
    def test_compute_day_window_when_midnight_skipped_then_starts_at_transition(
        self, now, zone_name, start, end
    ):
        window = compute_day_window(now, zone_name)

        local_start = window.start.astimezone(ZoneInfo(zone_name))
        assert window.start == start
        assert window.end == end
        assert window.length == timedelta(hours=23)
        assert local_start.date() == now.date()
        assert (local_start.hour, local_start.minute) == (1, 0)

    def test_compute_day_window_when_day_before_midnight_gap_then_full_day(self):
        window = compute_day_window(datetime(2026, 3, 28, 12, 0, tzinfo=UTC), "Asia/Beirut")

        assert window.start == datetime(2026, 3, 27, 22, 0, tzinfo=UTC)
        assert window.end == datetime(2026, 3, 28, 22, 0, tzinfo=UTC)
        assert window.length == timedelta(hours=24)

    def test_compute_day_window_when_invalid_zone_then_raises(self):
        with pytest.raises(InvalidTimezoneError):
            compute_day_window(datetime(2026, 2, 9, tzinfo=UTC), "Not/AZone")

    def test_zone_property_loads_zoneinfo(self):
        window = compute_day_window(datetime(2026, 2, 9, tzinfo=UTC), "Europe/Nicosia")

        assert window.zone == ZoneInfo("Europe/Nicosia")


class TestLocalMidnightUtc:
    def test_local_midnight_reads_back_as_midnight(self):
        zone = ZoneInfo("Australia/Sydney")

        instant = local_midnight_utc(date(2026, 4, 5), zone)

        local = instant.astimezone(zone)
        assert (local.hour, local.minute) == (0, 0)
        assert local.date() == date(2026, 4, 5)
