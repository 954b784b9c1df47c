"""Tests for occurrence rules and orphaned override surfacing."""

from datetime import UTC, datetime, timedelta

import pytest

from nextmeeting_lite.calendar.lite_models import LiteEventComponent
from nextmeeting_lite.calendar.lite_override_resolver import resolve_overrides
from nextmeeting_lite.core.config_manager import LiteSettings
from nextmeeting_lite.domain.day_window import compute_day_window
from nextmeeting_lite.domain.occurrence_filter import (
    OccurrenceRules,
    coalesce_field,
    collect_orphaned_occurrences,
    explicit_end_is_valid,
    is_cancelled,
    overlaps_window,
)

pytestmark = pytest.mark.unit

PREFIXES = ("Canceled:", "Cancelled:")
T = datetime(2026, 2, 9, 14, 0, tzinfo=UTC)


@pytest.fixture
def window():
    return compute_day_window(datetime(2026, 2, 9, 12, 0, tzinfo=UTC), "UTC")


def _orphan(recurrence_id=T, **fields) -> LiteEventComponent:
    values = {"uid": "orphan", "summary": "Moved elsewhere", "start": recurrence_id}
    values.update(fields)
    return LiteEventComponent(recurrence_id=recurrence_id, **values)


class TestRules:
    @pytest.mark.parametrize(
        ("status", "title", "expected"),
        [
            ("CANCELLED", "Sync", True),
            ("cancelled", "Sync", True),
            (None, "Canceled: Sync", True),
            (None, "Cancelled: Sync", True),
            ("CONFIRMED", "Sync", False),
            (None, "Not Canceled: Sync", False),
        ],
    )
    def test_is_cancelled(self, status, title, expected):
        assert is_cancelled(status, title, PREFIXES) is expected

    def test_overlaps_window_is_half_open(self, window):
        assert overlaps_window(window.start - timedelta(hours=1), window.start + timedelta(minutes=1), window)
        assert not overlaps_window(window.start - timedelta(hours=1), window.start, window)
        assert not overlaps_window(window.end, window.end + timedelta(hours=1), window)

    def test_explicit_end_is_valid(self):
        week = timedelta(days=7)

        assert explicit_end_is_valid(T, T + timedelta(minutes=30), week)
        assert not explicit_end_is_valid(T, None, week)
        assert not explicit_end_is_valid(T, T, week)
        assert not explicit_end_is_valid(T, T + timedelta(days=8), week)

    def test_coalesce_field_prefers_override(self):
        master = LiteEventComponent(uid="m", location="Room 1", organizer="mailto:a@test")
        override = LiteEventComponent(uid="m", location="Room 9")

        assert coalesce_field(override, master, "location") == "Room 9"
        assert coalesce_field(override, master, "organizer") == "mailto:a@test"
        assert coalesce_field(None, master, "location") == "Room 1"
        assert coalesce_field(None, None, "location") is None

    def test_rules_from_settings(self):
        settings = LiteSettings(
            timezone="UTC",
            default_duration_minutes=30,
            max_rrule_iterations=10,
            cancelled_prefixes="Off:",
        )

        rules = OccurrenceRules.from_settings(settings)

        assert rules.default_duration == timedelta(minutes=30)
        assert rules.max_rrule_iterations == 10
        assert rules.cancelled_prefixes == ("Off:",)

    def test_rules_from_none_uses_defaults(self):
        assert OccurrenceRules.from_settings(None) == OccurrenceRules()


class TestOrphanedOccurrences:
    def test_orphan_in_window_emitted_exactly_once(self, window):
        resolved = resolve_overrides([_orphan(end=T + timedelta(minutes=30))])

        occurrences = collect_orphaned_occurrences(resolved, window)

        assert len(occurrences) == 1
        assert occurrences[0].uid == "orphan"
        assert (occurrences[0].start, occurrences[0].end) == (T, T + timedelta(minutes=30))

    def test_orphan_without_end_uses_default_duration(self, window, utc_settings):
        resolved = resolve_overrides([_orphan()])

        occurrences = collect_orphaned_occurrences(resolved, window, utc_settings)

        assert occurrences[0].end == T + timedelta(hours=1)

    def test_orphan_outside_window_ignored(self, window):
        tomorrow = T + timedelta(days=1)
        resolved = resolve_overrides([_orphan(recurrence_id=tomorrow)])

        assert collect_orphaned_occurrences(resolved, window) == []

    @pytest.mark.parametrize(
        "fields",
        [
            {"status": "CANCELLED"},
            {"summary": "Cancelled: Moved elsewhere"},
            {"is_all_day": True},
            {"start": None},
        ],
    )
    def test_orphan_excluded(self, window, fields):
        resolved = resolve_overrides([_orphan(**fields)])

        assert collect_orphaned_occurrences(resolved, window) == []

    def test_override_with_master_is_not_an_orphan(self, window):
        master = LiteEventComponent(uid="orphan", summary="Series", start=T - timedelta(days=7))
        resolved = resolve_overrides([master, _orphan()])

        assert collect_orphaned_occurrences(resolved, window) == []

    def test_orphans_sorted_by_uid_then_instant(self, window):
        later = T + timedelta(hours=2)
        resolved = resolve_overrides(
            [
                _orphan(recurrence_id=later, uid="b"),
                _orphan(uid="b"),
                _orphan(uid="a", recurrence_id=later),
            ]
        )

        occurrences = collect_orphaned_occurrences(resolved, window)

        assert [(occ.uid, occ.start) for occ in occurrences] == [("a", later), ("b", T), ("b", later)]
