"""Tests for timeline analysis over sorted occurrences."""

from datetime import UTC, datetime

import pytest

from nextmeeting_lite.calendar.lite_models import LiteOccurrence
from nextmeeting_lite.domain.timeline import analyze_timeline, sort_occurrences

pytestmark = pytest.mark.unit


def _at(hhmm: str) -> datetime:
    hour, minute = hhmm.split(":")
    return datetime(2026, 2, 9, int(hour), int(minute), tzinfo=UTC)


def _occ(uid: str, start: str, end: str) -> LiteOccurrence:
    return LiteOccurrence(uid=uid, title=uid.upper(), start=_at(start), end=_at(end))


class TestAnalyzeTimeline:
    def test_current_next_and_non_overlapping(self):
        occurrences = [_occ("a", "10:15", "10:45"), _occ("b", "12:30", "13:30"), _occ("c", "15:00", "15:15")]

        result = analyze_timeline(occurrences, _at("10:20"))

        assert result.current.uid == "a"
        assert result.next.uid == "b"
        assert result.next_overlapping is None
        assert result.next_non_overlapping.uid == "c"
        assert result.is_overlapping_now

    def test_end_boundary_is_exclusive(self):
        result = analyze_timeline([_occ("a", "08:30", "09:00")], _at("09:00"))

        assert result.current is None
        assert not result.is_overlapping_now
        assert result.next is None

    def test_start_boundary_is_inclusive(self):
        result = analyze_timeline([_occ("a", "09:00", "09:30")], _at("09:00"))

        assert result.current.uid == "a"
        assert result.next is None

    def test_nothing_current_then_next_is_first_upcoming(self):
        occurrences = [_occ("past", "07:00", "08:00"), _occ("a", "10:00", "11:00")]

        result = analyze_timeline(occurrences, _at("09:00"))

        assert result.current is None
        assert result.next.uid == "a"
        assert result.next_overlapping is None
        assert result.next_non_overlapping is None

    def test_overlap_cluster(self):
        occurrences = [
            _occ("a", "10:00", "11:00"),
            _occ("b", "10:30", "11:30"),
            _occ("c", "11:15", "12:00"),
            _occ("d", "12:00", "12:30"),
        ]

        result = analyze_timeline(occurrences, _at("09:00"))

        assert result.next.uid == "a"
        assert result.next_overlapping.uid == "b"
        # c overlaps b, so the cluster runs until 12:00
        assert result.next_non_overlapping.uid == "d"

    def test_next_is_searched_from_current_end(self):
        """An event starting while the current one runs is not reported as next."""
        occurrences = [
            _occ("a", "10:00", "11:00"),
            _occ("b", "10:30", "11:30"),
            _occ("c", "11:00", "11:45"),
        ]

        result = analyze_timeline(occurrences, _at("10:40"))

        assert result.current.uid == "a"
        assert result.next.uid == "c"

    def test_first_of_several_current_wins(self):
        occurrences = [_occ("a", "10:00", "11:00"), _occ("b", "10:15", "10:45")]

        assert analyze_timeline(occurrences, _at("10:20")).current.uid == "a"

    def test_empty(self):
        result = analyze_timeline([], _at("10:00"))

        assert result.current is None
        assert result.next is None
        assert not result.is_overlapping_now


class TestSortOccurrences:
    def test_sort_is_stable_by_start(self):
        first = _occ("first", "10:00", "10:30")
        second = _occ("second", "10:00", "11:00")
        early = _occ("early", "09:00", "09:30")

        assert [o.uid for o in sort_occurrences([first, second, early])] == ["early", "first", "second"]
