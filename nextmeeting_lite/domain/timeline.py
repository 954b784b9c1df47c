"""Timeline analysis over a sorted occurrence list.

Pure functions of (sorted occurrences, now); no state is kept between calls.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from nextmeeting_lite.calendar.lite_models import LiteOccurrence


@dataclass(frozen=True)
class TimelineResult:
    """What is happening now and what comes next."""

    current: Optional[LiteOccurrence] = None
    next: Optional[LiteOccurrence] = None
    next_overlapping: Optional[LiteOccurrence] = None
    next_non_overlapping: Optional[LiteOccurrence] = None

    @property
    def is_overlapping_now(self) -> bool:
        return self.current is not None


def sort_occurrences(occurrences: Sequence[LiteOccurrence]) -> list[LiteOccurrence]:
    """Stable sort by start instant."""
    return sorted(occurrences, key=lambda occ: occ.start)


def find_current(occurrences: Sequence[LiteOccurrence], now: datetime) -> Optional[LiteOccurrence]:
    """First occurrence with start <= now < end."""
    for occ in occurrences:
        if occ.start <= now < occ.end:
            return occ
    return None


def find_next_overlapping(
    occurrences: Sequence[LiteOccurrence], next_index: int
) -> Optional[LiteOccurrence]:
    """First occurrence after next_index that overlaps it."""
    nxt = occurrences[next_index]
    for occ in occurrences[next_index + 1 :]:
        # Sorted by start: nothing later can overlap
        if occ.start >= nxt.end:
            return None
        if occ.end > nxt.start:
            return occ
    return None


def find_next_non_overlapping(
    occurrences: Sequence[LiteOccurrence], next_index: int
) -> Optional[LiteOccurrence]:
    """First occurrence starting at or after the overlap cluster grown from next_index."""
    cluster_end = occurrences[next_index].end
    for occ in occurrences[next_index + 1 :]:
        if occ.start >= cluster_end:
            break
        cluster_end = max(cluster_end, occ.end)

    for occ in occurrences[next_index + 1 :]:
        if occ.start >= cluster_end:
            return occ
    return None


def analyze_timeline(occurrences: Sequence[LiteOccurrence], now: datetime) -> TimelineResult:
    """Classify a start-sorted occurrence list relative to now.

    Args:
        occurrences: Occurrences sorted ascending by start
        now: Aware instant

    Returns:
        TimelineResult
    """
    current = find_current(occurrences, now)
    # Searching from current.end keeps current from reappearing as next
    search_from = current.end if current is not None else now

    next_index = next(
        (i for i, occ in enumerate(occurrences) if occ.start >= search_from),
        None,
    )
    if next_index is None:
        return TimelineResult(current=current)

    return TimelineResult(
        current=current,
        next=occurrences[next_index],
        next_overlapping=find_next_overlapping(occurrences, next_index),
        next_non_overlapping=find_next_non_overlapping(occurrences, next_index),
    )
