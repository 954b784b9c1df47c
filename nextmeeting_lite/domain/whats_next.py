"""Whats-next pipeline: calendar text in, response model out.

Runs normalization, parsing, override resolution, expansion and orphan
surfacing, merges and sorts the occurrences, then analyzes the timeline.
Performs no I/O.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

from nextmeeting_lite.calendar.lite_models import (
    LiteEventComponent,
    LiteOccurrence,
    OccurrenceModel,
    WhatsNextResponse,
    WindowModel,
)
from nextmeeting_lite.calendar.lite_override_resolver import resolve_overrides
from nextmeeting_lite.calendar.lite_parser import LiteICSParser
from nextmeeting_lite.calendar.lite_rrule_expander import OccurrenceExpander
from nextmeeting_lite.calendar.lite_timezone_normalizer import TimezoneNormalizer
from nextmeeting_lite.core.timezone_utils import format_local_iso, format_utc_iso, load_zone
from nextmeeting_lite.domain.day_window import DayWindow, compute_day_window
from nextmeeting_lite.domain.occurrence_filter import collect_orphaned_occurrences
from nextmeeting_lite.domain.timeline import TimelineResult, analyze_timeline, sort_occurrences

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WhatsNextResult:
    """Core output before rendering."""

    now: datetime
    window: DayWindow
    timeline: TimelineResult
    occurrences: list[LiteOccurrence] = field(default_factory=list)

    @property
    def minutes_until_next(self) -> Optional[int]:
        if self.timeline.next is None:
            return None
        return minutes_between(self.now, self.timeline.next.start)


def minutes_between(earlier: datetime, later: datetime) -> int:
    """Whole minutes from earlier to later, rounded half up and floored at zero."""
    minutes = math.floor((later - earlier).total_seconds() / 60 + 0.5)
    return max(0, minutes)


def expand_calendar(ics_text: str, window: DayWindow, settings: Any) -> list[LiteOccurrence]:
    """Turn calendar text into the sorted occurrences overlapping window.

    Raises:
        CalendarParseError: If the text cannot be parsed as a calendar
    """
    normalizer = TimezoneNormalizer(getattr(settings, "pinned_timezones", None))
    normalized = normalizer.normalize(ics_text)

    components = LiteICSParser(window.zone).parse_ics_content(normalized)
    resolved = resolve_overrides(components)

    expander = OccurrenceExpander(settings)
    occurrences: list[LiteOccurrence] = []
    # A feed may repeat a master uid; its overrides are still applied once
    matched_by_uid: dict[str, set[datetime]] = {}
    first_master_by_uid: dict[str, LiteEventComponent] = {}
    for master in resolved.masters:
        uid = master.uid or ""
        first_master_by_uid.setdefault(uid, master)
        matched = matched_by_uid.setdefault(uid, set())
        occurrences.extend(
            expander.expand_instances(master, window, resolved.overrides_for(uid), matched)
        )
    for uid, master in first_master_by_uid.items():
        occurrences.extend(
            expander.expand_unmatched(master, window, resolved.overrides_for(uid), matched_by_uid[uid])
        )

    occurrences.extend(collect_orphaned_occurrences(resolved, window, settings))

    logger.debug(
        "Expanded %d master(s) into %d occurrence(s) for %s",
        len(resolved.masters),
        len(occurrences),
        window.zone_name,
    )
    return sort_occurrences(occurrences)


def compute_whats_next(
    ics_text: str,
    now: datetime,
    settings: Any,
    zone_name: Optional[str] = None,
) -> WhatsNextResult:
    """Run the full core for one invocation.

    Args:
        ics_text: Raw calendar text
        now: Aware instant
        settings: LiteSettings-like object
        zone_name: Zone overriding settings.timezone for this call

    Returns:
        WhatsNextResult

    Raises:
        InvalidTimezoneError: If the zone cannot be loaded
        CalendarParseError: If the text cannot be parsed as a calendar
    """
    window = compute_day_window(now, zone_name or settings.timezone)
    occurrences = expand_calendar(ics_text, window, settings)
    timeline = analyze_timeline(occurrences, now)
    return WhatsNextResult(now=now, window=window, timeline=timeline, occurrences=occurrences)


def _occurrence_model(occ: Optional[LiteOccurrence], zone: Any) -> Optional[OccurrenceModel]:
    if occ is None:
        return None
    return OccurrenceModel(
        uid=occ.uid,
        title=occ.title,
        location=occ.location,
        organizer=occ.organizer,
        start=format_local_iso(occ.start, zone),
        end=format_local_iso(occ.end, zone),
    )


def build_response(
    result: WhatsNextResult,
    settings: Any = None,
    generated_at: Optional[datetime] = None,
) -> WhatsNextResponse:
    """Render a WhatsNextResult in the window's zone.

    Args:
        result: Core output
        settings: Supplies small_alarm_minutes (default 15)
        generated_at: Render time; defaults to the current time

    Returns:
        WhatsNextResponse
    """
    zone = load_zone(result.window.zone_name)
    small_alarm = getattr(settings, "small_alarm_minutes", 15)
    minutes = result.minutes_until_next
    timeline = result.timeline

    return WhatsNextResponse(
        generated_at=format_utc_iso(generated_at or datetime.now(UTC)),
        window=WindowModel(
            start=format_local_iso(result.window.start, zone),
            end=format_local_iso(result.window.end, zone),
            tz=result.window.zone_name,
        ),
        now=format_local_iso(result.now, zone),
        minutes_until_next=minutes,
        minutes_until_small_alarm=max(0, minutes - small_alarm) if minutes is not None else None,
        is_overlapping_now=timeline.is_overlapping_now,
        current=_occurrence_model(timeline.current, zone),
        next=_occurrence_model(timeline.next, zone),
        next_overlapping=_occurrence_model(timeline.next_overlapping, zone),
        next_non_overlapping=_occurrence_model(timeline.next_non_overlapping, zone),
    )
