"""Occurrence rules shared by expansion and orphan handling.

Holds the cancellation test, the window overlap test, the end-time rule and
field coalescing, plus the surfacing of overrides whose master is missing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Optional

from nextmeeting_lite.calendar.lite_models import LiteEventComponent, LiteOccurrence
from nextmeeting_lite.domain.day_window import DayWindow

if TYPE_CHECKING:
    from nextmeeting_lite.calendar.lite_override_resolver import ResolvedComponents

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "(No title)"


@dataclass
class OccurrenceRules:
    """Settings consumed when turning instants into occurrences.

    Consolidates the expansion-related settings with explicit defaults.
    """

    default_duration: timedelta = timedelta(minutes=60)
    max_event_duration: timedelta = timedelta(days=7)
    max_rrule_iterations: int = 50000
    cancelled_prefixes: tuple[str, ...] = ("Canceled:", "Cancelled:")

    @classmethod
    def from_settings(cls, settings: Any) -> OccurrenceRules:
        """Extract occurrence rules from a settings object.

        Args:
            settings: LiteSettings or any object with the same attribute names

        Returns:
            OccurrenceRules with values from settings or defaults
        """
        return cls(
            default_duration=timedelta(minutes=getattr(settings, "default_duration_minutes", 60)),
            max_event_duration=timedelta(
                hours=getattr(settings, "max_event_duration_hours", 24 * 7)
            ),
            max_rrule_iterations=getattr(settings, "max_rrule_iterations", 50000),
            cancelled_prefixes=tuple(
                getattr(settings, "cancelled_prefixes", ("Canceled:", "Cancelled:"))
            ),
        )


def is_cancelled(status: Optional[str], title: str, prefixes: tuple[str, ...]) -> bool:
    """Whether an occurrence is cancelled by STATUS or by a title prefix."""
    if (status or "").upper() == "CANCELLED":
        return True
    return any(title.startswith(prefix) for prefix in prefixes)


def overlaps_window(start: datetime, end: datetime, window: DayWindow) -> bool:
    """Half-open overlap test of [start, end) against the window."""
    return start < window.end and end > window.start


def explicit_end_is_valid(
    start: datetime, end: Optional[datetime], max_duration: timedelta
) -> bool:
    """An explicit end is usable if it is after start and less than max_duration away."""
    return end is not None and start < end and end - start < max_duration


def coalesce_field(
    override: Optional[LiteEventComponent], master: Optional[LiteEventComponent], field: str
) -> Optional[str]:
    """Override's value for field if set, else the master's."""
    if override is not None:
        value = getattr(override, field)
        if value is not None:
            return value
    if master is not None:
        return getattr(master, field)
    return None


def build_occurrence(
    master: LiteEventComponent,
    override: Optional[LiteEventComponent],
    instant: datetime,
    duration: timedelta,
    window: DayWindow,
    rules: OccurrenceRules,
) -> Optional[LiteOccurrence]:
    """Apply override fields and the end rule to one scheduled instant.

    The explicit end is the override's when an override applies, else the
    master's own end, which only belongs to the instance at the master's
    start. Without a valid explicit end, duration is added to this
    occurrence's start.

    Returns:
        The occurrence, or None when it is cancelled or outside the window
    """
    if override is not None and override.is_cancelled_status:
        logger.debug("Instance %s of %s cancelled by override", instant, master.uid)
        return None

    start = instant
    explicit_end = None
    if override is not None:
        if override.start is not None:
            start = override.start.astimezone(UTC)
        explicit_end = override.end
    elif master.start is not None and start == master.start:
        explicit_end = master.end

    if explicit_end is not None:
        explicit_end = explicit_end.astimezone(UTC)
    if explicit_end_is_valid(start, explicit_end, rules.max_event_duration):
        end = explicit_end
    else:
        end = start + duration

    title = coalesce_field(override, master, "summary") or DEFAULT_TITLE
    status = coalesce_field(override, master, "status")

    if not overlaps_window(start, end, window):
        return None
    if is_cancelled(status, title, rules.cancelled_prefixes):
        logger.debug("Skipping cancelled occurrence %s %r", master.uid, title)
        return None

    return LiteOccurrence(
        uid=master.uid or "",
        title=title,
        location=coalesce_field(override, master, "location"),
        organizer=coalesce_field(override, master, "organizer"),
        start=start,
        end=end,
        status=status,
    )


def orphan_occurrence(
    override: LiteEventComponent, window: DayWindow, rules: OccurrenceRules
) -> Optional[LiteOccurrence]:
    """Turn one orphaned override into an occurrence if it belongs in the window."""
    title = override.summary or DEFAULT_TITLE

    if is_cancelled(override.status, title, rules.cancelled_prefixes):
        logger.debug("Skipping cancelled orphaned override %s", override.uid)
        return None
    if override.is_all_day:
        logger.debug("Skipping all-day orphaned override %s", override.uid)
        return None
    if override.start is None:
        logger.warning("Orphaned override %s has no start; skipping", override.uid)
        return None

    start = override.start.astimezone(UTC)
    end = override.end.astimezone(UTC) if override.end is not None else None
    if not explicit_end_is_valid(start, end, rules.max_event_duration):
        end = start + rules.default_duration

    if not overlaps_window(start, end, window):
        return None

    return LiteOccurrence(
        uid=override.uid or "",
        title=title,
        location=override.location,
        organizer=override.organizer,
        start=start,
        end=end,
        status=override.status,
    )


def collect_orphaned_occurrences(
    resolved: ResolvedComponents, window: DayWindow, settings: Any = None
) -> list[LiteOccurrence]:
    """Surface overrides whose master is absent.

    Evaluated against window boundaries only. Each orphaned override is
    emitted at most once.

    Args:
        resolved: Output of resolve_overrides
        window: Day window in UTC
        settings: LiteSettings-like object; defaults apply when None

    Returns:
        Orphan occurrences overlapping the window, in recurrence-id order per uid
    """
    rules = OccurrenceRules.from_settings(settings)
    occurrences: list[LiteOccurrence] = []

    for uid in sorted(resolved.orphaned_uids):
        for recurrence_id in sorted(resolved.overrides_by_uid[uid]):
            occurrence = orphan_occurrence(resolved.overrides_by_uid[uid][recurrence_id], window, rules)
            if occurrence is not None:
                occurrences.append(occurrence)

    if occurrences:
        logger.info("Surfaced %d orphaned override(s) in window", len(occurrences))
    return occurrences
