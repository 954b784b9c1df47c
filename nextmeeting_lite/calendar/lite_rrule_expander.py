"""Occurrence expansion for master events within a day window.

Recurrence instants come from dateutil's rruleset, iterated lazily in the
master's own zone so wall-clock times survive DST changes. Exceptions,
overrides, the end-time rule and cancellation are applied per instant.
"""

import logging
import re
from collections.abc import Iterator, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any, Optional

from dateutil.rrule import rruleset, rrulestr

from nextmeeting_lite.calendar.lite_models import LiteEventComponent, LiteOccurrence
from nextmeeting_lite.domain.day_window import DayWindow
from nextmeeting_lite.domain.occurrence_filter import (
    OccurrenceRules,
    build_occurrence,
)
from nextmeeting_lite.lite_exceptions import MissingFieldError, RecurrenceExpansionError

logger = logging.getLogger(__name__)

_UNTIL_RE = re.compile(r"UNTIL=([0-9]{8})(T[0-9]{6})?(Z)?", re.IGNORECASE)


def normalize_until(rrule: str, dtstart: datetime) -> str:
    """Rewrite a floating or date-only UNTIL to UTC.

    dateutil refuses a non-UTC UNTIL when DTSTART is zone-aware. Floating
    values are read in DTSTART's zone; a date-only UNTIL covers that whole
    local day.

    Examples:
        >>> from zoneinfo import ZoneInfo
        >>> normalize_until("FREQ=DAILY;UNTIL=20260210T090000", datetime(2026, 2, 1, 9, tzinfo=ZoneInfo("Europe/Nicosia")))
        'FREQ=DAILY;UNTIL=20260210T070000Z'
    """
    match = _UNTIL_RE.search(rrule)
    if match is None or match.group(3):
        return rrule

    date_part, time_part = match.group(1), match.group(2)
    if time_part:
        local = datetime.strptime(date_part + time_part, "%Y%m%dT%H%M%S")
    else:
        local = datetime.strptime(date_part, "%Y%m%d").replace(hour=23, minute=59, second=59)
    until_utc = local.replace(tzinfo=dtstart.tzinfo).astimezone(UTC)
    return f"{rrule[: match.start()]}UNTIL={until_utc:%Y%m%dT%H%M%SZ}{rrule[match.end():]}"


class OccurrenceExpander:
    """Expand one master event into the occurrences overlapping a window."""

    def __init__(self, settings: Any = None):
        """Initialize expander.

        Args:
            settings: LiteSettings-like object; defaults apply when None
        """
        self.rules = OccurrenceRules.from_settings(settings)

    def master_duration(self, master: LiteEventComponent) -> timedelta:
        """Duration of the master's own start/end pair, or the default when unusable."""
        if master.start is None or master.end is None:
            return self.rules.default_duration

        duration = master.end - master.start
        if timedelta(0) < duration < self.rules.max_event_duration:
            return duration

        logger.warning(
            "Event %s has implausible duration %s; using default %s",
            master.uid,
            duration,
            self.rules.default_duration,
        )
        return self.rules.default_duration

    def build_rule_set(self, master: LiteEventComponent) -> rruleset:
        """Build the instant sequence for a master.

        A master without RRULE yields DTSTART plus any RDATE values.

        Raises:
            MissingFieldError: If the master has no start
            RecurrenceExpansionError: If the rule cannot be parsed
        """
        if master.start is None:
            raise MissingFieldError("DTSTART", master.uid)

        rule_set = rruleset()
        if master.rrule:
            try:
                rule_set = rrulestr(
                    normalize_until(master.rrule, master.start),
                    dtstart=master.start,
                    forceset=True,
                )
            except (ValueError, TypeError) as e:
                raise RecurrenceExpansionError(
                    f"Invalid RRULE {master.rrule!r} for event {master.uid}: {e}"
                ) from e

        # DTSTART is always the first instance, even when the rule does not match it
        rule_set.rdate(master.start)
        for rdate in master.rdates:
            rule_set.rdate(rdate)
        return rule_set

    def iter_instants(self, master: LiteEventComponent, window: DayWindow) -> Iterator[datetime]:
        """Yield UTC instants that may produce an occurrence in the window.

        Iteration stops once an instant reaches the window end or the
        iteration cap is hit. Instants too early to overlap the window even
        with the longest allowed duration are skipped.
        """
        rule_set = self.build_rule_set(master)
        skip_before = window.start - self.rules.max_event_duration

        for index, instant in enumerate(rule_set):
            if index >= self.rules.max_rrule_iterations:
                logger.warning(
                    "Recurrence for event %s hit the iteration cap (%d); truncating",
                    master.uid,
                    self.rules.max_rrule_iterations,
                )
                return
            instant_utc = instant.astimezone(UTC)
            if instant_utc >= window.end:
                return
            if instant_utc < skip_before:
                continue
            yield instant_utc

    def expand(
        self,
        master: LiteEventComponent,
        window: DayWindow,
        overrides: Optional[Mapping[datetime, LiteEventComponent]] = None,
    ) -> list[LiteOccurrence]:
        """Expand master into occurrences overlapping window.

        EXDATE is checked before the override lookup, so an excluded instant
        is dropped even when an override exists for it.

        Args:
            master: Master component (no recurrence id)
            window: Day window in UTC
            overrides: This uid's overrides keyed by UTC recurrence instant

        Returns:
            Occurrences in instant order, followed by unmatched overrides
        """
        matched: set[datetime] = set()
        occurrences = self.expand_instances(master, window, overrides, matched)
        occurrences.extend(self.expand_unmatched(master, window, overrides, matched))
        return occurrences

    def expand_instances(
        self,
        master: LiteEventComponent,
        window: DayWindow,
        overrides: Optional[Mapping[datetime, LiteEventComponent]] = None,
        matched: Optional[set[datetime]] = None,
    ) -> list[LiteOccurrence]:
        """Occurrences for the master's scheduled instants only.

        Recurrence ids of the overrides applied to an instant are added to
        matched, which callers may share between masters with the same uid.
        """
        overrides = overrides or {}
        matched = matched if matched is not None else set()

        if master.is_all_day:
            logger.debug("Skipping all-day event %s", master.uid)
            return []
        duration = self.master_duration(master)
        exdates = frozenset(master.exdates)
        occurrences: list[LiteOccurrence] = []

        try:
            for instant in self.iter_instants(master, window):
                if instant in exdates:
                    logger.debug("Instance %s of %s excluded by EXDATE", instant, master.uid)
                    continue

                override = overrides.get(instant)
                if override is not None:
                    matched.add(instant)

                occurrence = build_occurrence(master, override, instant, duration, window, self.rules)
                if occurrence is not None:
                    occurrences.append(occurrence)
        except (MissingFieldError, RecurrenceExpansionError) as e:
            logger.warning("%s; event skipped", e)
            return []

        return occurrences

    def expand_unmatched(
        self,
        master: LiteEventComponent,
        window: DayWindow,
        overrides: Optional[Mapping[datetime, LiteEventComponent]],
        matched: set[datetime],
    ) -> list[LiteOccurrence]:
        """Occurrences for overrides whose recurrence id no instant claimed.

        Includes overrides of instances older than the fast-skip lookback
        that were moved into the window.
        """
        if not overrides or master.is_all_day:
            return []
        try:
            self.build_rule_set(master)
        except (MissingFieldError, RecurrenceExpansionError):
            # Already reported by expand_instances; the whole master is skipped
            return []
        duration = self.master_duration(master)
        exdates = frozenset(master.exdates)
        occurrences: list[LiteOccurrence] = []

        for recurrence_id, override in overrides.items():
            if recurrence_id in matched:
                continue
            if recurrence_id in exdates:
                logger.debug(
                    "Unmatched override %s of %s excluded by EXDATE", recurrence_id, master.uid
                )
                continue
            occurrence = build_occurrence(master, override, recurrence_id, duration, window, self.rules)
            if occurrence is not None:
                logger.debug("Appending unmatched override %s of %s", recurrence_id, master.uid)
                occurrences.append(occurrence)

        return occurrences
