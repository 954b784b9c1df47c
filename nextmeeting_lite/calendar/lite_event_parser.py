"""Event component parsing for ICS calendar processing.

Decodes icalendar VEVENT components into LiteEventComponent objects with
timezone-aware datetimes.
"""

import logging
from datetime import UTC, date, datetime, timedelta, tzinfo
from typing import Any, Optional

from icalendar import Event as ICalEvent

from nextmeeting_lite.calendar.lite_models import LiteEventComponent

logger = logging.getLogger(__name__)


def to_aware_datetime(value: Any, default_zone: tzinfo) -> Optional[datetime]:
    """Convert a decoded DATE or DATE-TIME value to an aware datetime.

    Floating (naive) values and dates are placed in default_zone. A date
    becomes local midnight.
    """
    # datetime is a subclass of date; check it first
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=default_zone)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=default_zone)
    return None


class LiteEventComponentParser:
    """Parser for iCalendar VEVENT components into LiteEventComponent objects."""

    def __init__(self, default_zone: tzinfo):
        """Initialize event component parser.

        Args:
            default_zone: Zone applied to floating times and all-day dates
        """
        self.default_zone = default_zone

    def parse_event_component(self, component: ICalEvent) -> LiteEventComponent:
        """Parse a single VEVENT component.

        Args:
            component: iCalendar VEVENT component

        Returns:
            LiteEventComponent; missing UID or DTSTART are left as None for
            the caller to report
        """
        start, is_all_day = self._parse_start(component)

        return LiteEventComponent(
            uid=self._text(component.get("UID")),
            summary=self._text(component.get("SUMMARY")),
            location=self._text(component.get("LOCATION")),
            organizer=self._text(component.get("ORGANIZER")),
            status=self._parse_status(component.get("STATUS")),
            start=start,
            end=self._parse_end(component, start),
            recurrence_id=self._parse_recurrence_id(component),
            rrule=self._parse_rrule(component),
            rdates=self._collect_dates(component, "RDATE"),
            exdates=self._collect_dates(component, "EXDATE"),
            is_all_day=is_all_day,
        )

    def _text(self, prop: Any) -> Optional[str]:
        if prop is None:
            return None
        if isinstance(prop, list):
            prop = prop[0] if prop else None
            if prop is None:
                return None
        text = str(prop).strip()
        return text or None

    def _parse_status(self, status_prop: Any) -> Optional[str]:
        text = self._text(status_prop)
        return text.upper() if text else None

    def _parse_start(self, component: ICalEvent) -> tuple[Optional[datetime], bool]:
        dtstart = component.get("DTSTART")
        if dtstart is None:
            return None, False
        value = dtstart.dt
        is_all_day = isinstance(value, date) and not isinstance(value, datetime)
        return to_aware_datetime(value, self.default_zone), is_all_day

    def _parse_end(
        self, component: ICalEvent, start: Optional[datetime]
    ) -> Optional[datetime]:
        """DTEND when present, else DTSTART + DURATION, else None."""
        dtend = component.get("DTEND")
        if dtend is not None:
            return to_aware_datetime(dtend.dt, self.default_zone)

        duration = component.get("DURATION")
        if duration is not None and start is not None:
            delta = getattr(duration, "dt", None)
            if isinstance(delta, timedelta):
                return start + delta
        return None

    def _parse_recurrence_id(self, component: ICalEvent) -> Optional[datetime]:
        prop = component.get("RECURRENCE-ID")
        if prop is None:
            return None
        value = to_aware_datetime(prop.dt, self.default_zone)
        return value.astimezone(UTC) if value is not None else None

    def _parse_rrule(self, component: ICalEvent) -> Optional[str]:
        prop = component.get("RRULE")
        if prop is None:
            return None
        if isinstance(prop, list):
            if len(prop) > 1:
                logger.warning(
                    "Event %s has %d RRULE properties; using the first",
                    component.get("UID"),
                    len(prop),
                )
            prop = prop[0]
        return prop.to_ical().decode("utf-8")

    def _collect_dates(self, component: ICalEvent, name: str) -> list[datetime]:
        """Collect EXDATE/RDATE values as UTC instants.

        icalendar returns a single list property or a list of them depending
        on how many lines the event carries.
        """
        prop = component.get(name)
        if prop is None:
            return []
        props = prop if isinstance(prop, list) else [prop]

        instants: list[datetime] = []
        for item in props:
            for entry in getattr(item, "dts", []):
                value = entry.dt
                # RDATE;VALUE=PERIOD yields (start, end) or (start, duration)
                if isinstance(value, tuple):
                    value = value[0]
                aware = to_aware_datetime(value, self.default_zone)
                if aware is not None:
                    instants.append(aware.astimezone(UTC))
        return instants
