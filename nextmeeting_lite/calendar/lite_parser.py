"""ICS text parsing into LiteEventComponent lists."""

import logging
from datetime import tzinfo

from icalendar import Calendar

from nextmeeting_lite.calendar.lite_event_parser import LiteEventComponentParser
from nextmeeting_lite.calendar.lite_models import LiteEventComponent
from nextmeeting_lite.lite_exceptions import CalendarParseError

logger = logging.getLogger(__name__)


class LiteICSParser:
    """Parse calendar text with icalendar and decode every VEVENT."""

    def __init__(self, default_zone: tzinfo):
        self.event_parser = LiteEventComponentParser(default_zone)

    def parse_ics_content(self, ics_content: str) -> list[LiteEventComponent]:
        """Parse ICS content into event components.

        Events that fail to decode are logged and skipped; the rest of the
        calendar is still returned.

        Args:
            ics_content: Raw ICS text (TZIDs already normalized)

        Returns:
            Decoded components in document order

        Raises:
            CalendarParseError: If the text is empty or not a calendar
        """
        if not ics_content or not ics_content.strip():
            raise CalendarParseError("Empty ICS content")

        try:
            calendar = Calendar.from_ical(ics_content)
        except ValueError as e:
            raise CalendarParseError(f"Failed to parse ICS content: {e}") from e

        components: list[LiteEventComponent] = []
        skipped = 0
        for vevent in calendar.walk("VEVENT"):
            try:
                components.append(self.event_parser.parse_event_component(vevent))
            except (ValueError, TypeError, AttributeError) as e:
                skipped += 1
                logger.warning("Skipping undecodable event %s: %s", vevent.get("UID"), e)

        logger.debug("Parsed %d VEVENT components (%d skipped)", len(components), skipped)
        return components


def parse_ics(ics_content: str, default_zone: tzinfo) -> list[LiteEventComponent]:
    """Convenience wrapper around LiteICSParser(default_zone).parse_ics_content."""
    return LiteICSParser(default_zone).parse_ics_content(ics_content)
