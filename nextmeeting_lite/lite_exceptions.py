"""Exception hierarchy for nextmeeting_lite.

Specific exception types let the HTTP boundary map failures to status codes
and keep per-event problems separate from failures that abort a whole
invocation.
"""

from __future__ import annotations

from typing import Optional


class NextMeetingError(Exception):
    """Base exception for all nextmeeting_lite errors."""


class ConfigurationError(NextMeetingError):
    """Required configuration is missing or invalid.

    Raised when:
    - No ICS URL is configured but a fetch is requested
    - A settings value fails validation

    Should result in HTTP 500 response.
    """


class InvalidTimezoneError(NextMeetingError):
    """A zone identifier supplied by the caller cannot be resolved.

    This is a caller-input error that aborts only the current invocation.
    Should result in HTTP 400 Bad Request response.
    """

    def __init__(self, zone_name: Optional[str]):
        super().__init__(f"Invalid timezone: {zone_name!r}")
        self.zone_name = zone_name


class CalendarParseError(NextMeetingError):
    """The calendar text as a whole could not be parsed.

    Fatal to the invocation; surfaced as a single top-level error.
    """


class MissingFieldError(NextMeetingError):
    """An event lacks a field required to place it on the timeline (UID or start)."""

    def __init__(self, field_name: str, uid: Optional[str] = None):
        super().__init__(f"Event {uid or '<no-uid>'} missing {field_name}")
        self.field_name = field_name
        self.uid = uid


class RecurrenceExpansionError(NextMeetingError):
    """A recurrence rule could not be built or iterated for one master event."""


class ICSFetchError(NextMeetingError):
    """Base exception for ICS fetch errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ICSTimeoutError(ICSFetchError):
    """Timeout error during ICS fetch."""
