"""Timezone lookup and conversion utilities for nextmeeting_lite."""

from __future__ import annotations

import datetime
import logging
import os
from functools import lru_cache
from typing import ClassVar, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

from nextmeeting_lite.lite_exceptions import InvalidTimezoneError

logger = logging.getLogger(__name__)

# Zone used for the "today" window when nothing is configured
DEFAULT_TIMEZONE = "Europe/Nicosia"

# Environment variable that freezes "now" for testing
TEST_TIME_ENV_VAR = "NEXTMEETING_TEST_TIME"


class TimezoneTables:
    """Lookup tables for legacy zone identifiers found in ICS files."""

    # Windows timezone names to IANA identifier mapping
    # Common Windows timezones used in ICS files from Outlook/Exchange
    # https://docs.microsoft.com/en-us/windows-hardware/manufacture/desktop/default-time-zones
    WINDOWS_TZ_MAP: ClassVar[dict[str, str]] = {
        # US Timezones
        "Pacific Standard Time": "America/Los_Angeles",
        "Mountain Standard Time": "America/Denver",
        "Central Standard Time": "America/Chicago",
        "Eastern Standard Time": "America/New_York",
        "Alaskan Standard Time": "America/Anchorage",
        "Hawaiian Standard Time": "Pacific/Honolulu",
        "US Mountain Standard Time": "America/Phoenix",  # Arizona (no DST)
        "Atlantic Standard Time": "America/Halifax",
        "Newfoundland Standard Time": "America/St_Johns",
        "Canada Central Standard Time": "America/Regina",
        # Europe
        "UTC": "UTC",
        "GMT Standard Time": "Europe/London",
        "Greenwich Standard Time": "Atlantic/Reykjavik",
        "W. Europe Standard Time": "Europe/Berlin",
        "Central Europe Standard Time": "Europe/Budapest",
        "Central European Standard Time": "Europe/Warsaw",
        "Romance Standard Time": "Europe/Paris",
        "E. Europe Standard Time": "Europe/Chisinau",
        "FLE Standard Time": "Europe/Kiev",  # Finland, Latvia, Estonia, Ukraine...
        "GTB Standard Time": "Europe/Bucharest",  # Greece, Turkey, Bulgaria
        "Turkey Standard Time": "Europe/Istanbul",
        "Belarus Standard Time": "Europe/Minsk",
        "Russian Standard Time": "Europe/Moscow",
        "Kaliningrad Standard Time": "Europe/Kaliningrad",
        # Africa & Middle East
        "W. Central Africa Standard Time": "Africa/Lagos",
        "South Africa Standard Time": "Africa/Johannesburg",
        "Egypt Standard Time": "Africa/Cairo",
        "Libya Standard Time": "Africa/Tripoli",
        "Namibia Standard Time": "Africa/Windhoek",
        "Morocco Standard Time": "Africa/Casablanca",
        "Middle East Standard Time": "Asia/Beirut",
        "Israel Standard Time": "Asia/Jerusalem",
        "Jordan Standard Time": "Asia/Amman",
        "Syria Standard Time": "Asia/Damascus",
        "Arabian Standard Time": "Asia/Dubai",
        "Arabic Standard Time": "Asia/Baghdad",
        "Arab Standard Time": "Asia/Riyadh",
        "Iran Standard Time": "Asia/Tehran",
        # Asia
        "Afghanistan Standard Time": "Asia/Kabul",
        "Pakistan Standard Time": "Asia/Karachi",
        "West Asia Standard Time": "Asia/Tashkent",
        "India Standard Time": "Asia/Kolkata",
        "Sri Lanka Standard Time": "Asia/Colombo",
        "Nepal Standard Time": "Asia/Kathmandu",
        "Central Asia Standard Time": "Asia/Almaty",
        "Myanmar Standard Time": "Asia/Yangon",
        "SE Asia Standard Time": "Asia/Bangkok",
        "N. Central Asia Standard Time": "Asia/Novosibirsk",
        "China Standard Time": "Asia/Shanghai",
        "Singapore Standard Time": "Asia/Singapore",
        "Taipei Standard Time": "Asia/Taipei",
        "Tokyo Standard Time": "Asia/Tokyo",
        "Korea Standard Time": "Asia/Seoul",
        # Australia & Pacific
        "AUS Eastern Standard Time": "Australia/Sydney",
        "AUS Central Standard Time": "Australia/Darwin",
        "Cen. Australia Standard Time": "Australia/Adelaide",
        "E. Australia Standard Time": "Australia/Brisbane",
        "Tasmania Standard Time": "Australia/Hobart",
        "W. Australia Standard Time": "Australia/Perth",
        "New Zealand Standard Time": "Pacific/Auckland",
        "Fiji Standard Time": "Pacific/Fiji",
        # Americas (South America)
        "Pacific SA Standard Time": "America/Santiago",
        "SA Pacific Standard Time": "America/Bogota",
        "SA Western Standard Time": "America/La_Paz",
        "SA Eastern Standard Time": "America/Cayenne",
        "Argentina Standard Time": "America/Argentina/Buenos_Aires",
        "E. South America Standard Time": "America/Sao_Paulo",
        "Greenland Standard Time": "America/Nuuk",
    }

    # Windows names that cover several IANA zones with different rules.
    # Pinned explicitly instead of trusting the first generic match.
    AMBIGUOUS_WINDOWS_ZONES: ClassVar[frozenset[str]] = frozenset(
        {
            "FLE Standard Time",
            "GTB Standard Time",
            "E. Europe Standard Time",
            "Central Europe Standard Time",
            "W. Europe Standard Time",
            "Romance Standard Time",
        }
    )

    # Obsolete/deprecated IANA names found in older ICS files
    TZ_ALIAS_MAP: ClassVar[dict[str, str]] = {
        "US/Pacific": "America/Los_Angeles",
        "US/Mountain": "America/Denver",
        "US/Central": "America/Chicago",
        "US/Eastern": "America/New_York",
        "US/Alaska": "America/Anchorage",
        "US/Hawaii": "Pacific/Honolulu",
        "US/Arizona": "America/Phoenix",
        "GMT": "UTC",
        "Etc/UTC": "UTC",
        "Etc/GMT": "UTC",
        "Etc/Universal": "UTC",
        "Universal": "UTC",
        "Zulu": "UTC",
        "PST8PDT": "America/Los_Angeles",
        "MST7MDT": "America/Denver",
        "CST6CDT": "America/Chicago",
        "EST5EDT": "America/New_York",
        "Asia/Nicosia": "Europe/Nicosia",
        "Asia/Rangoon": "Asia/Yangon",
        "America/Godthab": "America/Nuuk",
        "Asia/Calcutta": "Asia/Kolkata",
    }


def windows_tz_to_iana(windows_tz: str) -> Optional[str]:
    """Convert Windows timezone name to IANA timezone identifier.

    Args:
        windows_tz: Windows timezone name (e.g., "Mountain Standard Time")

    Returns:
        IANA timezone identifier (e.g., "America/Denver") or None if not found
    """
    return TimezoneTables.WINDOWS_TZ_MAP.get(windows_tz)


def resolve_timezone_alias(tz_name: str) -> str:
    """Resolve timezone alias to canonical IANA timezone identifier.

    Examples:
        >>> resolve_timezone_alias("US/Pacific")
        'America/Los_Angeles'
        >>> resolve_timezone_alias("America/Los_Angeles")
        'America/Los_Angeles'
    """
    return TimezoneTables.TZ_ALIAS_MAP.get(tz_name, tz_name)


def is_ambiguous_windows_zone(windows_tz: str) -> bool:
    """Whether a Windows zone name maps to several plausible IANA zones."""
    return windows_tz in TimezoneTables.AMBIGUOUS_WINDOWS_ZONES


@lru_cache(maxsize=64)
def load_zone(zone_name: Optional[str]) -> ZoneInfo:
    """Load a ZoneInfo for an IANA identifier.

    Raises:
        InvalidTimezoneError: If the identifier is empty or unknown
    """
    if not zone_name:
        raise InvalidTimezoneError(zone_name)
    try:
        return ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezoneError(zone_name) from e


def is_valid_timezone(zone_name: Optional[str]) -> bool:
    """Return True if zone_name is a loadable IANA identifier."""
    try:
        load_zone(zone_name)
    except InvalidTimezoneError:
        return False
    return True


def parse_now_override(value: str) -> datetime.datetime:
    """Parse an ISO 8601 "now" override into an aware UTC datetime.

    Naive values are assumed to be UTC.

    Raises:
        ValueError: If the value is not ISO 8601
    """
    dt = date_parser.isoparse(value)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.UTC)
    return dt.astimezone(datetime.UTC)


def now_utc() -> datetime.datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via the NEXTMEETING_TEST_TIME environment variable.
    Format: ISO 8601 datetime string (e.g., "2026-02-09T08:00:00Z")
    """
    test_time = os.environ.get(TEST_TIME_ENV_VAR)
    if test_time:
        try:
            return parse_now_override(test_time)
        except ValueError as e:
            logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV_VAR, test_time, e)

    return datetime.datetime.now(datetime.UTC)


def format_local_iso(dt: datetime.datetime, zone: datetime.tzinfo) -> str:
    """Render an instant as local wall clock with numeric offset.

    Examples:
        >>> from zoneinfo import ZoneInfo
        >>> format_local_iso(datetime.datetime(2026, 2, 9, 8, 15, tzinfo=datetime.UTC), ZoneInfo("Europe/Nicosia"))
        '2026-02-09T10:15:00+02:00'
    """
    return dt.astimezone(zone).replace(microsecond=0).isoformat()


def format_utc_iso(dt: datetime.datetime) -> str:
    """Render an instant as UTC with millisecond precision and a Z suffix.

    Examples:
        >>> format_utc_iso(datetime.datetime(2026, 2, 9, 8, 15, 0, 123456, tzinfo=datetime.UTC))
        '2026-02-09T08:15:00.123Z'
    """
    return dt.astimezone(datetime.UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
