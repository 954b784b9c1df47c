import os
from collections.abc import AsyncIterator, Generator
from datetime import UTC, datetime
from typing import Any, Callable

import pytest

from nextmeeting_lite.core.config_manager import ENV_PREFIX, LiteSettings
from nextmeeting_lite.core.http_client import close_all_clients


@pytest.fixture
def nicosia_settings() -> LiteSettings:
    """Default settings with the day window in Europe/Nicosia.

    Fields left at their defaults:
      - default_duration_minutes: 60
      - small_alarm_minutes: 15
      - cancelled_prefixes: ("Canceled:", "Cancelled:")
    """
    return LiteSettings(timezone="Europe/Nicosia", ics_url="https://calendar.test/feed.ics")


@pytest.fixture
def utc_settings() -> LiteSettings:
    """Settings with a UTC day window so expected instants read directly as Z times."""
    return LiteSettings(timezone="UTC", ics_url="https://calendar.test/feed.ics")


@pytest.fixture
def fixed_now() -> datetime:
    """Monday 2026-02-09 10:20 UTC, inside the sample day."""
    return datetime(2026, 2, 9, 10, 20, tzinfo=UTC)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear NEXTMEETING_* variables so host settings never leak into tests."""
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX):
            monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def ics_builder() -> Callable[..., str]:
    """
    Return a builder that wraps VEVENT bodies into a calendar.

    Returns:
        Callable with signature builder(*events, vtimezones=()) -> str where
        each event is the text between BEGIN:VEVENT and END:VEVENT and each
        vtimezone is the text between BEGIN:VTIMEZONE and END:VTIMEZONE.
    """

    def builder(*events: str, vtimezones: tuple[str, ...] = ()) -> str:
        lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            "PRODID:-//NextMeeting Test//EN",
            "CALSCALE:GREGORIAN",
        ]
        for block in vtimezones:
            lines.append("BEGIN:VTIMEZONE")
            lines.extend(line.strip() for line in block.strip().splitlines())
            lines.append("END:VTIMEZONE")
        for body in events:
            lines.append("BEGIN:VEVENT")
            lines.extend(line.strip() for line in body.strip().splitlines())
            lines.append("END:VEVENT")
        lines.append("END:VCALENDAR")
        return "\n".join(lines) + "\n"

    return builder


@pytest.fixture
def sample_ics_day(ics_builder: Callable[..., str]) -> str:
    """
    Return a calendar for Monday 2026-02-09 with three meetings.

    Returns:
        - "Standup" 10:15-10:45 UTC
        - "Planning" 12:30-13:30 UTC
        - "Review" 15:00-15:15 UTC
    """
    return ics_builder(
        """
        UID:standup@nextmeeting.test
        DTSTAMP:20260201T000000Z
        DTSTART:20260209T101500Z
        DTEND:20260209T104500Z
        SUMMARY:Standup
        LOCATION:Room 1
        """,
        """
        UID:planning@nextmeeting.test
        DTSTAMP:20260201T000000Z
        DTSTART:20260209T123000Z
        DTEND:20260209T133000Z
        SUMMARY:Planning
        ORGANIZER:mailto:lead@nextmeeting.test
        """,
        """
        UID:review@nextmeeting.test
        DTSTAMP:20260201T000000Z
        DTSTART:20260209T150000Z
        DTEND:20260209T151500Z
        SUMMARY:Review
        """,
    )


@pytest.fixture
def sample_ics_weekly(ics_builder: Callable[..., str]) -> str:
    """
    Return a weekly series whose first instance is weeks before the sample day.

    Returns:
        "Weekly Sync" every Monday 11:00-11:15 UTC starting 2025-11-17.
    """
    return ics_builder(
        """
        UID:weekly-sync@nextmeeting.test
        DTSTAMP:20251101T000000Z
        DTSTART:20251117T110000Z
        DTEND:20251117T111500Z
        RRULE:FREQ=WEEKLY
        SUMMARY:Weekly Sync
        """
    )
