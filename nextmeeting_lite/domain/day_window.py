"""Day window calculation.

The window is the half-open UTC interval from local midnight of the zone-local
date of "now" to local midnight of the following date. It is 23 or 25 hours
long on DST transition days.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo

from nextmeeting_lite.core.timezone_utils import load_zone

# Offset refinement passes after the first guess
_REFINE_PASSES = 2


@dataclass(frozen=True)
class DayWindow:
    """Half-open [start, end) interval in UTC for one local calendar day."""

    start: datetime
    end: datetime
    zone_name: str

    @property
    def zone(self) -> tzinfo:
        return load_zone(self.zone_name)

    @property
    def length(self) -> timedelta:
        return self.end - self.start


def _offset_at(instant: datetime, zone: tzinfo) -> timedelta:
    """Offset of zone at instant, found by reading the wall clock back as UTC."""
    wall = instant.astimezone(zone).replace(tzinfo=UTC)
    return wall - instant


def local_midnight_utc(day: date, zone: tzinfo) -> datetime:
    """UTC instant of local midnight starting day in zone.

    Starts from midnight read as UTC, subtracts the offset observed there,
    then refines with the offset observed at the candidate. When a DST gap
    skips midnight the candidates alternate around the transition and the
    day starts at the transition itself.
    """
    target = datetime(day.year, day.month, day.day, tzinfo=UTC)
    candidate = target - _offset_at(target, zone)
    previous = candidate
    for _ in range(_REFINE_PASSES):
        refined = target - _offset_at(candidate, zone)
        if refined == candidate:
            return candidate
        previous, candidate = candidate, refined

    earlier, later = sorted((previous, candidate))
    return _first_instant_on(day, zone, earlier, later)


def _first_instant_on(day: date, zone: tzinfo, earlier: datetime, later: datetime) -> datetime:
    """First whole second in [earlier, later] whose local date in zone is day or after."""
    if earlier.astimezone(zone).date() >= day:
        return earlier

    low, high = 0, int((later - earlier).total_seconds())
    while high - low > 1:
        mid = (low + high) // 2
        if (earlier + timedelta(seconds=mid)).astimezone(zone).date() < day:
            low = mid
        else:
            high = mid
    return earlier + timedelta(seconds=high)


def compute_day_window(now: datetime, zone_name: str) -> DayWindow:
    """Compute the window for the zone-local date of now.

    Args:
        now: Aware instant
        zone_name: IANA zone identifier

    Returns:
        DayWindow with UTC bounds

    Raises:
        InvalidTimezoneError: If zone_name cannot be loaded
    """
    zone = load_zone(zone_name)
    local_date = now.astimezone(zone).date()

    # Each boundary is solved on its own so DST days get their true length
    start = local_midnight_utc(local_date, zone)
    end = local_midnight_utc(local_date + timedelta(days=1), zone)
    return DayWindow(start=start, end=end, zone_name=zone_name)
