"""
Calendar-day windows used for double-booking detection.

A ride occupies its taxi+route for the whole calendar day of `ride_date`
in the booking timezone, so two rides conflict when they fall in the same
window regardless of time of day.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone, tzinfo
from functools import lru_cache
from typing import Union
from zoneinfo import ZoneInfo

# Mirrors the millisecond resolution of 23:59:59.999
END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class DayWindow:
    day: date
    start: datetime
    end: datetime

    def __contains__(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@lru_cache(maxsize=32)
def booking_zone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def ensure_aware(moment: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def ride_day_of(moment: datetime, zone: tzinfo) -> date:
    return ensure_aware(moment).astimezone(zone).date()


def day_window(value: Union[datetime, date], zone: tzinfo) -> DayWindow:
    """[00:00:00.000, 23:59:59.999] of the calendar day `value` falls on in `zone`."""
    if isinstance(value, datetime):
        day = ride_day_of(value, zone)
    else:
        day = value
    return DayWindow(
        day=day,
        start=datetime.combine(day, time.min, tzinfo=zone),
        end=datetime.combine(day, END_OF_DAY, tzinfo=zone),
    )
