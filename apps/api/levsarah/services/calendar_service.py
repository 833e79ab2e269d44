"""Calendar facts for a visit date.

The Hebrew calendar itself lives outside this service. A provider is any
callable ``(date) -> DayFlags``; the default knows only the weekday, which is
all the booking rules need. Deployments with a real Hebrew calendar install
their provider with ``set_calendar_provider`` at startup.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Callable

SATURDAY = 5
FRIDAY = 4


@dataclass(frozen=True)
class DayFlags:
    is_shabbat: bool = False
    is_holiday: bool = False
    holiday_name: str | None = None
    hebrew_date: str = ""


CalendarProvider = Callable[[date], DayFlags]


def weekday_calendar(day: date) -> DayFlags:
    return DayFlags(is_shabbat=day.weekday() == SATURDAY)


_provider: CalendarProvider = weekday_calendar


def set_calendar_provider(provider: CalendarProvider | None) -> None:
    """Install a calendar provider; ``None`` restores the weekday-only default."""
    global _provider
    _provider = provider or weekday_calendar


def get_day_flags(day: date) -> DayFlags:
    return _provider(day)


def parse_iso_date(value: str) -> date:
    """
    Parse a ``YYYY-MM-DD`` calendar date.

    Raises:
        ValueError: If the string is not a valid ISO date
    """
    return date.fromisoformat(value)
