"""
Booking windows and calendar navigation.

Every function takes ``today`` explicitly; nothing here reads the clock, so
a long-lived session re-clamps correctly on its next call after midnight or a
month rollover.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Tuple


def _shift_month(year: int, month: int, months: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def _last_day(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def horizon_end(today: date, horizon_months: int) -> date:
    """Last day of the month ``horizon_months`` after today's month."""
    if horizon_months < 0:
        raise ValueError("horizon_months must be >= 0")
    year, month = _shift_month(today.year, today.month, horizon_months)
    return _last_day(year, month)


def allowed_dates(today: date, horizon_months: int) -> List[date]:
    end = horizon_end(today, horizon_months)
    return [today + timedelta(days=offset) for offset in range((end - today).days + 1)]


def is_allowed(day: date, today: date, horizon_months: int) -> bool:
    return today <= day <= horizon_end(today, horizon_months)


@dataclass(frozen=True, order=True)
class CalendarCursor:
    """The visible (year, month). Ordered so cursors compare chronologically."""

    year: int
    month: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be in 1..12, got {self.month}")

    @classmethod
    def containing(cls, day: date) -> "CalendarCursor":
        return cls(day.year, day.month)

    def shifted(self, months: int) -> "CalendarCursor":
        return CalendarCursor(*_shift_month(self.year, self.month, months))


def first_cursor(today: date) -> CalendarCursor:
    return CalendarCursor.containing(today)


def last_cursor(today: date, horizon_months: int) -> CalendarCursor:
    return CalendarCursor.containing(horizon_end(today, horizon_months))


def clamp(cursor: CalendarCursor, today: date, horizon_months: int) -> CalendarCursor:
    return min(max(cursor, first_cursor(today)), last_cursor(today, horizon_months))


def prev_month(cursor: CalendarCursor, today: date, horizon_months: int) -> CalendarCursor:
    cursor = clamp(cursor, today, horizon_months)
    if cursor == first_cursor(today):
        return cursor
    return cursor.shifted(-1)


def next_month(cursor: CalendarCursor, today: date, horizon_months: int) -> CalendarCursor:
    cursor = clamp(cursor, today, horizon_months)
    if cursor == last_cursor(today, horizon_months):
        return cursor
    return cursor.shifted(1)


def can_go_prev(cursor: CalendarCursor, today: date, horizon_months: int) -> bool:
    return clamp(cursor, today, horizon_months) > first_cursor(today)


def can_go_next(cursor: CalendarCursor, today: date, horizon_months: int) -> bool:
    return clamp(cursor, today, horizon_months) < last_cursor(today, horizon_months)


def month_days(cursor: CalendarCursor, today: date, horizon_months: int) -> List[date]:
    """Selectable days of the cursor's month; days before today are dropped."""
    cursor = clamp(cursor, today, horizon_months)
    start = max(date(cursor.year, cursor.month, 1), today)
    end = min(_last_day(cursor.year, cursor.month), horizon_end(today, horizon_months))
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]
