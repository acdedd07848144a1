"""Week arithmetic relative to a scenario's start date.

Week ``0`` is reserved for Initial Balance rows. Weeks ``1..N`` are consecutive
seven day windows beginning on the scenario start date. Labels use the
``YYWW`` time-slot notation of the source data.
"""
from __future__ import annotations

from datetime import date, timedelta
from math import ceil

INITIAL_BALANCE_WEEK = 0
INITIAL_BALANCE_LABEL = "Initial Balance"


def time_slot(value: date) -> str:
    """``YYWW`` slot where weeks run Sunday to Saturday and week 1 contains Jan 1st."""

    jan_first = date(value.year, 1, 1)
    jan_first_weekday = (jan_first.weekday() + 1) % 7
    day_of_year = (value - jan_first).days
    week = ceil((day_of_year + jan_first_weekday + 1) / 7)
    return f"{value.year % 100:02d}{week:02d}"


def week_index_for(effective_date: date, start_date: date) -> int:
    return (effective_date - start_date).days // 7 + 1


def week_count(start_date: date, end_date: date) -> int:
    """Number of weeks needed to cover ``start_date..end_date`` inclusive."""

    if end_date < start_date:
        return 0
    return week_index_for(end_date, start_date)


def week_start_date(week_index: int, start_date: date) -> date | None:
    if week_index == INITIAL_BALANCE_WEEK:
        return None
    return start_date + timedelta(days=(week_index - 1) * 7)


def week_label(week_index: int, start_date: date) -> str:
    week_start = week_start_date(week_index, start_date)
    if week_start is None:
        return INITIAL_BALANCE_LABEL
    return time_slot(week_start)
