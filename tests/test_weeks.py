from datetime import date

from cashflow.domain.weeks import (
    INITIAL_BALANCE_LABEL,
    time_slot,
    week_count,
    week_index_for,
    week_label,
    week_start_date,
)


def test_time_slot_uses_sunday_based_weeks() -> None:
    assert time_slot(date(2026, 1, 1)) == "2601"
    # 2026-01-03 is a Saturday, the next day starts week two.
    assert time_slot(date(2026, 1, 3)) == "2601"
    assert time_slot(date(2026, 1, 4)) == "2602"
    assert time_slot(date(2026, 1, 5)) == "2602"
    assert time_slot(date(2025, 12, 31)) == "2553"


def test_week_index_is_relative_to_start() -> None:
    start = date(2026, 1, 5)
    assert week_index_for(start, start) == 1
    assert week_index_for(date(2026, 1, 11), start) == 1
    assert week_index_for(date(2026, 1, 12), start) == 2
    assert week_index_for(date(2026, 1, 25), start) == 3


def test_week_count_covers_inclusive_range() -> None:
    start = date(2026, 1, 5)
    assert week_count(start, date(2026, 1, 25)) == 3
    assert week_count(start, date(2026, 1, 26)) == 4
    assert week_count(start, start) == 1
    assert week_count(start, date(2026, 1, 1)) == 0


def test_week_labels_and_start_dates() -> None:
    start = date(2026, 1, 5)
    assert week_label(0, start) == INITIAL_BALANCE_LABEL
    assert week_start_date(0, start) is None
    assert week_start_date(2, start) == date(2026, 1, 12)
    assert week_label(1, start) == "2602"
    assert week_label(2, start) == "2603"
