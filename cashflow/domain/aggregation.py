"""Reduce effective scenario rows into weekly inflow/outflow buckets."""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable

from .weeks import INITIAL_BALANCE_WEEK, week_count, week_index_for, week_label, week_start_date

TOP_N = 5
INFLOW = "INFLOW"
OUTFLOW = "OUTFLOW"


@dataclass(frozen=True, slots=True)
class EffectiveRow:
    """A transaction after the scenario's override has been applied."""

    transaction_id: int
    flow_id: str
    direction: str
    amount_book_cents: int
    date_due: date
    is_initial_balance: bool = False
    is_overridden: bool = False
    counterparty: str | None = None
    description: str | None = None
    project: str | None = None


@dataclass(frozen=True, slots=True)
class TopItem:
    flow_id: str
    amount_book_cents: int
    counterparty: str | None
    description: str | None
    date_due: date
    project: str | None

    @classmethod
    def from_row(cls, row: EffectiveRow) -> "TopItem":
        return cls(
            flow_id=row.flow_id,
            amount_book_cents=row.amount_book_cents,
            counterparty=row.counterparty,
            description=row.description,
            date_due=row.date_due,
            project=row.project,
        )


@dataclass(frozen=True, slots=True)
class WeeklyBucket:
    week_index: int
    week_label: str
    week_start_date: date | None
    inflow_total_book_cents: int
    outflow_total_book_cents: int
    inflow_top5: tuple[TopItem, ...]
    outflow_top5: tuple[TopItem, ...]
    inflow_other_book_cents: int
    outflow_other_book_cents: int

    @property
    def net_book_cents(self) -> int:
        return self.inflow_total_book_cents - self.outflow_total_book_cents


@dataclass
class _Accumulator:
    inflows: list[EffectiveRow] = field(default_factory=list)
    outflows: list[EffectiveRow] = field(default_factory=list)

    def add(self, row: EffectiveRow) -> None:
        if row.direction == INFLOW:
            self.inflows.append(row)
        else:
            self.outflows.append(row)


def _rank_key(row: EffectiveRow) -> tuple[int, date, str]:
    return (-row.amount_book_cents, row.date_due, row.flow_id)


def _split_top(rows: list[EffectiveRow]) -> tuple[int, tuple[TopItem, ...], int]:
    total = sum(row.amount_book_cents for row in rows)
    ranked = sorted(rows, key=_rank_key)[:TOP_N]
    top = tuple(TopItem.from_row(row) for row in ranked)
    return total, top, total - sum(item.amount_book_cents for item in top)


def bucket_week(row: EffectiveRow, start_date: date, end_date: date) -> int | None:
    """Week index for ``row`` or ``None`` when it falls outside the scenario range."""

    if row.is_initial_balance:
        return INITIAL_BALANCE_WEEK
    if row.date_due < start_date or row.date_due > end_date:
        return None
    return week_index_for(row.date_due, start_date)


def aggregate_weeks(
    rows: Iterable[EffectiveRow],
    start_date: date,
    end_date: date,
) -> list[WeeklyBucket]:
    """Group ``rows`` into weekly buckets ordered by week index.

    Every week of the range is emitted, zero-filled when empty. The Initial
    Balance week appears only when at least one Initial Balance row exists.
    """

    buckets: dict[int, _Accumulator] = defaultdict(_Accumulator)
    for row in rows:
        index = bucket_week(row, start_date, end_date)
        if index is not None:
            buckets[index].add(row)

    indices = list(range(1, week_count(start_date, end_date) + 1))
    if INITIAL_BALANCE_WEEK in buckets:
        indices.insert(0, INITIAL_BALANCE_WEEK)

    result: list[WeeklyBucket] = []
    for index in indices:
        accumulator = buckets.get(index) or _Accumulator()
        inflow_total, inflow_top, inflow_other = _split_top(accumulator.inflows)
        outflow_total, outflow_top, outflow_other = _split_top(accumulator.outflows)
        result.append(
            WeeklyBucket(
                week_index=index,
                week_label=week_label(index, start_date),
                week_start_date=week_start_date(index, start_date),
                inflow_total_book_cents=inflow_total,
                outflow_total_book_cents=outflow_total,
                inflow_top5=inflow_top,
                outflow_top5=outflow_top,
                inflow_other_book_cents=inflow_other,
                outflow_other_book_cents=outflow_other,
            )
        )
    return result


def signed_delta(direction: str, amount_book_cents: int) -> int:
    return amount_book_cents if direction == INFLOW else -amount_book_cents
