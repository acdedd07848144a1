"""Schemas for weekly aggregates, running balance and scenario totals."""
from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict


class TopTransaction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    flow_id: str
    amount_book_cents: int
    counterparty: str | None = None
    description: str | None = None
    date_due: date
    project: str | None = None


class WeeklyAggregate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_index: int
    week_label: str
    week_start_date: date | None = None
    inflow_total_book_cents: int
    outflow_total_book_cents: int
    inflow_top5: list[TopTransaction]
    outflow_top5: list[TopTransaction]
    inflow_other_book_cents: int
    outflow_other_book_cents: int


class WeeklyAggregatesResponse(BaseModel):
    scenario_id: int
    base_currency: str
    weeks: list[WeeklyAggregate]


class RunningBalancePoint(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    as_of_date: date
    delta_book_cents: int
    running_balance_book_cents: int


class RunningBalanceResponse(BaseModel):
    scenario_id: int
    base_currency: str
    points: list[RunningBalancePoint]


class ScenarioSummaryResponse(BaseModel):
    scenario_id: int
    base_currency: str
    total_inflow_book_cents: int
    total_outflow_book_cents: int
    net_book_cents: int
    total_transactions: int
    overridden_transactions: int
    earliest_date: date | None = None
    latest_date: date | None = None
