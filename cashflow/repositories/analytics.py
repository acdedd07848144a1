"""Read models built on the scenario views."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from cashflow.db.views import (
    export_rows_select,
    running_balance_select,
    scenario_rows_subquery,
    scenario_summary_select,
)
from cashflow.domain.aggregation import EffectiveRow

from .base import BaseRepository


@dataclass(frozen=True, slots=True)
class BalancePoint:
    as_of_date: date
    delta_book_cents: int
    running_balance_book_cents: int


@dataclass(frozen=True, slots=True)
class ExportRow:
    transaction_id: int
    flow_id: str
    direction: str
    time_slot: str
    is_initial_balance: bool
    date_due_effective: date
    date_due_original: date
    amount_book_cents_effective: int
    amount_book_cents_original: int
    amount_tx_cents: int
    currency_tx: str
    fx_rate: Decimal | None
    counterparty: str | None
    description: str | None
    project: str | None
    document: str | None
    payment_source: str | None
    is_overridden: bool
    running_balance_book_cents: int


@dataclass(frozen=True, slots=True)
class ScenarioTotals:
    total_inflow_book_cents: int
    total_outflow_book_cents: int
    total_transactions: int
    overridden_transactions: int
    earliest_date: date | None
    latest_date: date | None

    @property
    def net_book_cents(self) -> int:
        return self.total_inflow_book_cents - self.total_outflow_book_cents


class AnalyticsRepository(BaseRepository):
    def effective_rows(self, company_id: str, scenario_id: int) -> list[EffectiveRow]:
        rows = scenario_rows_subquery(company_id, scenario_id)
        statement = select(rows).order_by(rows.c.sort_date, rows.c.transaction_id)
        return [
            EffectiveRow(
                transaction_id=int(row.transaction_id),
                flow_id=row.flow_id,
                direction=row.direction,
                amount_book_cents=self._to_int(row.amount_book_cents_effective),
                date_due=self._coerce_date(row.date_due_effective),
                is_initial_balance=bool(row.is_initial_balance),
                is_overridden=bool(row.is_overridden),
                counterparty=row.counterparty,
                description=row.description,
                project=row.project,
            )
            for row in self._session.execute(statement)
        ]

    def running_balance(
        self,
        company_id: str,
        scenario_id: int,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[BalancePoint]:
        statement = running_balance_select(company_id, scenario_id).offset(offset)
        if limit is not None:
            statement = statement.limit(limit)
        return [
            BalancePoint(
                as_of_date=self._coerce_date(row.as_of_date),
                delta_book_cents=self._to_int(row.delta_book_cents),
                running_balance_book_cents=self._to_int(row.running_balance_book_cents),
            )
            for row in self._session.execute(statement)
        ]

    def export_rows(self, company_id: str, scenario_id: int, *, offset: int, limit: int) -> list[ExportRow]:
        statement = export_rows_select(company_id, scenario_id).offset(offset).limit(limit)
        return [
            ExportRow(
                transaction_id=int(row.transaction_id),
                flow_id=row.flow_id,
                direction=row.direction,
                time_slot=row.time_slot,
                is_initial_balance=bool(row.is_initial_balance),
                date_due_effective=self._coerce_date(row.date_due_effective),
                date_due_original=self._coerce_date(row.date_due_original),
                amount_book_cents_effective=self._to_int(row.amount_book_cents_effective),
                amount_book_cents_original=self._to_int(row.amount_book_cents_original),
                amount_tx_cents=self._to_int(row.amount_tx_cents),
                currency_tx=row.currency_tx,
                fx_rate=row.fx_rate,
                counterparty=row.counterparty,
                description=row.description,
                project=row.project,
                document=row.document,
                payment_source=row.payment_source,
                is_overridden=bool(row.is_overridden),
                running_balance_book_cents=self._to_int(row.running_balance_book_cents),
            )
            for row in self._session.execute(statement)
        ]

    def totals(self, company_id: str, scenario_id: int) -> ScenarioTotals:
        row = self._session.execute(scenario_summary_select(company_id, scenario_id)).one()
        return ScenarioTotals(
            total_inflow_book_cents=self._to_int(row.total_inflow_book_cents),
            total_outflow_book_cents=self._to_int(row.total_outflow_book_cents),
            total_transactions=self._to_int(row.total_transactions),
            overridden_transactions=self._to_int(row.overridden_transactions),
            earliest_date=self._coerce_optional_date(row.earliest_date),
            latest_date=self._coerce_optional_date(row.latest_date),
        )
