"""Portable SELECTs that resolve scenario overrides and accumulate balances.

These play the role of database views: every read of scenario data goes
through them so override resolution lives in one place. They avoid
dialect-specific SQL and run on both PostgreSQL and SQLite.
"""
from __future__ import annotations

from sqlalchemy import Select, and_, case, func, literal, or_, select
from sqlalchemy.orm import aliased

from cashflow.models import INITIAL_BALANCE_SLOT, Scenario, ScenarioOverride, Transaction


def scenario_rows_subquery(company_id: str, scenario_id: int):
    """Return a subquery with one effective row per active transaction of a scenario.

    Columns: ``transaction_id``, ``flow_id``, ``direction``, ``time_slot``,
    ``is_initial_balance``, ``date_due_effective``, ``date_due_original``,
    ``amount_book_cents_effective``, ``amount_book_cents_original``,
    ``amount_tx_cents``, ``currency_tx``, ``fx_rate``, descriptive columns,
    ``is_overridden``, ``delta_book_cents`` and ``sort_date``.

    ``sort_date`` pins Initial Balance rows to the scenario start so they
    lead any running total.
    """

    scenario = aliased(Scenario)
    txn = aliased(Transaction)
    override = aliased(ScenarioOverride)

    effective_date = func.coalesce(override.new_date_due, txn.date_due)
    effective_amount = func.coalesce(override.new_amount_book_cents, txn.amount_book_cents)
    is_initial_balance = txn.time_slot == INITIAL_BALANCE_SLOT
    is_overridden = case(
        (
            or_(override.new_date_due.is_not(None), override.new_amount_book_cents.is_not(None)),
            literal(True),
        ),
        else_=literal(False),
    )
    delta = case((txn.direction == "INFLOW", effective_amount), else_=-effective_amount)
    sort_date = case(
        (and_(is_initial_balance, effective_date > scenario.start_date), scenario.start_date),
        else_=effective_date,
    )

    statement = (
        select(
            txn.id.label("transaction_id"),
            txn.flow_id.label("flow_id"),
            txn.direction.label("direction"),
            txn.time_slot.label("time_slot"),
            case((is_initial_balance, literal(True)), else_=literal(False)).label("is_initial_balance"),
            effective_date.label("date_due_effective"),
            txn.date_due.label("date_due_original"),
            effective_amount.label("amount_book_cents_effective"),
            txn.amount_book_cents.label("amount_book_cents_original"),
            txn.amount_tx_cents.label("amount_tx_cents"),
            txn.currency_tx.label("currency_tx"),
            txn.fx_rate.label("fx_rate"),
            txn.counterparty.label("counterparty"),
            txn.description.label("description"),
            txn.project.label("project"),
            txn.document.label("document"),
            txn.payment_source.label("payment_source"),
            is_overridden.label("is_overridden"),
            delta.label("delta_book_cents"),
            sort_date.label("sort_date"),
        )
        .select_from(scenario)
        .join(
            txn,
            and_(
                txn.company_id == scenario.company_id,
                txn.import_id == scenario.import_id,
                txn.is_active.is_(True),
            ),
        )
        .outerjoin(
            override,
            and_(
                override.company_id == scenario.company_id,
                override.scenario_id == scenario.id,
                override.flow_id == txn.flow_id,
            ),
        )
        .where(
            scenario.id == scenario_id,
            scenario.company_id == company_id,
            scenario.deleted_at.is_(None),
            or_(
                is_initial_balance,
                effective_date.between(scenario.start_date, scenario.end_date),
            ),
        )
    )
    return statement.subquery("scenario_rows")


def export_rows_select(company_id: str, scenario_id: int) -> Select:
    """Effective rows with a per-row running balance, in export order."""

    rows = scenario_rows_subquery(company_id, scenario_id)
    running = func.sum(rows.c.delta_book_cents).over(
        order_by=(rows.c.sort_date, rows.c.transaction_id)
    )
    return select(rows, running.label("running_balance_book_cents")).order_by(
        rows.c.sort_date, rows.c.transaction_id
    )


def running_balance_select(company_id: str, scenario_id: int) -> Select:
    """One row per date: that day's net delta and the cumulative balance."""

    rows = scenario_rows_subquery(company_id, scenario_id)
    daily = (
        select(
            rows.c.sort_date.label("as_of_date"),
            func.sum(rows.c.delta_book_cents).label("delta_book_cents"),
        )
        .group_by(rows.c.sort_date)
        .subquery("daily_deltas")
    )
    running = func.sum(daily.c.delta_book_cents).over(order_by=daily.c.as_of_date)
    return select(
        daily.c.as_of_date,
        daily.c.delta_book_cents,
        running.label("running_balance_book_cents"),
    ).order_by(daily.c.as_of_date)


def scenario_summary_select(company_id: str, scenario_id: int) -> Select:
    rows = scenario_rows_subquery(company_id, scenario_id)
    inflow = case((rows.c.direction == "INFLOW", rows.c.amount_book_cents_effective), else_=0)
    outflow = case((rows.c.direction == "OUTFLOW", rows.c.amount_book_cents_effective), else_=0)
    overridden = case((rows.c.is_overridden, 1), else_=0)
    return select(
        func.coalesce(func.sum(inflow), 0).label("total_inflow_book_cents"),
        func.coalesce(func.sum(outflow), 0).label("total_outflow_book_cents"),
        func.count(rows.c.transaction_id).label("total_transactions"),
        func.coalesce(func.sum(overridden), 0).label("overridden_transactions"),
        func.min(rows.c.date_due_effective).label("earliest_date"),
        func.max(rows.c.date_due_effective).label("latest_date"),
    )


__all__ = [
    "export_rows_select",
    "running_balance_select",
    "scenario_rows_subquery",
    "scenario_summary_select",
]
