"""Excel export of locked scenarios."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet
from sqlalchemy.orm import Session

from cashflow.core.config import ExportSettings, get_settings
from cashflow.core.errors import ForbiddenError, NotFoundError
from cashflow.core.formatting import export_filename
from cashflow.core.logger import get_logger, log_context, timeit
from cashflow.core.pagination import iter_pages
from cashflow.domain.aggregation import EffectiveRow, aggregate_weeks
from cashflow.domain.amounts import cents_to_major
from cashflow.domain.weeks import INITIAL_BALANCE_LABEL, INITIAL_BALANCE_WEEK, time_slot
from cashflow.models import Company, Scenario
from cashflow.repositories import AnalyticsRepository, BalancePoint, ExportRow, ScenarioRepository

LOGGER = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
NUMBER_FORMAT = "#,##0.00"
DATE_FORMAT = "yyyy-mm-dd"

_HEADER_FONT = Font(bold=True, color="FFFFFFFF")
_HEADER_FILL = PatternFill(start_color="FF4472C4", end_color="FF4472C4", fill_type="solid")
_THIN = Side(style="thin", color="FFBFBFBF")
_BORDER = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)


@dataclass(frozen=True, slots=True)
class ExportFile:
    filename: str
    content: bytes
    row_count: int
    media_type: str = XLSX_MEDIA_TYPE


def _to_effective(row: ExportRow) -> EffectiveRow:
    return EffectiveRow(
        transaction_id=row.transaction_id,
        flow_id=row.flow_id,
        direction=row.direction,
        amount_book_cents=row.amount_book_cents_effective,
        date_due=row.date_due_effective,
        is_initial_balance=row.is_initial_balance,
        is_overridden=row.is_overridden,
        counterparty=row.counterparty,
        description=row.description,
        project=row.project,
    )


def _write_header(sheet: Worksheet, headers: list[str]) -> None:
    sheet.append(headers)
    for cell in sheet[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
    sheet.freeze_panes = "A2"


def _finish_sheet(sheet: Worksheet, widths: list[int], money_columns: set[int], date_columns: set[int]) -> None:
    for index, width in enumerate(widths, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width
    for row in sheet.iter_rows():
        for cell in row:
            cell.border = _BORDER
            if cell.row == 1:
                continue
            if cell.column in money_columns:
                cell.number_format = NUMBER_FORMAT
            elif cell.column in date_columns:
                cell.number_format = DATE_FORMAT


def build_workbook(
    scenario: Scenario,
    currency: str,
    rows: list[ExportRow],
    balance: list[BalancePoint],
    *,
    include_charts: bool = True,
) -> Workbook:
    """Assemble the Weekly Summary, Transactions and Running Balance sheets."""

    workbook = Workbook()

    summary = workbook.active
    summary.title = "Weekly Summary"
    _write_header(summary, ["Week", f"Inflows ({currency})", f"Outflows ({currency})", f"Net Flow ({currency})"])
    weeks = aggregate_weeks((_to_effective(row) for row in rows), scenario.start_date, scenario.end_date)
    for week in weeks:
        label = INITIAL_BALANCE_LABEL if week.week_index == INITIAL_BALANCE_WEEK else f"Week {week.week_index}"
        summary.append(
            [
                label,
                float(cents_to_major(week.inflow_total_book_cents)),
                float(cents_to_major(week.outflow_total_book_cents)),
                float(cents_to_major(week.net_book_cents)),
            ]
        )
    _finish_sheet(summary, [18, 18, 18, 18], money_columns={2, 3, 4}, date_columns=set())

    transactions = workbook.create_sheet("Transactions")
    _write_header(
        transactions,
        [
            "Week",
            "Date",
            "Type",
            f"Amount ({currency})",
            "Counterparty",
            "Description",
            "Project",
            "Document",
            "Payment Source",
            "Modified",
        ],
    )
    for row in rows:
        transactions.append(
            [
                row.time_slot if row.is_initial_balance else time_slot(row.date_due_effective),
                row.date_due_effective,
                "IB" if row.is_initial_balance else row.direction,
                float(cents_to_major(row.amount_book_cents_effective)),
                row.counterparty or "",
                row.description or "",
                row.project or "",
                row.document or "",
                row.payment_source or "",
                "Yes" if row.is_overridden else "No",
            ]
        )
    _finish_sheet(
        transactions,
        [8, 12, 10, 16, 28, 40, 16, 16, 16, 10],
        money_columns={4},
        date_columns={2},
    )

    if include_charts and balance:
        running = workbook.create_sheet("Running Balance")
        _write_header(running, ["Date", f"Balance ({currency})"])
        for point in balance:
            running.append([point.as_of_date, float(cents_to_major(point.running_balance_book_cents))])
        _finish_sheet(running, [12, 18], money_columns={2}, date_columns={1})

    return workbook


class ExportService:
    def __init__(
        self,
        session: Session,
        repository: AnalyticsRepository | None = None,
        scenarios: ScenarioRepository | None = None,
        settings: ExportSettings | None = None,
    ) -> None:
        self._session = session
        self._repository = repository or AnalyticsRepository(session)
        self._scenarios = scenarios or ScenarioRepository(session)
        self._settings = settings or get_settings().export

    def _collect_rows(self, company_id: str, scenario_id: int) -> list[ExportRow]:
        rows: list[ExportRow] = []
        pages = iter_pages(
            lambda offset, limit: self._repository.export_rows(
                company_id, scenario_id, offset=offset, limit=limit
            ),
            self._settings.page_size,
        )
        for page in pages:
            rows.extend(page)
        return rows

    def _collect_balance(self, company_id: str, scenario_id: int) -> list[BalancePoint]:
        points: list[BalancePoint] = []
        pages = iter_pages(
            lambda offset, limit: self._repository.running_balance(
                company_id, scenario_id, offset=offset, limit=limit
            ),
            self._settings.page_size,
        )
        for page in pages:
            points.extend(page)
        return points

    def export_scenario(
        self,
        company_id: str,
        scenario_id: int,
        *,
        include_charts: bool = True,
        today: date | None = None,
    ) -> ExportFile:
        scenario = self._scenarios.get(company_id, scenario_id)
        if scenario is None:
            raise NotFoundError.for_entity("Scenario", scenario_id)
        if not scenario.is_locked:
            raise ForbiddenError("Only locked scenarios can be exported")
        company = self._session.get(Company, company_id)
        if company is None:
            raise NotFoundError.for_entity("Company", company_id)
        currency = company.base_currency

        with log_context.scoped(company_id=company_id, scenario_id=scenario_id):
            with timeit("Scenario export", logger=LOGGER, unit="rows") as timer:
                rows = self._collect_rows(company_id, scenario_id)
                if not rows:
                    raise NotFoundError("No transactions found for export")
                balance = self._collect_balance(company_id, scenario_id) if include_charts else []
                timer.add(len(rows))
                workbook = build_workbook(scenario, currency, rows, balance, include_charts=include_charts)
                buffer = BytesIO()
                workbook.save(buffer)

        return ExportFile(
            filename=export_filename(scenario.name, today),
            content=buffer.getvalue(),
            row_count=len(rows),
        )


__all__ = ["ExportFile", "ExportService", "XLSX_MEDIA_TYPE", "build_workbook"]
