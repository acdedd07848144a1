"""Tests for the CSV import pipeline."""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from cashflow.core.errors import ConflictError, NotFoundError, ValidationError
from cashflow.models import Company, Import, ImportRow, Scenario, Transaction
from cashflow.services import ImportService, ScenarioService
from cashflow.services.imports_service import auto_scenario_name, import_progress

from ..conftest import COLUMN_MAPPING, CSV_HEADERS, CSV_ROWS, run_sample_import


def _transactions(session: Session, import_id: int) -> dict[str, Transaction]:
    rows = session.execute(select(Transaction).where(Transaction.import_id == import_id)).scalars()
    return {row.flow_id: row for row in rows}


def test_import_creates_transactions_and_scenario(session: Session, company: Company, sample_import) -> None:
    record = sample_import.record

    assert record.status == "completed"
    assert (record.total_rows, record.valid_rows, record.invalid_rows) == (6, 6, 0)
    assert record.inserted_transactions_count == 6
    assert sample_import.message == "Import completed successfully"

    transactions = _transactions(session, record.id)
    assert transactions["IB-1"].time_slot == "IB"
    assert transactions["IB-1"].direction == "INFLOW"
    assert transactions["F1"].amount_book_cents == 150000
    assert transactions["F2"].direction == "OUTFLOW"
    assert transactions["F2"].date_due == date(2026, 1, 7)
    assert transactions["F3"].currency_tx == "EUR"
    assert transactions["F3"].fx_rate == Decimal("1.0")
    assert transactions["F4"].amount_book_cents == 25000
    assert transactions["F1"].fx_rate is None

    scenario = session.get(Scenario, sample_import.scenario_id)
    assert scenario.status == "Draft"
    assert scenario.name == auto_scenario_name("DS1")
    assert (scenario.start_date, scenario.end_date) == (date(2026, 1, 1), date(2026, 2, 10))


def test_invalid_rows_fail_the_import(session: Session, company: Company) -> None:
    rows = CSV_ROWS + [["not-a-date", "12", "INFLOW", "PLN", "F9", "", "", ""]]

    outcome = run_sample_import(session, company.id, rows=rows)

    record = outcome.record
    assert record.status == "failed"
    assert record.invalid_rows == 1
    assert record.inserted_transactions_count == 0
    assert outcome.scenario_id is None
    assert outcome.message == "Import processed with 1 validation errors"
    assert record.error_report_json[0]["row_number"] == 7
    assert record.error_report_json[0]["error_message"] == "date_due: Invalid date format: not-a-date"
    assert _transactions(session, record.id) == {}


def test_skip_invalid_rows_imports_the_rest(session: Session, company: Company) -> None:
    rows = CSV_ROWS + [["2026-01-06", "", "INFLOW", "PLN", "F9", "", "", ""]]

    outcome = run_sample_import(session, company.id, rows=rows, skip_invalid_rows=True)

    assert outcome.record.status == "completed"
    assert outcome.record.inserted_transactions_count == 6
    assert "F9" not in _transactions(session, outcome.record.id)
    stored = session.execute(select(ImportRow).where(ImportRow.import_id == outcome.record.id)).scalars().all()
    assert len(stored) == 7
    assert [row.row_number for row in stored if not row.is_valid] == [7]


def test_unstorable_cells_become_row_errors(session: Session, company: Company) -> None:
    rows = CSV_ROWS + [
        ["2026-01-08", "99999999999999999999", "INFLOW", "PLN", "F7", "", "", ""],
        ["2026-01-09", "1e30", "OUTFLOW", "PLN", "F8", "", "", ""],
        ["2026-01-10", "12.00", "INFLOW", "PLN", "F9", "x" * 300, "", ""],
    ]

    outcome = run_sample_import(session, company.id, rows=rows, skip_invalid_rows=True)

    record = outcome.record
    assert record.status == "completed"
    assert (record.valid_rows, record.invalid_rows) == (6, 3)
    assert record.inserted_transactions_count == 6
    assert outcome.scenario_id is not None
    assert [entry["error_message"] for entry in record.error_report_json] == [
        "amount: Amount is too large",
        "amount: Amount is too large",
        "counterparty: Must be at most 255 characters",
    ]
    assert set(_transactions(session, record.id)) == {"IB-1", "F1", "F2", "F3", "F4", "F5"}


def test_failed_auto_scenario_rolls_back_transactions(
    session: Session, company: Company, monkeypatch: pytest.MonkeyPatch
) -> None:
    def _name_taken(*_args, **_kwargs):
        raise ConflictError("A scenario with this name already exists")

    monkeypatch.setattr(ScenarioService, "create_from_import", _name_taken)

    with pytest.raises(ConflictError):
        run_sample_import(session, company.id)

    record = session.execute(select(Import).where(Import.company_id == company.id)).scalars().one()
    assert record.status == "failed"
    assert record.inserted_transactions_count == 0
    assert _transactions(session, record.id) == {}
    assert session.execute(select(Scenario).where(Scenario.company_id == company.id)).first() is None


def test_duplicate_flow_ids_are_invalid(session: Session, company: Company) -> None:
    rows = CSV_ROWS[:2] + [["2026-01-06", "5", "INFLOW", "PLN", "F1", "", "", ""]]

    outcome = run_sample_import(session, company.id, rows=rows)

    assert outcome.record.status == "failed"
    assert outcome.invalid[0].row_number == 3
    assert "Duplicate flow_id 'F1' (first seen on row 2)" in outcome.invalid[0].error_message


def test_generated_flow_ids_when_column_unmapped(session: Session, company: Company) -> None:
    mapping = {key: value for key, value in COLUMN_MAPPING.items() if key != "flow_id"}

    outcome = ImportService(session).run_import(
        company.id,
        dataset_code="DS2",
        headers=CSV_HEADERS,
        rows=CSV_ROWS[1:3],
        column_mapping=mapping,
    )

    flow_ids = sorted(_transactions(session, outcome.record.id))
    assert flow_ids == [f"import-{outcome.record.id}-row-1", f"import-{outcome.record.id}-row-2"]


def test_missing_mapped_column_is_rejected_up_front(session: Session, company: Company) -> None:
    mapping = dict(COLUMN_MAPPING, amount="Kwota")

    with pytest.raises(ValidationError) as excinfo:
        ImportService(session).run_import(
            company.id, dataset_code="DS1", headers=CSV_HEADERS, rows=CSV_ROWS, column_mapping=mapping
        )

    assert [detail.field for detail in excinfo.value.details] == ["column_mapping.amount"]
    assert ImportService(session).list_imports(company.id) == ([], 0)


def test_dataset_code_is_validated(session: Session, company: Company) -> None:
    with pytest.raises(ValidationError):
        run_sample_import(session, company.id, dataset_code="bad code!")


def test_unknown_company(session: Session) -> None:
    with pytest.raises(NotFoundError):
        run_sample_import(session, "00000000-0000-0000-0000-000000000000")


def test_second_import_gets_a_unique_scenario_name(session: Session, company: Company, sample_import) -> None:
    second = run_sample_import(session, company.id)

    scenario = session.get(Scenario, second.scenario_id)
    assert scenario.name == f"{auto_scenario_name('DS1')} (2)"


def test_file_import_decodes_and_sniffs(session: Session, company: Company) -> None:
    payload = (
        "Due;Amount;Kind;Ccy\n"
        "2026-03-02;1 200,00;INFLOW;PLN\n"
        "2026-03-09;300,00;OUTFLOW;PLN\n"
    ).encode("utf-8")

    outcome = ImportService(session).run_file_import(
        company.id,
        payload,
        dataset_code="FILE",
        column_mapping={"date_due": "Due", "amount": "Amount", "direction": "Kind", "currency": "Ccy"},
        file_name="march.csv",
    )

    assert outcome.record.status == "completed"
    assert outcome.record.file_name == "march.csv"
    assert sorted(t.amount_book_cents for t in _transactions(session, outcome.record.id).values()) == [30000, 120000]


def test_file_import_rejects_empty_file(session: Session, company: Company) -> None:
    with pytest.raises(ValidationError) as excinfo:
        ImportService(session).run_file_import(company.id, b"", dataset_code="X", column_mapping=COLUMN_MAPPING)

    assert excinfo.value.details[0].field == "file"


def test_status_and_listing(session: Session, company: Company, sample_import) -> None:
    failed = run_sample_import(session, company.id, rows=[["", "", "", "", "", "", "", ""]] + CSV_ROWS[:1])
    service = ImportService(session)

    progress = service.get_status(company.id, failed.record.id)
    assert progress.progress == 100
    assert progress.errors[0]["row_number"] == 1

    records, total = service.list_imports(company.id, status="completed")
    assert total == 1
    assert records[0].id == sample_import.record.id

    with pytest.raises(ValidationError):
        service.list_imports(company.id, status="done")
    with pytest.raises(NotFoundError):
        service.get_status(company.id, 9999)


def test_import_progress_handles_empty_imports(session: Session, company: Company) -> None:
    record = ImportService(session).create_import(company.id, "EMPTY")

    assert import_progress(record) == 0
    assert record.status == "pending"
