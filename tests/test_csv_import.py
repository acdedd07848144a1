from decimal import Decimal

import pytest

from cashflow.domain.csv_import import (
    TEXT_FIELD_LIMITS,
    CsvFormatError,
    decode_csv_bytes,
    find_duplicate_flow_ids,
    map_csv_rows,
    missing_mapped_columns,
    read_csv_file,
    read_csv_text,
    transaction_values,
    validate_csv_row,
)
from cashflow.models import Transaction

MAPPING = {"date_due": "Date", "amount": "Amount", "direction": "Type", "currency": "Currency"}


def test_read_csv_text_sniffs_semicolons_and_skips_blank_lines() -> None:
    headers, rows = read_csv_text("Date;Amount;Type;Currency\n2026-01-05;1 500,00;INFLOW;PLN\n\n")

    assert headers == ["Date", "Amount", "Type", "Currency"]
    assert rows == [["2026-01-05", "1 500,00", "INFLOW", "PLN"]]


def test_read_csv_text_sniffs_commas() -> None:
    headers, rows = read_csv_text('Date,Amount,Type,Currency\n2026-01-05,"1,500.00",INFLOW,PLN\n')

    assert headers == ["Date", "Amount", "Type", "Currency"]
    assert rows[0][1] == "1,500.00"


@pytest.mark.parametrize(
    ("text", "message"),
    [("", "CSV file is empty"), ("Date;Amount\n", "CSV file contains a header row but no data")],
)
def test_read_csv_text_rejects_empty_files(text: str, message: str) -> None:
    with pytest.raises(CsvFormatError, match=message):
        read_csv_text(text)


def test_decode_falls_back_to_windows_1250() -> None:
    payload = "Kontrahent;Kwota\nZażółć;1\n".encode("cp1250")

    assert "Zażółć" in decode_csv_bytes(payload)


def test_read_csv_file_strips_utf8_bom() -> None:
    headers, _ = read_csv_file("\ufeffDate;Amount\n2026-01-05;1\n".encode("utf-8"))

    assert headers[0] == "Date"


def test_map_csv_rows_uppercases_direction_and_blanks_to_none() -> None:
    mapped = map_csv_rows([["2026-01-05", " 10 ", "inflow", "PLN"]], ["Date", "Amount", "Type", "Currency"], MAPPING)

    assert mapped == [{"date_due": "2026-01-05", "amount": "10", "direction": "INFLOW", "currency": "PLN"}]


def test_validate_csv_row_reports_every_field() -> None:
    result = validate_csv_row(3, {"direction": "SIDEWAYS", "currency": "pln", "amount": "abc", "date_due": "soon"})

    assert not result.is_valid
    assert result.row_number == 3
    assert result.error_message == (
        "direction: Direction must be INFLOW, OUTFLOW, or IB; "
        "currency: Currency must be 3 uppercase letters (e.g., PLN, EUR, USD); "
        "amount: Invalid amount format: abc; "
        "date_due: Invalid date format: soon"
    )


def test_validate_csv_row_requires_fields() -> None:
    result = validate_csv_row(1, {})

    fields = [field for field, _ in result.errors]
    assert fields == ["direction", "currency", "amount", "date_due"]
    assert "Amount is required" in result.error_message


def test_validate_csv_row_rejects_oversized_text() -> None:
    row = {"direction": "INFLOW", "currency": "PLN", "amount": "10", "date_due": "2026-01-05"}

    assert validate_csv_row(1, {**row, "document": "d" * 255}).is_valid
    result = validate_csv_row(2, {**row, "document": "d" * 256, "payment_source": "p" * 65})
    assert result.error_message == (
        "document: Must be at most 255 characters; payment_source: Must be at most 64 characters"
    )


def test_text_field_limits_match_transaction_columns() -> None:
    columns = Transaction.__table__.c
    assert {name: columns[name].type.length for name in TEXT_FIELD_LIMITS} == TEXT_FIELD_LIMITS


def test_missing_mapped_columns() -> None:
    assert missing_mapped_columns(["Date", "Amount", "Type", "Currency"], MAPPING) == []
    assert missing_mapped_columns(["Date", "Amount"], MAPPING) == ["direction", "currency"]


def test_find_duplicate_flow_ids_points_to_first_occurrence() -> None:
    rows = [{"flow_id": "A"}, {"flow_id": None}, {"flow_id": "A"}, {"flow_id": "B"}]

    assert find_duplicate_flow_ids(rows) == {2: "Duplicate flow_id 'A' (first seen on row 1)"}


def test_transaction_values_for_foreign_currency_and_defaults() -> None:
    values = transaction_values(
        company_id="c1",
        import_id=7,
        dataset_code="DS",
        row_number=4,
        data={"date_due": "2026-01-13", "amount": "2 000,50", "direction": "INFLOW", "currency": "EUR"},
        base_currency="PLN",
    )

    assert values["flow_id"] == "import-7-row-4"
    assert values["amount_tx_cents"] == 200050
    assert values["amount_book_cents"] == 200050
    assert values["fx_rate"] == Decimal("1.0")
    assert values["time_slot"] == "2603"
    assert values["payment_source"] == "CSV_IMPORT"


def test_transaction_values_for_initial_balance() -> None:
    values = transaction_values(
        company_id="c1",
        import_id=7,
        dataset_code="DS",
        row_number=1,
        data={"date_due": "2026-01-01", "amount": "-50", "direction": "IB", "currency": "PLN", "flow_id": "IB-1"},
        base_currency="PLN",
    )

    assert values["direction"] == "OUTFLOW"
    assert values["time_slot"] == "IB"
    assert values["amount_book_cents"] == 5000
    assert values["fx_rate"] is None
