"""CSV decoding, column mapping and per-row validation for transaction imports."""
from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Sequence

from .amounts import amount_to_cents, parse_amount, parse_due_date
from .weeks import time_slot

REQUIRED_FIELDS: tuple[str, ...] = ("date_due", "amount", "direction", "currency")
OPTIONAL_FIELDS: tuple[str, ...] = (
    "flow_id",
    "counterparty",
    "description",
    "project",
    "document",
    "payment_source",
)
SYSTEM_FIELDS: tuple[str, ...] = REQUIRED_FIELDS + OPTIONAL_FIELDS
VALID_DIRECTIONS = frozenset({"INFLOW", "OUTFLOW", "IB"})
# Widths of the transaction columns the optional text fields land in.
TEXT_FIELD_LIMITS: dict[str, int] = {
    "flow_id": 255,
    "counterparty": 255,
    "project": 255,
    "document": 255,
    "payment_source": 64,
}
DATASET_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,100}$")

_CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
_ENCODINGS = ("utf-8-sig", "cp1250", "iso-8859-2")


class CsvFormatError(ValueError):
    """The uploaded file cannot be read as a CSV table."""


@dataclass(frozen=True, slots=True)
class RowValidation:
    row_number: int
    data: dict[str, str | None]
    errors: tuple[tuple[str, str], ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def error_message(self) -> str | None:
        if not self.errors:
            return None
        return "; ".join(f"{field}: {message}" for field, message in self.errors)


def decode_csv_bytes(payload: bytes) -> str:
    for encoding in _ENCODINGS:
        try:
            return payload.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise CsvFormatError("Unable to decode file; expected UTF-8 or Windows-1250 text")


def _sniff_delimiter(sample: str, default: str) -> str:
    try:
        return csv.Sniffer().sniff(sample, delimiters=";,").delimiter
    except csv.Error:
        return default


def read_csv_text(
    text: str,
    delimiter: str | None = None,
    *,
    default_delimiter: str = ";",
) -> tuple[list[str], list[list[str]]]:
    """Split CSV ``text`` into a header row and data rows, skipping blank lines.

    Without an explicit ``delimiter`` the header line is sniffed for ``;`` or ``,``.
    """

    if not text.strip():
        raise CsvFormatError("CSV file is empty")
    first_line = text.splitlines()[0]
    resolved = delimiter or _sniff_delimiter(first_line, default_delimiter)
    reader = csv.reader(io.StringIO(text), delimiter=resolved)
    rows = [row for row in reader if any(cell.strip() for cell in row)]
    if not rows:
        raise CsvFormatError("CSV file is empty")
    headers = [header.strip() for header in rows[0]]
    data = rows[1:]
    if not data:
        raise CsvFormatError("CSV file contains a header row but no data")
    return headers, data


def read_csv_file(
    payload: bytes,
    delimiter: str | None = None,
    *,
    default_delimiter: str = ";",
) -> tuple[list[str], list[list[str]]]:
    return read_csv_text(decode_csv_bytes(payload), delimiter, default_delimiter=default_delimiter)


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def map_csv_row(
    row: Sequence[str],
    header_index: Mapping[str, int],
    column_mapping: Mapping[str, str | None],
) -> dict[str, str | None]:
    mapped: dict[str, str | None] = {}
    for system_field in SYSTEM_FIELDS:
        column = column_mapping.get(system_field)
        if not column:
            continue
        position = header_index.get(column)
        if position is None:
            continue
        mapped[system_field] = _clean(row[position]) if position < len(row) else None
    if mapped.get("direction"):
        mapped["direction"] = mapped["direction"].upper()
    return mapped


def map_csv_rows(
    rows: Iterable[Sequence[str]],
    headers: Sequence[str],
    column_mapping: Mapping[str, str | None],
) -> list[dict[str, str | None]]:
    """Translate raw CSV rows into dictionaries keyed by system field name."""

    header_index: dict[str, int] = {}
    for position, header in enumerate(headers):
        header_index.setdefault(header.strip(), position)
    return [map_csv_row(row, header_index, column_mapping) for row in rows]


def validate_csv_row(row_number: int, data: Mapping[str, str | None]) -> RowValidation:
    errors: list[tuple[str, str]] = []

    direction = data.get("direction")
    if not direction:
        errors.append(("direction", "Direction is required"))
    elif direction not in VALID_DIRECTIONS:
        errors.append(("direction", "Direction must be INFLOW, OUTFLOW, or IB"))

    currency = data.get("currency")
    if not currency:
        errors.append(("currency", "Currency is required"))
    elif not _CURRENCY_PATTERN.match(currency):
        errors.append(("currency", "Currency must be 3 uppercase letters (e.g., PLN, EUR, USD)"))

    amount = data.get("amount")
    if not amount:
        errors.append(("amount", "Amount is required"))
    else:
        try:
            parse_amount(amount)
        except ValueError:
            errors.append(("amount", f"Invalid amount format: {amount}"))
        else:
            try:
                amount_to_cents(amount)
            except ValueError:
                errors.append(("amount", "Amount is too large"))

    date_due = data.get("date_due")
    if not date_due:
        errors.append(("date_due", "Date is required"))
    else:
        try:
            parse_due_date(date_due)
        except ValueError:
            errors.append(("date_due", f"Invalid date format: {date_due}"))

    for field_name, limit in TEXT_FIELD_LIMITS.items():
        value = data.get(field_name)
        if value and len(value) > limit:
            errors.append((field_name, f"Must be at most {limit} characters"))

    return RowValidation(row_number=row_number, data=dict(data), errors=tuple(errors))


def missing_mapped_columns(
    headers: Sequence[str], column_mapping: Mapping[str, str | None]
) -> list[str]:
    """Required system fields whose mapped column is absent from ``headers``."""

    available = {header.strip() for header in headers}
    missing: list[str] = []
    for system_field in REQUIRED_FIELDS:
        column = column_mapping.get(system_field)
        if not column or column not in available:
            missing.append(system_field)
    return missing


def find_duplicate_flow_ids(rows: Sequence[Mapping[str, str | None]]) -> dict[int, str]:
    """Map 0-based row positions to an error for each repeated explicit ``flow_id``."""

    first_seen: dict[str, int] = {}
    duplicates: dict[int, str] = {}
    for position, row in enumerate(rows):
        flow_id = row.get("flow_id")
        if not flow_id:
            continue
        if flow_id in first_seen:
            duplicates[position] = (
                f"Duplicate flow_id '{flow_id}' (first seen on row {first_seen[flow_id] + 1})"
            )
        else:
            first_seen[flow_id] = position
    return duplicates


def transaction_values(
    *,
    company_id: str,
    import_id: int,
    dataset_code: str,
    row_number: int,
    data: Mapping[str, Any],
    base_currency: str,
) -> dict[str, Any]:
    """Column values for the transaction created from one valid import row.

    Foreign currency rows carry a placeholder ``fx_rate`` of 1.0 until real
    rates are sourced. Initial Balance rows keep the ``IB`` time slot and take
    their direction from the amount's sign.
    """

    amount = parse_amount(data.get("amount"))
    amount_tx_cents = amount_to_cents(amount)
    currency = (data.get("currency") or base_currency).upper()
    fx_rate = None if currency == base_currency else Decimal("1.0")
    if fx_rate is None:
        amount_book_cents = amount_tx_cents
    else:
        amount_book_cents = int((amount_tx_cents * fx_rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))

    due = parse_due_date(data.get("date_due"))
    direction = str(data.get("direction") or "").upper()
    if direction == "IB":
        direction = "INFLOW" if amount >= 0 else "OUTFLOW"
        slot = "IB"
    else:
        slot = time_slot(due)

    return {
        "company_id": company_id,
        "import_id": import_id,
        "dataset_code": dataset_code,
        "flow_id": data.get("flow_id") or f"import-{import_id}-row-{row_number}",
        "direction": direction,
        "time_slot": slot,
        "amount_tx_cents": amount_tx_cents,
        "currency_tx": currency,
        "fx_rate": fx_rate,
        "amount_book_cents": amount_book_cents,
        "date_due": due,
        "project": data.get("project"),
        "counterparty": data.get("counterparty"),
        "document": data.get("document"),
        "description": data.get("description"),
        "payment_source": data.get("payment_source") or "CSV_IMPORT",
        "is_active": True,
    }
