"""Parsing of CSV money amounts and due dates.

Amounts arrive in English (``1,234.56``), Polish (``1 234,56``) or accounting
(``(1234.56)``) notation. Signs are dropped when converting to cents because
the direction column carries inflow/outflow.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

_DECIMAL_COMMA = re.compile(r"^[^,]*,\d{1,2}$")
_WHITESPACE = re.compile(r"\s+")
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d.%m.%Y", "%d/%m/%Y", "%d-%m-%Y")
_CENT = Decimal("100")

# Cent columns are signed 64-bit integers.
MAX_CENTS = 2**63 - 1


def normalize_amount(value: str) -> str:
    text = str(value).strip()
    if text.startswith("(") and text.endswith(")"):
        text = "-" + text[1:-1]
    # \s covers the non-breaking space used as a thousands separator.
    text = _WHITESPACE.sub("", text)
    if _DECIMAL_COMMA.match(text):
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", "")
    return text


def parse_amount(value: str | int | float | Decimal | None) -> Decimal:
    """Return the signed amount in major units, raising ``ValueError`` when unparsable."""

    if value is None:
        raise ValueError("amount is required")
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    else:
        normalized = normalize_amount(value)
        if not normalized:
            raise ValueError("amount is required")
        try:
            parsed = Decimal(normalized)
        except InvalidOperation as exc:
            raise ValueError(f"Invalid amount format: {value}") from exc
    if not parsed.is_finite():
        raise ValueError(f"Invalid amount format: {value}")
    return parsed


def amount_to_cents(value: str | int | float | Decimal) -> int:
    """Absolute value of ``value`` in cents, rounded half-up.

    Raises ``ValueError`` when the result does not fit in ``MAX_CENTS``.
    """

    amount = abs(parse_amount(value))
    try:
        cents = int((amount * _CENT).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except InvalidOperation as exc:
        raise ValueError(f"Amount out of range: {value}") from exc
    if cents > MAX_CENTS:
        raise ValueError(f"Amount out of range: {value}")
    return cents


def cents_to_major(cents: int | None) -> Decimal:
    if cents is None:
        return Decimal("0.00")
    return (Decimal(cents) / _CENT).quantize(Decimal("0.01"))


def parse_due_date(value: str | date | None) -> date:
    """Parse ISO, slash and European dotted dates. Raises ``ValueError`` otherwise."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or not str(value).strip():
        raise ValueError("date is required")
    text = str(value).strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValueError(f"Invalid date format: {value}") from None
