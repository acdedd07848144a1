"""Imported cash-flow transactions. Rows are immutable once inserted."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import ID_TYPE, Base, utcnow

INITIAL_BALANCE_SLOT = "IB"


class TransactionDirection(str, Enum):
    INFLOW = "INFLOW"
    OUTFLOW = "OUTFLOW"


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint("import_id", "flow_id", name="uq_transactions_import_flow"),
        CheckConstraint("amount_tx_cents >= 0", name="ck_transactions_amount_tx"),
        CheckConstraint("amount_book_cents >= 0", name="ck_transactions_amount_book"),
        CheckConstraint("direction IN ('INFLOW', 'OUTFLOW')", name="ck_transactions_direction"),
        Index("ix_transactions_company_import", "company_id", "import_id"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    import_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("imports.id", ondelete="CASCADE"), nullable=False
    )
    dataset_code: Mapped[str] = mapped_column(String(100), nullable=False)
    flow_id: Mapped[str] = mapped_column(String(255), nullable=False)
    direction: Mapped[str] = mapped_column(String(8), nullable=False)
    time_slot: Mapped[str] = mapped_column(String(8), nullable=False)
    amount_tx_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency_tx: Mapped[str] = mapped_column(String(3), nullable=False)
    fx_rate: Mapped[Decimal | None] = mapped_column(Numeric(18, 8))
    amount_book_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    date_due: Mapped[date] = mapped_column(Date, nullable=False)
    project: Mapped[str | None] = mapped_column(String(255))
    counterparty: Mapped[str | None] = mapped_column(String(255))
    document: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    payment_source: Mapped[str] = mapped_column(String(64), nullable=False, default="CSV_IMPORT")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.current_timestamp()
    )

    @property
    def is_initial_balance(self) -> bool:
        return self.time_slot == INITIAL_BALANCE_SLOT
