"""Queries over imports, their raw rows and the transactions they produced."""
from __future__ import annotations

from collections.abc import Iterator, Sequence
from datetime import date

from sqlalchemy import func, insert, select

from cashflow.models import Import, ImportRow, Transaction

from .base import BaseRepository


class ImportRepository(BaseRepository):
    def get(self, company_id: str, import_id: int) -> Import | None:
        statement = select(Import).where(Import.company_id == company_id, Import.id == import_id)
        return self._session.execute(statement).scalars().first()

    def list_imports(
        self,
        company_id: str,
        *,
        status: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[Import], int]:
        statement = select(Import).where(Import.company_id == company_id)
        if status:
            statement = statement.where(Import.status == status)
        total = self._count(statement)
        statement = statement.order_by(Import.created_at.desc(), Import.id.desc()).offset(offset)
        if limit is not None:
            statement = statement.limit(limit)
        return list(self._session.execute(statement).scalars()), total

    def add(self, record: Import) -> Import:
        self._session.add(record)
        self._session.flush()
        return record

    def insert_rows(self, rows: Sequence[dict]) -> None:
        """Bulk insert ``import_rows`` mappings."""

        if rows:
            self._session.execute(insert(ImportRow), list(rows))

    def insert_transactions(self, rows: Sequence[dict]) -> None:
        if rows:
            self._session.execute(insert(Transaction), list(rows))

    def invalid_rows(self, company_id: str, import_id: int, limit: int) -> list[ImportRow]:
        statement = (
            select(ImportRow)
            .where(
                ImportRow.company_id == company_id,
                ImportRow.import_id == import_id,
                ImportRow.is_valid.is_(False),
            )
            .order_by(ImportRow.row_number)
            .limit(limit)
        )
        return list(self._session.execute(statement).scalars())

    def iter_valid_rows(self, company_id: str, import_id: int, batch_size: int) -> Iterator[list[ImportRow]]:
        """Yield valid rows in ``row_number`` order, ``batch_size`` at a time."""

        last_row_number = 0
        while True:
            statement = (
                select(ImportRow)
                .where(
                    ImportRow.company_id == company_id,
                    ImportRow.import_id == import_id,
                    ImportRow.is_valid.is_(True),
                    ImportRow.row_number > last_row_number,
                )
                .order_by(ImportRow.row_number)
                .limit(batch_size)
            )
            batch = list(self._session.execute(statement).scalars())
            if not batch:
                return
            yield batch
            last_row_number = batch[-1].row_number

    def transactions_by_flow_ids(
        self, company_id: str, import_id: int, flow_ids: Sequence[str]
    ) -> dict[str, Transaction]:
        if not flow_ids:
            return {}
        statement = select(Transaction).where(
            Transaction.company_id == company_id,
            Transaction.import_id == import_id,
            Transaction.is_active.is_(True),
            Transaction.flow_id.in_(list(flow_ids)),
        )
        return {row.flow_id: row for row in self._session.execute(statement).scalars()}

    def transaction_date_range(self, company_id: str, import_id: int) -> tuple[date | None, date | None]:
        statement = select(func.min(Transaction.date_due), func.max(Transaction.date_due)).where(
            Transaction.company_id == company_id,
            Transaction.import_id == import_id,
            Transaction.is_active.is_(True),
        )
        earliest, latest = self._session.execute(statement).one()
        return self._coerce_optional_date(earliest), self._coerce_optional_date(latest)
