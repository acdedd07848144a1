"""Synchronous CSV import pipeline: rows, transactions and the auto-created scenario."""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from cashflow.core.config import ImportSettings, get_settings
from cashflow.core.errors import FieldError, NotFoundError, ValidationError
from cashflow.core.logger import get_logger, log_context, timeit
from cashflow.core.pagination import PageRequest, chunked
from cashflow.domain.csv_import import (
    DATASET_CODE_PATTERN,
    CsvFormatError,
    RowValidation,
    find_duplicate_flow_ids,
    map_csv_rows,
    missing_mapped_columns,
    read_csv_file,
    transaction_values,
    validate_csv_row,
)
from cashflow.models import Company, Import, ImportStatus
from cashflow.repositories import ImportRepository, ScenarioRepository

from .scenarios_service import ScenarioService

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class ImportOutcome:
    record: Import
    invalid: list[RowValidation] = field(default_factory=list)
    scenario_id: int | None = None

    @property
    def message(self) -> str:
        if self.record.invalid_rows:
            return f"Import processed with {self.record.invalid_rows} validation errors"
        return "Import completed successfully"


@dataclass(frozen=True, slots=True)
class ImportProgress:
    record: Import
    progress: int
    errors: list[dict[str, Any]]


def error_entry(row: RowValidation) -> dict[str, Any]:
    return {
        "row_number": row.row_number,
        "error_message": row.error_message,
        "raw_data": row.data,
    }


def import_progress(record: Import) -> int:
    if not record.total_rows:
        return 0
    return round((record.valid_rows + record.invalid_rows) / record.total_rows * 100)


def auto_scenario_name(dataset_code: str, today: date | None = None) -> str:
    return f"Import {dataset_code} - {(today or date.today()).isoformat()}"


class ImportService:
    """Validate, persist and materialise CSV imports for one company."""

    def __init__(
        self,
        session: Session,
        repository: ImportRepository | None = None,
        settings: ImportSettings | None = None,
    ) -> None:
        self._session = session
        self._repository = repository or ImportRepository(session)
        self._settings = settings or get_settings().imports

    # reads

    def get_import(self, company_id: str, import_id: int) -> Import:
        record = self._repository.get(company_id, import_id)
        if record is None:
            raise NotFoundError.for_entity("Import", import_id)
        return record

    def get_status(self, company_id: str, import_id: int) -> ImportProgress:
        record = self.get_import(company_id, import_id)
        rows = self._repository.invalid_rows(company_id, import_id, self._settings.status_error_limit)
        errors = [
            {"row_number": row.row_number, "error_message": row.error_message, "raw_data": row.raw_data}
            for row in rows
        ]
        return ImportProgress(record=record, progress=import_progress(record), errors=errors)

    def list_imports(
        self, company_id: str, *, status: str | None = None, page: PageRequest | None = None
    ) -> tuple[list[Import], int]:
        if status and status not in {item.value for item in ImportStatus}:
            raise ValidationError.for_field(
                "status", "Status must be one of: pending, processing, completed, failed"
            )
        return self._repository.list_imports(
            company_id,
            status=status,
            offset=page.offset if page else 0,
            limit=page.page_size if page else None,
        )

    # pipeline steps

    def create_import(
        self,
        company_id: str,
        dataset_code: str,
        *,
        file_name: str | None = None,
        uploaded_by: int | None = None,
    ) -> Import:
        if not DATASET_CODE_PATTERN.match(dataset_code or ""):
            raise ValidationError.for_field(
                "dataset_code", "Dataset code may only contain letters, digits, '_' and '-'"
            )
        record = self._repository.add(
            Import(
                company_id=company_id,
                dataset_code=dataset_code,
                file_name=file_name,
                uploaded_by=uploaded_by,
                status=ImportStatus.PENDING.value,
            )
        )
        self._session.commit()
        LOGGER.info("Created import id=%s for dataset %s", record.id, dataset_code)
        return record

    def process_rows(
        self,
        record: Import,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        column_mapping: Mapping[str, str | None],
        *,
        skip_invalid_rows: bool = False,
    ) -> list[RowValidation]:
        """Validate and store every row, then settle the import's status.

        Returns the invalid rows. The import is ``failed`` when invalid rows
        exist and ``skip_invalid_rows`` is false, ``completed`` otherwise.
        """

        record.status = ImportStatus.PROCESSING.value
        record.total_rows = len(rows)
        self._session.flush()

        mapped = map_csv_rows(rows, headers, column_mapping)
        duplicates = find_duplicate_flow_ids(mapped)
        results: list[RowValidation] = []
        for position, data in enumerate(mapped):
            result = validate_csv_row(position + 1, data)
            if position in duplicates:
                result = RowValidation(
                    row_number=result.row_number,
                    data=result.data,
                    errors=result.errors + (("flow_id", duplicates[position]),),
                )
            results.append(result)

        for batch in chunked(results, self._settings.batch_size):
            self._repository.insert_rows(
                [
                    {
                        "company_id": record.company_id,
                        "import_id": record.id,
                        "row_number": result.row_number,
                        "raw_data": result.data,
                        "is_valid": result.is_valid,
                        "error_message": result.error_message,
                    }
                    for result in batch
                ]
            )

        invalid = [result for result in results if not result.is_valid]
        record.valid_rows = len(results) - len(invalid)
        record.invalid_rows = len(invalid)
        if invalid and not skip_invalid_rows:
            record.status = ImportStatus.FAILED.value
        else:
            record.status = ImportStatus.COMPLETED.value
        record.error_report_json = [error_entry(row) for row in invalid] or None
        self._session.commit()
        LOGGER.info(
            "Processed %s rows: %s valid, %s invalid, status %s",
            record.total_rows,
            record.valid_rows,
            record.invalid_rows,
            record.status,
        )
        return invalid

    def create_transactions(self, record: Import, base_currency: str, *, commit: bool = True) -> int:
        """Insert one transaction per valid row and return how many were created."""

        inserted = 0
        with timeit("Transaction creation", logger=LOGGER, unit="transactions", session=self._session) as timer:
            for batch in self._repository.iter_valid_rows(
                record.company_id, record.id, self._settings.batch_size
            ):
                values = [
                    transaction_values(
                        company_id=record.company_id,
                        import_id=record.id,
                        dataset_code=record.dataset_code,
                        row_number=row.row_number,
                        data=row.raw_data,
                        base_currency=base_currency,
                    )
                    for row in batch
                ]
                self._repository.insert_transactions(values)
                inserted += len(values)
                timer.add(len(values))
        record.inserted_transactions_count = inserted
        if commit:
            self._session.commit()
        return inserted

    def _unique_scenario_name(self, company_id: str, base_name: str) -> str:
        scenarios = ScenarioRepository(self._session)
        name = base_name
        suffix = 2
        while scenarios.name_exists(company_id, name):
            name = f"{base_name} ({suffix})"
            suffix += 1
        return name

    # orchestration

    def run_import(
        self,
        company_id: str,
        *,
        dataset_code: str,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        column_mapping: Mapping[str, str | None],
        skip_invalid_rows: bool = False,
        file_name: str | None = None,
        uploaded_by: int | None = None,
    ) -> ImportOutcome:
        """Run the whole pipeline for already parsed CSV content."""

        missing = missing_mapped_columns(headers, column_mapping)
        if missing:
            raise ValidationError(
                "Mapped columns are missing from the CSV headers",
                [FieldError(f"column_mapping.{name}", "Column not found in CSV headers") for name in missing],
            )
        company = self._session.get(Company, company_id)
        if company is None:
            raise NotFoundError.for_entity("Company", company_id)

        record = self.create_import(
            company_id, dataset_code, file_name=file_name, uploaded_by=uploaded_by
        )
        with log_context.scoped(company_id=company_id, import_id=record.id):
            try:
                with timeit(f"Import {dataset_code}", logger=LOGGER, unit="rows", total=len(rows)):
                    invalid = self.process_rows(
                        record, headers, rows, column_mapping, skip_invalid_rows=skip_invalid_rows
                    )
                    outcome = ImportOutcome(record=record, invalid=invalid)
                    if record.status == ImportStatus.COMPLETED.value and record.valid_rows:
                        # Transactions and the auto scenario land in one commit.
                        self.create_transactions(record, company.base_currency, commit=False)
                        name = self._unique_scenario_name(company_id, auto_scenario_name(dataset_code))
                        scenario = ScenarioService(self._session, imports=self._repository).create_from_import(
                            company_id, record.id, name, commit=False
                        )
                        self._session.commit()
                        outcome.scenario_id = scenario.id
            except Exception:
                self._session.rollback()
                self._mark_failed(record.id, company_id)
                raise
        return outcome

    def run_file_import(
        self,
        company_id: str,
        payload: bytes,
        *,
        dataset_code: str,
        column_mapping: Mapping[str, str | None],
        skip_invalid_rows: bool = False,
        file_name: str | None = None,
        uploaded_by: int | None = None,
    ) -> ImportOutcome:
        """Decode an uploaded CSV file and run the pipeline on it."""

        try:
            headers, rows = read_csv_file(payload, default_delimiter=self._settings.csv_delimiter)
        except CsvFormatError as exc:
            raise ValidationError.for_field("file", str(exc)) from exc
        return self.run_import(
            company_id,
            dataset_code=dataset_code,
            headers=headers,
            rows=rows,
            column_mapping=column_mapping,
            skip_invalid_rows=skip_invalid_rows,
            file_name=file_name,
            uploaded_by=uploaded_by,
        )

    def _mark_failed(self, import_id: int, company_id: str) -> None:
        record = self._repository.get(company_id, import_id)
        if record is None:
            return
        record.status = ImportStatus.FAILED.value
        self._session.commit()
        LOGGER.error("Import id=%s marked failed after an unexpected error", import_id)


__all__ = [
    "ImportOutcome",
    "ImportProgress",
    "ImportService",
    "auto_scenario_name",
    "error_entry",
    "import_progress",
]
