"""Schemas for CSV imports."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator

from .common import ApiModel, DatasetCode

ColumnName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class ColumnMapping(ApiModel):
    """CSV header name for each system field."""

    date_due: ColumnName
    amount: ColumnName
    direction: ColumnName
    currency: ColumnName
    flow_id: ColumnName | None = None
    counterparty: ColumnName | None = None
    description: ColumnName | None = None
    project: ColumnName | None = None
    document: ColumnName | None = None
    payment_source: ColumnName | None = None

    def as_dict(self) -> dict[str, str | None]:
        return self.model_dump()


class ImportRequest(ApiModel):
    dataset_code: DatasetCode
    column_mapping: ColumnMapping
    skip_invalid_rows: bool = False
    file_name: Annotated[str, StringConstraints(strip_whitespace=True, max_length=255)] | None = None
    csv_headers: list[str] = Field(min_length=1)
    csv_data: list[list[str]] = Field(min_length=1)

    @field_validator("csv_data", mode="before")
    @classmethod
    def _stringify_cells(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        return [
            ["" if cell is None else str(cell) for cell in row] if isinstance(row, list) else row
            for row in value
        ]


class RowError(BaseModel):
    row_number: int
    error_message: str | None = None
    raw_data: dict[str, Any] | None = None


class ImportResult(BaseModel):
    import_id: int
    status: Literal["pending", "processing", "completed", "failed"]
    message: str
    dataset_code: str
    total_rows: int
    valid_rows: int
    invalid_rows: int
    transaction_count: int
    scenario_id: int | None = None
    errors: list[RowError] = []


class ImportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: str
    dataset_code: str
    status: str
    file_name: str | None = None
    total_rows: int
    valid_rows: int
    invalid_rows: int
    inserted_transactions_count: int
    uploaded_by: int | None = None
    created_at: datetime


class ImportStatusOut(ImportOut):
    progress: int
    error_report_json: list[dict[str, Any]] | None = None
    errors: list[RowError] = []


class ImportList(BaseModel):
    imports: list[ImportOut]
    total: int
