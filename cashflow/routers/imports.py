"""CSV import endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from cashflow.core.errors import FieldError, ValidationError
from cashflow.core.pagination import page_request
from cashflow.core.security import AuthenticatedUser, require_company_member
from cashflow.db.session import get_db_session
from cashflow.schemas.common import ERROR_RESPONSES
from cashflow.schemas.imports import (
    ColumnMapping,
    ImportList,
    ImportOut,
    ImportRequest,
    ImportResult,
    ImportStatusOut,
    RowError,
)
from cashflow.services import ImportService
from cashflow.services.imports_service import ImportOutcome, error_entry

router = APIRouter(
    prefix="/api/companies/{company_id}/imports",
    tags=["imports"],
    responses=ERROR_RESPONSES,
)


def get_import_service(session: Session = Depends(get_db_session)) -> ImportService:
    """Return a service instance per request."""

    return ImportService(session)


def _result(outcome: ImportOutcome, preview_limit: int = 10) -> ImportResult:
    record = outcome.record
    return ImportResult(
        import_id=record.id,
        status=record.status,
        message=outcome.message,
        dataset_code=record.dataset_code,
        total_rows=record.total_rows,
        valid_rows=record.valid_rows,
        invalid_rows=record.invalid_rows,
        transaction_count=record.inserted_transactions_count,
        scenario_id=outcome.scenario_id,
        errors=[RowError(**error_entry(row)) for row in outcome.invalid[:preview_limit]],
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ImportResult)
def create_import(
    company_id: str,
    payload: ImportRequest,
    user: AuthenticatedUser = Depends(require_company_member),
    service: ImportService = Depends(get_import_service),
) -> ImportResult:
    outcome = service.run_import(
        company_id,
        dataset_code=payload.dataset_code,
        headers=payload.csv_headers,
        rows=payload.csv_data,
        column_mapping=payload.column_mapping.as_dict(),
        skip_invalid_rows=payload.skip_invalid_rows,
        file_name=payload.file_name,
        uploaded_by=user.user_id,
    )
    return _result(outcome)


@router.post("/upload", status_code=status.HTTP_201_CREATED, response_model=ImportResult)
def upload_import(
    company_id: str,
    file: UploadFile = File(...),
    dataset_code: str = Form(...),
    column_mapping: str = Form(...),
    skip_invalid_rows: bool = Form(False),
    user: AuthenticatedUser = Depends(require_company_member),
    service: ImportService = Depends(get_import_service),
) -> ImportResult:
    """Multipart variant: the CSV is decoded server side and the mapping is a JSON form field."""

    try:
        mapping = ColumnMapping.model_validate_json(column_mapping)
    except PydanticValidationError as exc:
        details = [
            FieldError(".".join(["column_mapping", *(str(part) for part in error["loc"])]), error["msg"])
            for error in exc.errors()
        ]
        raise ValidationError("Invalid column mapping", details) from exc
    payload = file.file.read()
    outcome = service.run_file_import(
        company_id,
        payload,
        dataset_code=dataset_code.strip(),
        column_mapping=mapping.as_dict(),
        skip_invalid_rows=skip_invalid_rows,
        file_name=file.filename,
        uploaded_by=user.user_id,
    )
    return _result(outcome)


@router.get("", response_model=ImportList)
def list_imports(
    company_id: str,
    status_filter: str | None = Query(None, alias="status"),
    page: int = Query(1),
    page_size: int = Query(50),
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ImportService = Depends(get_import_service),
) -> ImportList:
    records, total = service.list_imports(
        company_id, status=status_filter, page=page_request(page, page_size)
    )
    return ImportList(
        imports=[ImportOut.model_validate(record, from_attributes=True) for record in records],
        total=total,
    )


@router.get("/{import_id}/status", response_model=ImportStatusOut)
def get_import_status(
    company_id: str,
    import_id: int,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ImportService = Depends(get_import_service),
) -> ImportStatusOut:
    progress = service.get_status(company_id, import_id)
    base = ImportOut.model_validate(progress.record, from_attributes=True)
    return ImportStatusOut(
        **base.model_dump(),
        progress=progress.progress,
        error_report_json=progress.record.error_report_json,
        errors=[RowError(**error) for error in progress.errors],
    )


__all__ = ["router", "get_import_service"]
