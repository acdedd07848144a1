"""Shared field types, the request base model and the error envelope."""
from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from cashflow.domain.csv_import import DATASET_CODE_PATTERN

ScenarioName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
DatasetCode = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=1, max_length=100, pattern=DATASET_CODE_PATTERN.pattern),
]
PositiveId = Annotated[int, Field(gt=0)]
NonNegativeCents = Annotated[int, Field(ge=0)]


class ApiModel(BaseModel):
    """Base for request bodies: unknown fields are rejected, aliases accepted."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ErrorDetail(BaseModel):
    field: str
    message: str


class ErrorBody(BaseModel):
    code: str
    message: str
    details: list[ErrorDetail] | None = None


class ErrorEnvelope(BaseModel):
    error: ErrorBody


ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status: {"model": ErrorEnvelope, "description": description}
    for status, description in (
        (400, "Validation error"),
        (401, "Authentication required"),
        (403, "Not a member of the company"),
        (404, "Not found"),
        (409, "Conflict with the current state"),
    )
}
