"""Schemas for per-transaction scenario overrides."""
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, model_validator

from .common import ApiModel, NonNegativeCents

FlowId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class OverrideChange(ApiModel):
    """New effective values. An explicit ``null`` clears a previously set value."""

    new_date_due: date | None = None
    new_amount_book_cents: NonNegativeCents | None = None

    @model_validator(mode="after")
    def _require_a_value(self):
        provided = self.model_fields_set & {"new_date_due", "new_amount_book_cents"}
        if not provided:
            raise ValueError("At least one of new_date_due or new_amount_book_cents is required")
        return self


class BatchOverrideItem(OverrideChange):
    flow_id: FlowId


class BatchOverrideRequest(ApiModel):
    overrides: list[BatchOverrideItem] = Field(min_length=1, max_length=100)


class OverrideOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    scenario_id: int
    flow_id: str
    original_date_due: date
    original_amount_book_cents: int
    new_date_due: date | None = None
    new_amount_book_cents: int | None = None
    created_at: datetime
    updated_at: datetime | None = None


class OverrideSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    flow_id: str
    new_date_due: date | None = None
    new_amount_book_cents: int | None = None


class BatchOverrideResponse(BaseModel):
    updated_count: int
    overrides: list[OverrideSummary]


class OverrideList(BaseModel):
    scenario_id: int
    overrides: list[OverrideOut]
    total: int
