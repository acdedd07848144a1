"""Schemas for scenario CRUD, duplication and locking."""
from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from .common import ApiModel, DatasetCode, PositiveId, ScenarioName


class ScenarioOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: str
    import_id: int
    dataset_code: str
    name: str
    status: Literal["Draft", "Locked"]
    base_scenario_id: int | None = None
    start_date: date
    end_date: date
    locked_at: datetime | None = None
    locked_by: int | None = None
    created_at: datetime
    updated_at: datetime | None = None


class ScenarioDetails(ScenarioOut):
    overrides_count: int = 0


class ScenarioList(BaseModel):
    scenarios: list[ScenarioOut]
    total: int
    page: int = 1
    page_size: int = 50


class CreateScenarioRequest(ApiModel):
    name: ScenarioName
    import_id: PositiveId
    dataset_code: DatasetCode | None = None
    start_date: date
    end_date: date
    base_scenario_id: PositiveId | None = None


class CreateScenarioFromImportRequest(ApiModel):
    import_id: PositiveId
    name: ScenarioName
    start_date: date | None = None
    end_date: date | None = None


class UpdateScenarioRequest(ApiModel):
    name: ScenarioName | None = None
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def _require_change(self) -> "UpdateScenarioRequest":
        if self.name is None and self.start_date is None and self.end_date is None:
            raise ValueError("At least one of name, start_date or end_date is required")
        return self


class DuplicateScenarioRequest(ApiModel):
    name: ScenarioName


class LockScenarioResponse(BaseModel):
    id: int
    status: Literal["Locked"]
    locked_at: datetime
    locked_by: int


class DeleteScenarioResponse(BaseModel):
    id: int
    deleted: bool = True
