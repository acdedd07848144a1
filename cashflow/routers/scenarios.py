"""Scenario CRUD, duplication and locking endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from cashflow.core.pagination import page_request
from cashflow.core.security import AuthenticatedUser, require_company_member
from cashflow.db.session import get_db_session
from cashflow.models import Scenario
from cashflow.schemas.common import ERROR_RESPONSES
from cashflow.schemas.scenarios import (
    CreateScenarioFromImportRequest,
    CreateScenarioRequest,
    DeleteScenarioResponse,
    DuplicateScenarioRequest,
    LockScenarioResponse,
    ScenarioDetails,
    ScenarioList,
    ScenarioOut,
    UpdateScenarioRequest,
)
from cashflow.services import ScenarioService

router = APIRouter(
    prefix="/api/companies/{company_id}/scenarios",
    tags=["scenarios"],
    responses=ERROR_RESPONSES,
)


def get_scenario_service(session: Session = Depends(get_db_session)) -> ScenarioService:
    """Return a service instance per request."""

    return ScenarioService(session)


def _details(scenario: Scenario, overrides_count: int) -> ScenarioDetails:
    base = ScenarioOut.model_validate(scenario)
    return ScenarioDetails(**base.model_dump(), overrides_count=overrides_count)


@router.get("", response_model=ScenarioList)
def list_scenarios(
    company_id: str,
    status_filter: str | None = Query("all", alias="status"),
    search: str | None = Query(None, max_length=255),
    page: int = Query(1),
    page_size: int = Query(50),
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ScenarioService = Depends(get_scenario_service),
) -> ScenarioList:
    paging = page_request(page, page_size)
    scenarios, total = service.list_scenarios(
        company_id, status=status_filter, search=search, page=paging
    )
    return ScenarioList(
        scenarios=[ScenarioOut.model_validate(scenario) for scenario in scenarios],
        total=total,
        page=paging.page,
        page_size=paging.page_size,
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ScenarioDetails)
def create_scenario(
    company_id: str,
    payload: CreateScenarioRequest,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ScenarioService = Depends(get_scenario_service),
) -> ScenarioDetails:
    scenario = service.create_scenario(
        company_id,
        name=payload.name,
        import_id=payload.import_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        dataset_code=payload.dataset_code,
        base_scenario_id=payload.base_scenario_id,
    )
    return _details(scenario, 0)


@router.post("/from-import", status_code=status.HTTP_201_CREATED, response_model=ScenarioDetails)
def create_scenario_from_import(
    company_id: str,
    payload: CreateScenarioFromImportRequest,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ScenarioService = Depends(get_scenario_service),
) -> ScenarioDetails:
    scenario = service.create_from_import(
        company_id,
        payload.import_id,
        payload.name,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    return _details(scenario, 0)


@router.get("/{scenario_id}", response_model=ScenarioDetails)
def get_scenario(
    company_id: str,
    scenario_id: int,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ScenarioService = Depends(get_scenario_service),
) -> ScenarioDetails:
    view = service.get_details(company_id, scenario_id)
    return _details(view.scenario, view.overrides_count)


@router.patch("/{scenario_id}", response_model=ScenarioOut)
def update_scenario(
    company_id: str,
    scenario_id: int,
    payload: UpdateScenarioRequest,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ScenarioService = Depends(get_scenario_service),
) -> ScenarioOut:
    scenario = service.update_scenario(
        company_id,
        scenario_id,
        name=payload.name,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    return ScenarioOut.model_validate(scenario)


@router.delete("/{scenario_id}", response_model=DeleteScenarioResponse)
def delete_scenario(
    company_id: str,
    scenario_id: int,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ScenarioService = Depends(get_scenario_service),
) -> DeleteScenarioResponse:
    scenario = service.delete_scenario(company_id, scenario_id)
    return DeleteScenarioResponse(id=scenario.id)


@router.post("/{scenario_id}/duplicate", status_code=status.HTTP_201_CREATED, response_model=ScenarioDetails)
def duplicate_scenario(
    company_id: str,
    scenario_id: int,
    payload: DuplicateScenarioRequest,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ScenarioService = Depends(get_scenario_service),
) -> ScenarioDetails:
    view = service.duplicate_scenario(company_id, scenario_id, payload.name)
    return _details(view.scenario, view.overrides_count)


@router.post("/{scenario_id}/lock", response_model=LockScenarioResponse)
def lock_scenario(
    company_id: str,
    scenario_id: int,
    user: AuthenticatedUser = Depends(require_company_member),
    service: ScenarioService = Depends(get_scenario_service),
) -> LockScenarioResponse:
    scenario = service.lock_scenario(company_id, scenario_id, user.user_id)
    return LockScenarioResponse(
        id=scenario.id,
        status=scenario.status,
        locked_at=scenario.locked_at,
        locked_by=scenario.locked_by,
    )


__all__ = ["router", "get_scenario_service"]
