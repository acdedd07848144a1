"""Override endpoints nested under a scenario."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cashflow.core.security import AuthenticatedUser, require_company_member
from cashflow.db.session import get_db_session
from cashflow.schemas.common import ERROR_RESPONSES
from cashflow.schemas.overrides import (
    BatchOverrideRequest,
    BatchOverrideResponse,
    OverrideChange,
    OverrideList,
    OverrideOut,
    OverrideSummary,
)
from cashflow.services import OverrideInput, OverrideService
from cashflow.services.overrides_service import CHANGE_FIELDS

router = APIRouter(
    prefix="/api/companies/{company_id}/scenarios/{scenario_id}/overrides",
    tags=["overrides"],
    responses=ERROR_RESPONSES,
)


def get_override_service(session: Session = Depends(get_db_session)) -> OverrideService:
    """Return a service instance per request."""

    return OverrideService(session)


def _as_input(flow_id: str, change: OverrideChange) -> OverrideInput:
    return OverrideInput(
        flow_id=flow_id,
        new_date_due=change.new_date_due,
        new_amount_book_cents=change.new_amount_book_cents,
        fields_set=frozenset(change.model_fields_set.intersection(CHANGE_FIELDS)),
    )


@router.get("", response_model=OverrideList)
def list_overrides(
    company_id: str,
    scenario_id: int,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: OverrideService = Depends(get_override_service),
) -> OverrideList:
    overrides = service.list_overrides(company_id, scenario_id)
    return OverrideList(
        scenario_id=scenario_id,
        overrides=[OverrideOut.model_validate(item) for item in overrides],
        total=len(overrides),
    )


@router.put("/{flow_id}", response_model=OverrideOut)
def upsert_override(
    company_id: str,
    scenario_id: int,
    flow_id: str,
    payload: OverrideChange,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: OverrideService = Depends(get_override_service),
) -> OverrideOut:
    override = service.upsert_override(company_id, scenario_id, _as_input(flow_id, payload))
    return OverrideOut.model_validate(override)


@router.post("/batch", response_model=BatchOverrideResponse)
def batch_update_overrides(
    company_id: str,
    scenario_id: int,
    payload: BatchOverrideRequest,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: OverrideService = Depends(get_override_service),
) -> BatchOverrideResponse:
    saved = service.batch_update(
        company_id,
        scenario_id,
        [_as_input(item.flow_id, item) for item in payload.overrides],
    )
    return BatchOverrideResponse(
        updated_count=len(saved),
        overrides=[OverrideSummary.model_validate(item) for item in saved],
    )


__all__ = ["router", "get_override_service"]
