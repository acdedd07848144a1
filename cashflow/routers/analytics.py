"""Weekly aggregates, running balance, totals and Excel export for a scenario."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from cashflow.core.security import AuthenticatedUser, require_company_member
from cashflow.db.session import get_db_session
from cashflow.schemas.analytics import (
    RunningBalancePoint,
    RunningBalanceResponse,
    ScenarioSummaryResponse,
    TopTransaction,
    WeeklyAggregate,
    WeeklyAggregatesResponse,
)
from cashflow.schemas.common import ERROR_RESPONSES
from cashflow.services import AnalyticsService, ExportService

router = APIRouter(
    prefix="/api/companies/{company_id}/scenarios/{scenario_id}",
    tags=["analytics"],
    responses=ERROR_RESPONSES,
)


def get_analytics_service(session: Session = Depends(get_db_session)) -> AnalyticsService:
    """Return a service instance per request."""

    return AnalyticsService(session)


def get_export_service(session: Session = Depends(get_db_session)) -> ExportService:
    return ExportService(session)


@router.get("/weekly-aggregates", response_model=WeeklyAggregatesResponse)
def weekly_aggregates(
    company_id: str,
    scenario_id: int,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: AnalyticsService = Depends(get_analytics_service),
) -> WeeklyAggregatesResponse:
    view = service.weekly_aggregates(company_id, scenario_id)
    weeks = [
        WeeklyAggregate(
            week_index=week.week_index,
            week_label=week.week_label,
            week_start_date=week.week_start_date,
            inflow_total_book_cents=week.inflow_total_book_cents,
            outflow_total_book_cents=week.outflow_total_book_cents,
            inflow_top5=[TopTransaction.model_validate(item) for item in week.inflow_top5],
            outflow_top5=[TopTransaction.model_validate(item) for item in week.outflow_top5],
            inflow_other_book_cents=week.inflow_other_book_cents,
            outflow_other_book_cents=week.outflow_other_book_cents,
        )
        for week in view.weeks
    ]
    return WeeklyAggregatesResponse(scenario_id=scenario_id, base_currency=view.base_currency, weeks=weeks)


@router.get("/running-balance", response_model=RunningBalanceResponse)
def running_balance(
    company_id: str,
    scenario_id: int,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: AnalyticsService = Depends(get_analytics_service),
) -> RunningBalanceResponse:
    view = service.running_balance(company_id, scenario_id)
    return RunningBalanceResponse(
        scenario_id=scenario_id,
        base_currency=view.base_currency,
        points=[RunningBalancePoint.model_validate(point) for point in view.points],
    )


@router.get("/summary", response_model=ScenarioSummaryResponse)
def scenario_summary(
    company_id: str,
    scenario_id: int,
    _user: AuthenticatedUser = Depends(require_company_member),
    service: AnalyticsService = Depends(get_analytics_service),
) -> ScenarioSummaryResponse:
    view = service.summary(company_id, scenario_id)
    totals = view.totals
    return ScenarioSummaryResponse(
        scenario_id=scenario_id,
        base_currency=view.base_currency,
        total_inflow_book_cents=totals.total_inflow_book_cents,
        total_outflow_book_cents=totals.total_outflow_book_cents,
        net_book_cents=totals.net_book_cents,
        total_transactions=totals.total_transactions,
        overridden_transactions=totals.overridden_transactions,
        earliest_date=totals.earliest_date,
        latest_date=totals.latest_date,
    )


@router.get("/export")
def export_scenario(
    company_id: str,
    scenario_id: int,
    include_charts: bool = Query(True, alias="includeCharts"),
    _user: AuthenticatedUser = Depends(require_company_member),
    service: ExportService = Depends(get_export_service),
) -> Response:
    export = service.export_scenario(company_id, scenario_id, include_charts=include_charts)
    return Response(
        content=export.content,
        media_type=export.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export.filename}"'},
    )


__all__ = ["router", "get_analytics_service", "get_export_service"]
