"""Weekly aggregates, running balance and totals for a scenario."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from cashflow.core.errors import NotFoundError
from cashflow.core.logger import get_logger, log_context
from cashflow.domain.aggregation import WeeklyBucket, aggregate_weeks
from cashflow.models import Company, Scenario
from cashflow.repositories import AnalyticsRepository, BalancePoint, ScenarioRepository, ScenarioTotals

LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class WeeklyView:
    scenario: Scenario
    base_currency: str
    weeks: list[WeeklyBucket]


@dataclass(frozen=True, slots=True)
class BalanceView:
    scenario: Scenario
    base_currency: str
    points: list[BalancePoint]


@dataclass(frozen=True, slots=True)
class SummaryView:
    scenario: Scenario
    base_currency: str
    totals: ScenarioTotals


class AnalyticsService:
    def __init__(
        self,
        session: Session,
        repository: AnalyticsRepository | None = None,
        scenarios: ScenarioRepository | None = None,
    ) -> None:
        self._session = session
        self._repository = repository or AnalyticsRepository(session)
        self._scenarios = scenarios or ScenarioRepository(session)

    def _load(self, company_id: str, scenario_id: int) -> tuple[Scenario, str]:
        scenario = self._scenarios.get(company_id, scenario_id)
        if scenario is None:
            raise NotFoundError.for_entity("Scenario", scenario_id)
        company = self._session.get(Company, company_id)
        if company is None:
            raise NotFoundError.for_entity("Company", company_id)
        return scenario, company.base_currency

    def weekly_aggregates(self, company_id: str, scenario_id: int) -> WeeklyView:
        scenario, currency = self._load(company_id, scenario_id)
        rows = self._repository.effective_rows(company_id, scenario_id)
        weeks = aggregate_weeks(rows, scenario.start_date, scenario.end_date)
        with log_context.scoped(company_id=company_id, scenario_id=scenario_id):
            LOGGER.debug("Aggregated %s rows into %s weeks", len(rows), len(weeks))
        return WeeklyView(scenario=scenario, base_currency=currency, weeks=weeks)

    def running_balance(self, company_id: str, scenario_id: int) -> BalanceView:
        scenario, currency = self._load(company_id, scenario_id)
        points = self._repository.running_balance(company_id, scenario_id)
        return BalanceView(scenario=scenario, base_currency=currency, points=points)

    def summary(self, company_id: str, scenario_id: int) -> SummaryView:
        scenario, currency = self._load(company_id, scenario_id)
        totals = self._repository.totals(company_id, scenario_id)
        return SummaryView(scenario=scenario, base_currency=currency, totals=totals)


__all__ = ["AnalyticsService", "BalanceView", "SummaryView", "WeeklyView"]
