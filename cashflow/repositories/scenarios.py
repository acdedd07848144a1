"""Queries over scenarios and their overrides."""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import func, select

from cashflow.models import Scenario, ScenarioOverride, ScenarioStatus

from .base import BaseRepository


@dataclass(frozen=True, slots=True)
class ScenarioCounts:
    total: int = 0
    draft: int = 0
    locked: int = 0


class ScenarioRepository(BaseRepository):
    """Scenario lookups. Soft-deleted rows are never returned."""

    def _active(self, company_id: str):
        return select(Scenario).where(
            Scenario.company_id == company_id,
            Scenario.deleted_at.is_(None),
        )

    def get(self, company_id: str, scenario_id: int) -> Scenario | None:
        statement = self._active(company_id).where(Scenario.id == scenario_id)
        return self._session.execute(statement).scalars().first()

    def list_scenarios(
        self,
        company_id: str,
        *,
        status: str | None = None,
        search: str | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[Scenario], int]:
        statement = self._active(company_id)
        if status:
            statement = statement.where(Scenario.status == status)
        pattern = self._search_pattern(search)
        if pattern:
            statement = statement.where(func.lower(Scenario.name).like(pattern))
        total = self._count(statement)
        statement = statement.order_by(Scenario.created_at.desc(), Scenario.id.desc()).offset(offset)
        if limit is not None:
            statement = statement.limit(limit)
        return list(self._session.execute(statement).scalars()), total

    def name_exists(self, company_id: str, name: str, *, exclude_id: int | None = None) -> bool:
        statement = self._active(company_id).where(Scenario.name == name)
        if exclude_id is not None:
            statement = statement.where(Scenario.id != exclude_id)
        return self._session.execute(statement.limit(1)).first() is not None

    def first_dependent(self, company_id: str, scenario_id: int) -> Scenario | None:
        statement = (
            self._active(company_id)
            .where(Scenario.base_scenario_id == scenario_id)
            .order_by(Scenario.id)
            .limit(1)
        )
        return self._session.execute(statement).scalars().first()

    def count_overrides(self, company_id: str, scenario_id: int) -> int:
        statement = select(func.count(ScenarioOverride.id)).where(
            ScenarioOverride.company_id == company_id,
            ScenarioOverride.scenario_id == scenario_id,
        )
        return self._to_int(self._session.execute(statement).scalar())

    def status_counts(self, company_ids: Iterable[str]) -> ScenarioCounts:
        ids = list(company_ids)
        if not ids:
            return ScenarioCounts()
        statement = (
            select(Scenario.status, func.count(Scenario.id))
            .where(Scenario.company_id.in_(ids), Scenario.deleted_at.is_(None))
            .group_by(Scenario.status)
        )
        counts = {status: self._to_int(count) for status, count in self._session.execute(statement)}
        draft = counts.get(ScenarioStatus.DRAFT.value, 0)
        locked = counts.get(ScenarioStatus.LOCKED.value, 0)
        return ScenarioCounts(total=sum(counts.values()), draft=draft, locked=locked)

    def add(self, scenario: Scenario) -> Scenario:
        self._session.add(scenario)
        self._session.flush()
        return scenario


class OverrideRepository(BaseRepository):
    """Overrides scoped to one company and scenario."""

    def list_overrides(self, company_id: str, scenario_id: int) -> list[ScenarioOverride]:
        statement = (
            select(ScenarioOverride)
            .where(
                ScenarioOverride.company_id == company_id,
                ScenarioOverride.scenario_id == scenario_id,
            )
            .order_by(ScenarioOverride.flow_id)
        )
        return list(self._session.execute(statement).scalars())

    def by_flow_ids(
        self, company_id: str, scenario_id: int, flow_ids: Sequence[str]
    ) -> dict[str, ScenarioOverride]:
        if not flow_ids:
            return {}
        statement = select(ScenarioOverride).where(
            ScenarioOverride.company_id == company_id,
            ScenarioOverride.scenario_id == scenario_id,
            ScenarioOverride.flow_id.in_(list(flow_ids)),
        )
        return {row.flow_id: row for row in self._session.execute(statement).scalars()}

    def copy_to(self, company_id: str, source_id: int, target_id: int) -> int:
        copied = 0
        for override in self.list_overrides(company_id, source_id):
            self._session.add(
                ScenarioOverride(
                    company_id=company_id,
                    scenario_id=target_id,
                    flow_id=override.flow_id,
                    original_date_due=override.original_date_due,
                    original_amount_book_cents=override.original_amount_book_cents,
                    new_date_due=override.new_date_due,
                    new_amount_book_cents=override.new_amount_book_cents,
                )
            )
            copied += 1
        self._session.flush()
        return copied
