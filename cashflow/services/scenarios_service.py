"""Scenario lifecycle: create, update, duplicate, lock and soft delete."""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cashflow.core.errors import ConflictError, NotFoundError, ValidationError
from cashflow.core.logger import get_logger, log_context
from cashflow.core.pagination import PageRequest
from cashflow.models import Import, ImportStatus, Scenario, ScenarioStatus
from cashflow.models.base import utcnow
from cashflow.repositories import ImportRepository, OverrideRepository, ScenarioRepository

LOGGER = get_logger(__name__)

DUPLICATE_NAME_MESSAGE = "A scenario with this name already exists"
STATUS_FILTERS = {"all": None, "draft": ScenarioStatus.DRAFT.value, "locked": ScenarioStatus.LOCKED.value}


@dataclass(frozen=True, slots=True)
class ScenarioWithCount:
    scenario: Scenario
    overrides_count: int


def _validate_date_order(start_date: date, end_date: date, *, allow_equal: bool = False) -> None:
    if end_date < start_date or (end_date == start_date and not allow_equal):
        raise ValidationError.for_field("end_date", "End date must be later than start date")


def current_month_range(today: date | None = None) -> tuple[date, date]:
    today = today or date.today()
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def parse_status_filter(value: str | None) -> str | None:
    key = (value or "all").strip().lower()
    if key not in STATUS_FILTERS:
        raise ValidationError.for_field("status", "Status must be one of: Draft, Locked, all")
    return STATUS_FILTERS[key]


class ScenarioService:
    """Scenario operations scoped to one company.

    Each write commits before returning and rolls back when a rule or the
    database rejects it.
    """

    def __init__(
        self,
        session: Session,
        repository: ScenarioRepository | None = None,
        imports: ImportRepository | None = None,
        overrides: OverrideRepository | None = None,
    ) -> None:
        self._session = session
        self._repository = repository or ScenarioRepository(session)
        self._imports = imports or ImportRepository(session)
        self._overrides = overrides or OverrideRepository(session)

    # reads

    def list_scenarios(
        self,
        company_id: str,
        *,
        status: str | None = None,
        search: str | None = None,
        page: PageRequest | None = None,
    ) -> tuple[list[Scenario], int]:
        status_value = parse_status_filter(status)
        return self._repository.list_scenarios(
            company_id,
            status=status_value,
            search=search,
            offset=page.offset if page else 0,
            limit=page.page_size if page else None,
        )

    def get_scenario(self, company_id: str, scenario_id: int) -> Scenario:
        scenario = self._repository.get(company_id, scenario_id)
        if scenario is None:
            raise NotFoundError.for_entity("Scenario", scenario_id)
        return scenario

    def get_details(self, company_id: str, scenario_id: int) -> ScenarioWithCount:
        scenario = self.get_scenario(company_id, scenario_id)
        return ScenarioWithCount(scenario, self._repository.count_overrides(company_id, scenario_id))

    # writes

    def _ensure_unique_name(self, company_id: str, name: str, exclude_id: int | None = None) -> None:
        if self._repository.name_exists(company_id, name, exclude_id=exclude_id):
            raise ConflictError(DUPLICATE_NAME_MESSAGE)

    def _require_completed_import(self, company_id: str, import_id: int) -> Import:
        record = self._imports.get(company_id, import_id)
        if record is None:
            raise ValidationError.for_field("import_id", f"Import with id '{import_id}' not found")
        if record.status != ImportStatus.COMPLETED.value:
            raise ValidationError.for_field(
                "import_id", f"Import must be completed. Current status: {record.status}"
            )
        return record

    def _commit(self) -> None:
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            LOGGER.info("Scenario write rejected by a constraint: %s", exc.orig)
            raise ConflictError(DUPLICATE_NAME_MESSAGE) from exc

    def create_scenario(
        self,
        company_id: str,
        *,
        name: str,
        import_id: int,
        start_date: date,
        end_date: date,
        dataset_code: str | None = None,
        base_scenario_id: int | None = None,
    ) -> Scenario:
        """Create a Draft scenario over a completed import."""

        _validate_date_order(start_date, end_date)
        if base_scenario_id is not None and self._repository.get(company_id, base_scenario_id) is None:
            raise ValidationError.for_field(
                "base_scenario_id", f"Base scenario with id '{base_scenario_id}' not found"
            )
        self._ensure_unique_name(company_id, name)
        record = self._require_completed_import(company_id, import_id)
        if dataset_code is not None and dataset_code != record.dataset_code:
            raise ValidationError.for_field(
                "dataset_code", f"Dataset code does not match import dataset '{record.dataset_code}'"
            )

        scenario = self._repository.add(
            Scenario(
                company_id=company_id,
                import_id=record.id,
                dataset_code=record.dataset_code,
                name=name,
                status=ScenarioStatus.DRAFT.value,
                base_scenario_id=base_scenario_id,
                start_date=start_date,
                end_date=end_date,
            )
        )
        self._commit()
        with log_context.scoped(company_id=company_id, scenario_id=scenario.id):
            LOGGER.info("Created scenario %r over import id=%s", name, record.id)
        return scenario

    def create_from_import(
        self,
        company_id: str,
        import_id: int,
        name: str,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
        commit: bool = True,
    ) -> Scenario:
        """Create a Draft scenario whose missing dates come from the import's transactions."""

        record = self._require_completed_import(company_id, import_id)
        explicit = start_date is not None and end_date is not None
        if start_date is None or end_date is None:
            earliest, latest = self._imports.transaction_date_range(company_id, import_id)
            if earliest is None or latest is None:
                earliest, latest = current_month_range()
            start_date = start_date or earliest
            end_date = end_date or latest
        _validate_date_order(start_date, end_date, allow_equal=not explicit)
        self._ensure_unique_name(company_id, name)

        scenario = self._repository.add(
            Scenario(
                company_id=company_id,
                import_id=record.id,
                dataset_code=record.dataset_code,
                name=name,
                status=ScenarioStatus.DRAFT.value,
                start_date=start_date,
                end_date=end_date,
            )
        )
        if commit:
            self._commit()
        LOGGER.info(
            "Created scenario id=%s from import id=%s covering %s..%s",
            scenario.id,
            import_id,
            start_date,
            end_date,
        )
        return scenario

    def update_scenario(
        self,
        company_id: str,
        scenario_id: int,
        *,
        name: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Scenario:
        scenario = self.get_scenario(company_id, scenario_id)
        if not scenario.is_draft:
            raise ConflictError(f"Cannot modify a {scenario.status} scenario")

        merged_start = start_date or scenario.start_date
        merged_end = end_date or scenario.end_date
        if start_date is not None or end_date is not None:
            _validate_date_order(merged_start, merged_end)
        if name is not None and name != scenario.name:
            self._ensure_unique_name(company_id, name, exclude_id=scenario_id)
            scenario.name = name
        scenario.start_date = merged_start
        scenario.end_date = merged_end
        scenario.updated_at = utcnow()
        self._commit()
        LOGGER.info("Updated scenario id=%s", scenario_id)
        return scenario

    def delete_scenario(self, company_id: str, scenario_id: int) -> Scenario:
        """Soft delete unless another live scenario was duplicated from this one."""

        scenario = self.get_scenario(company_id, scenario_id)
        dependent = self._repository.first_dependent(company_id, scenario_id)
        if dependent is not None:
            raise ConflictError(
                f'Cannot delete scenario: it has dependent scenarios (e.g., "{dependent.name}")'
            )
        scenario.deleted_at = utcnow()
        self._session.commit()
        LOGGER.info("Soft deleted scenario id=%s", scenario_id)
        return scenario

    def duplicate_scenario(self, company_id: str, scenario_id: int, name: str) -> ScenarioWithCount:
        source = self.get_scenario(company_id, scenario_id)
        self._ensure_unique_name(company_id, name)
        copy = self._repository.add(
            Scenario(
                company_id=company_id,
                import_id=source.import_id,
                dataset_code=source.dataset_code,
                name=name,
                status=ScenarioStatus.DRAFT.value,
                base_scenario_id=source.id,
                start_date=source.start_date,
                end_date=source.end_date,
            )
        )
        copied = self._overrides.copy_to(company_id, source.id, copy.id)
        self._commit()
        LOGGER.info("Duplicated scenario id=%s into id=%s with %s overrides", source.id, copy.id, copied)
        return ScenarioWithCount(copy, copied)

    def lock_scenario(self, company_id: str, scenario_id: int, user_id: int) -> Scenario:
        """Draft to Locked. There is no transition back."""

        scenario = self.get_scenario(company_id, scenario_id)
        if scenario.is_locked:
            raise ConflictError("Scenario is already locked")
        scenario.status = ScenarioStatus.LOCKED.value
        scenario.locked_at = utcnow()
        scenario.locked_by = user_id
        scenario.updated_at = scenario.locked_at
        self._session.commit()
        LOGGER.info("Locked scenario id=%s by user id=%s", scenario_id, user_id)
        return scenario


__all__ = [
    "DUPLICATE_NAME_MESSAGE",
    "ScenarioService",
    "ScenarioWithCount",
    "current_month_range",
    "parse_status_filter",
]
