"""Tests for the scenario lifecycle."""
from __future__ import annotations

from datetime import date
from unittest.mock import create_autospec

import pytest
from sqlalchemy.orm import Session

from cashflow.core.errors import ConflictError, NotFoundError, ValidationError
from cashflow.core.pagination import PageRequest
from cashflow.models import Company, Scenario
from cashflow.repositories import ImportRepository, OverrideRepository, ScenarioRepository
from cashflow.services import OverrideInput, OverrideService, ScenarioService
from cashflow.services.scenarios_service import current_month_range

from ..conftest import PLAN_END, PLAN_START, add_member, run_sample_import


def test_create_scenario_starts_as_draft(plan: Scenario, sample_import) -> None:
    assert plan.status == "Draft"
    assert plan.dataset_code == "DS1"
    assert plan.import_id == sample_import.record.id
    assert plan.locked_at is None


def test_create_scenario_validates_dates(session: Session, company: Company, sample_import) -> None:
    service = ScenarioService(session)

    with pytest.raises(ValidationError) as excinfo:
        service.create_scenario(
            company.id, name="Same day", import_id=sample_import.record.id, start_date=PLAN_START, end_date=PLAN_START
        )

    assert excinfo.value.message == "End date must be later than start date"
    assert excinfo.value.details[0].field == "end_date"


def test_create_scenario_requires_completed_import(session: Session, company: Company) -> None:
    failed = run_sample_import(session, company.id, rows=[["", "", "", "", "", "", "", ""]])

    with pytest.raises(ValidationError, match="Import must be completed. Current status: failed"):
        ScenarioService(session).create_scenario(
            company.id, name="Nope", import_id=failed.record.id, start_date=PLAN_START, end_date=PLAN_END
        )


def test_create_scenario_checks_dataset_code(session: Session, company: Company, sample_import) -> None:
    with pytest.raises(ValidationError, match="Dataset code does not match"):
        ScenarioService(session).create_scenario(
            company.id,
            name="Mismatch",
            import_id=sample_import.record.id,
            start_date=PLAN_START,
            end_date=PLAN_END,
            dataset_code="OTHER",
        )


def test_live_names_are_unique_but_deleted_names_free_up(session: Session, company: Company, plan: Scenario) -> None:
    service = ScenarioService(session)

    with pytest.raises(ConflictError, match="A scenario with this name already exists"):
        service.create_scenario(
            company.id, name="Plan A", import_id=plan.import_id, start_date=PLAN_START, end_date=PLAN_END
        )

    service.delete_scenario(company.id, plan.id)
    again = service.create_scenario(
        company.id, name="Plan A", import_id=plan.import_id, start_date=PLAN_START, end_date=PLAN_END
    )
    assert again.id != plan.id


def test_same_name_is_allowed_in_another_company(session: Session, plan: Scenario) -> None:
    _, other = add_member(session, email="other@example.com", company_name="Other")
    outcome = run_sample_import(session, other.id)

    scenario = ScenarioService(session).create_scenario(
        other.id, name="Plan A", import_id=outcome.record.id, start_date=PLAN_START, end_date=PLAN_END
    )

    assert scenario.company_id == other.id


def test_scenarios_are_invisible_across_companies(session: Session, plan: Scenario) -> None:
    _, other = add_member(session, email="other@example.com", company_name="Other")

    with pytest.raises(NotFoundError, match=f"Scenario with id '{plan.id}' not found"):
        ScenarioService(session).get_scenario(other.id, plan.id)


def test_create_from_import_derives_dates(session: Session, company: Company, sample_import) -> None:
    service = ScenarioService(session)

    derived = service.create_from_import(company.id, sample_import.record.id, "Derived")
    partial = service.create_from_import(
        company.id, sample_import.record.id, "Partial", start_date=date(2026, 1, 10)
    )

    assert (derived.start_date, derived.end_date) == (date(2026, 1, 1), date(2026, 2, 10))
    assert (partial.start_date, partial.end_date) == (date(2026, 1, 10), date(2026, 2, 10))


def test_current_month_range() -> None:
    assert current_month_range(date(2026, 2, 14)) == (date(2026, 2, 1), date(2026, 2, 28))


def test_update_scenario(session: Session, company: Company, plan: Scenario) -> None:
    service = ScenarioService(session)

    updated = service.update_scenario(company.id, plan.id, name="Plan B", end_date=date(2026, 2, 1))

    assert updated.name == "Plan B"
    assert updated.start_date == PLAN_START
    assert updated.end_date == date(2026, 2, 1)
    assert updated.updated_at is not None

    with pytest.raises(ValidationError):
        service.update_scenario(company.id, plan.id, end_date=date(2026, 1, 1))


def test_locked_scenarios_are_read_only(session: Session, company: Company, user, plan: Scenario) -> None:
    service = ScenarioService(session)

    locked = service.lock_scenario(company.id, plan.id, user.id)

    assert locked.status == "Locked"
    assert locked.locked_by == user.id
    assert locked.locked_at is not None
    with pytest.raises(ConflictError, match="Scenario is already locked"):
        service.lock_scenario(company.id, plan.id, user.id)
    with pytest.raises(ConflictError, match="Cannot modify a Locked scenario"):
        service.update_scenario(company.id, plan.id, name="Renamed")


def test_duplicate_copies_overrides_and_blocks_deleting_the_source(
    session: Session, company: Company, user, plan: Scenario
) -> None:
    OverrideService(session).upsert_override(
        company.id, plan.id, OverrideInput(flow_id="F2", new_amount_book_cents=50000)
    )
    service = ScenarioService(session)
    service.lock_scenario(company.id, plan.id, user.id)

    copy = service.duplicate_scenario(company.id, plan.id, "Plan A copy")

    assert copy.overrides_count == 1
    assert copy.scenario.status == "Draft"
    assert copy.scenario.base_scenario_id == plan.id
    assert service.get_details(company.id, copy.scenario.id).overrides_count == 1
    with pytest.raises(ConflictError, match='dependent scenarios \\(e.g., "Plan A copy"\\)'):
        service.delete_scenario(company.id, plan.id)

    service.delete_scenario(company.id, copy.scenario.id)
    service.delete_scenario(company.id, plan.id)
    assert service.list_scenarios(company.id, search="plan a")[1] == 0


def test_list_scenarios_filters(session: Session, company: Company, user, plan: Scenario) -> None:
    service = ScenarioService(session)
    service.lock_scenario(company.id, plan.id, user.id)

    everything, total = service.list_scenarios(company.id)
    locked, locked_total = service.list_scenarios(company.id, status="locked")
    drafts, _ = service.list_scenarios(company.id, status="Draft", search="IMPORT")

    assert total == 2
    assert everything[0].id == plan.id
    assert locked_total == 1 and locked[0].id == plan.id
    assert [scenario.name for scenario in drafts] == [everything[1].name]
    with pytest.raises(ValidationError):
        service.list_scenarios(company.id, status="archived")


def test_list_scenarios_passes_paging_to_repository() -> None:
    session = create_autospec(Session, instance=True)
    repository = create_autospec(ScenarioRepository, instance=True)
    repository.list_scenarios.return_value = ([], 0)
    service = ScenarioService(
        session,
        repository=repository,
        imports=create_autospec(ImportRepository, instance=True),
        overrides=create_autospec(OverrideRepository, instance=True),
    )

    service.list_scenarios("c1", status="draft", search="q", page=PageRequest(page=2, page_size=25))

    repository.list_scenarios.assert_called_once_with("c1", status="Draft", search="q", offset=25, limit=25)


def test_lock_does_not_commit_when_already_locked() -> None:
    session = create_autospec(Session, instance=True)
    repository = create_autospec(ScenarioRepository, instance=True)
    repository.get.return_value = Scenario(id=1, company_id="c1", name="Done", status="Locked")
    service = ScenarioService(session, repository=repository)

    with pytest.raises(ConflictError):
        service.lock_scenario("c1", 1, user_id=5)

    session.commit.assert_not_called()
