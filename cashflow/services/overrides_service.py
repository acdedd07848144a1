"""Per-transaction overrides inside Draft scenarios."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from sqlalchemy.orm import Session

from cashflow.core.errors import ConflictError, FieldError, NotFoundError, ValidationError
from cashflow.core.logger import get_logger, log_context
from cashflow.models import Scenario, ScenarioOverride, Transaction
from cashflow.models.base import utcnow
from cashflow.repositories import ImportRepository, OverrideRepository, ScenarioRepository

LOGGER = get_logger(__name__)

MAX_BATCH_SIZE = 100
CHANGE_FIELDS = ("new_date_due", "new_amount_book_cents")


@dataclass(frozen=True, slots=True)
class OverrideInput:
    """Requested change for one flow.

    ``fields_set`` lists which of the ``new_*`` values to write, so an explicit
    ``None`` clears a value while an omitted one keeps it. Left out, it covers
    only the values that are not ``None``.
    """

    flow_id: str
    new_date_due: date | None = None
    new_amount_book_cents: int | None = None
    fields_set: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.fields_set is None:
            given = frozenset(name for name in CHANGE_FIELDS if getattr(self, name) is not None)
            object.__setattr__(self, "fields_set", given)


class OverrideService:
    def __init__(
        self,
        session: Session,
        scenarios: ScenarioRepository | None = None,
        overrides: OverrideRepository | None = None,
        imports: ImportRepository | None = None,
    ) -> None:
        self._session = session
        self._scenarios = scenarios or ScenarioRepository(session)
        self._overrides = overrides or OverrideRepository(session)
        self._imports = imports or ImportRepository(session)

    def _editable_scenario(self, company_id: str, scenario_id: int) -> Scenario:
        scenario = self._scenarios.get(company_id, scenario_id)
        if scenario is None:
            raise NotFoundError.for_entity("Scenario", scenario_id)
        if not scenario.is_draft:
            raise ConflictError(f"Cannot modify overrides for a {scenario.status} scenario")
        return scenario

    def list_overrides(self, company_id: str, scenario_id: int) -> list[ScenarioOverride]:
        if self._scenarios.get(company_id, scenario_id) is None:
            raise NotFoundError.for_entity("Scenario", scenario_id)
        return self._overrides.list_overrides(company_id, scenario_id)

    def _transactions_for(
        self, scenario: Scenario, flow_ids: Sequence[str]
    ) -> dict[str, Transaction]:
        transactions = self._imports.transactions_by_flow_ids(
            scenario.company_id, scenario.import_id, flow_ids
        )
        missing = [flow_id for flow_id in flow_ids if flow_id not in transactions]
        if len(flow_ids) == 1 and missing:
            raise ValidationError.for_field(
                "flow_id", f"Transaction with flow_id '{missing[0]}' not found"
            )
        if missing:
            raise ValidationError(
                f"Transactions not found for flow_ids: {', '.join(missing)}",
                [FieldError("flow_id", f"Transaction with flow_id '{flow_id}' not found") for flow_id in missing],
            )
        initial_balance = [flow_id for flow_id in flow_ids if transactions[flow_id].is_initial_balance]
        if initial_balance:
            raise ValidationError(
                f"Initial balance transactions cannot be overridden: {', '.join(initial_balance)}",
                [FieldError("flow_id", "Initial balance rows are read-only") for _ in initial_balance],
            )
        return transactions

    def _apply(
        self,
        scenario: Scenario,
        change: OverrideInput,
        transaction: Transaction,
        existing: ScenarioOverride | None,
    ) -> ScenarioOverride:
        if existing is None:
            existing = ScenarioOverride(
                company_id=scenario.company_id,
                scenario_id=scenario.id,
                flow_id=change.flow_id,
                original_date_due=transaction.date_due,
                original_amount_book_cents=transaction.amount_book_cents,
            )
            self._session.add(existing)
        else:
            existing.updated_at = utcnow()
        if "new_date_due" in change.fields_set:
            existing.new_date_due = change.new_date_due
        if "new_amount_book_cents" in change.fields_set:
            existing.new_amount_book_cents = change.new_amount_book_cents
        return existing

    def upsert_override(
        self, company_id: str, scenario_id: int, change: OverrideInput
    ) -> ScenarioOverride:
        """Create or update one override, freezing the original values on first write."""

        scenario = self._editable_scenario(company_id, scenario_id)
        transaction = self._transactions_for(scenario, [change.flow_id])[change.flow_id]
        existing = self._overrides.by_flow_ids(company_id, scenario_id, [change.flow_id])
        override = self._apply(scenario, change, transaction, existing.get(change.flow_id))
        self._session.commit()
        with log_context.scoped(company_id=company_id, scenario_id=scenario_id):
            LOGGER.info("Saved override for flow_id=%s", change.flow_id)
        return override

    def batch_update(
        self, company_id: str, scenario_id: int, changes: Sequence[OverrideInput]
    ) -> list[ScenarioOverride]:
        """Apply up to ``MAX_BATCH_SIZE`` overrides in a single commit."""

        if not changes:
            raise ValidationError.for_field("overrides", "At least one override is required")
        if len(changes) > MAX_BATCH_SIZE:
            raise ValidationError.for_field(
                "overrides", f"At most {MAX_BATCH_SIZE} overrides can be updated at once"
            )
        scenario = self._editable_scenario(company_id, scenario_id)

        # Later entries for the same flow win.
        merged: dict[str, OverrideInput] = {}
        for change in changes:
            merged[change.flow_id] = change
        flow_ids = list(merged)

        transactions = self._transactions_for(scenario, flow_ids)
        existing = self._overrides.by_flow_ids(company_id, scenario_id, flow_ids)
        try:
            saved = [
                self._apply(scenario, merged[flow_id], transactions[flow_id], existing.get(flow_id))
                for flow_id in flow_ids
            ]
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        with log_context.scoped(company_id=company_id, scenario_id=scenario_id):
            LOGGER.info("Saved %s overrides in batch", len(saved))
        return saved


__all__ = ["CHANGE_FIELDS", "MAX_BATCH_SIZE", "OverrideInput", "OverrideService"]
