"""Tests for registration, login and the account overview."""
from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from cashflow.core.errors import ConflictError, UnauthorizedError, ValidationError
from cashflow.core.security import verify_password
from cashflow.services import AccountService, ScenarioService


def test_register_creates_company_and_membership(session: Session) -> None:
    service = AccountService(session)

    user, company = service.register(
        email=" New.User@Example.com ", password="long-enough", company_name="Newco", base_currency="eur"
    )

    assert user.email == "new.user@example.com"
    assert user.default_company_id == company.id
    assert company.base_currency == "EUR"
    assert company.timezone == "Europe/Warsaw"
    assert verify_password("long-enough", user.password_hash)
    assert [c.id for c in service.overview(user.id).companies] == [company.id]


def test_register_rejects_duplicate_email(session: Session, user) -> None:
    with pytest.raises(ConflictError, match="An account with this email already exists"):
        AccountService(session).register(email="OWNER@example.com", password="long-enough", company_name="Dup")


def test_authenticate(session: Session, user) -> None:
    service = AccountService(session)

    principal = service.authenticate("owner@example.com", "secret-password")

    assert principal.user_id == user.id
    with pytest.raises(UnauthorizedError, match="Invalid email or password"):
        service.authenticate("owner@example.com", "wrong-password")
    with pytest.raises(UnauthorizedError):
        service.authenticate("nobody@example.com", "secret-password")


def test_overview_counts_scenarios(session: Session, company, user, plan) -> None:
    ScenarioService(session).lock_scenario(company.id, plan.id, user.id)

    stats = AccountService(session).overview(user.id).stats

    assert (stats.total, stats.draft, stats.locked) == (2, 1, 1)


def test_change_password(session: Session, user) -> None:
    service = AccountService(session)

    with pytest.raises(ValidationError, match="Current password is incorrect"):
        service.change_password(user.id, "nope", "another-password")

    service.change_password(user.id, "secret-password", "another-password")

    assert service.authenticate("owner@example.com", "another-password").user_id == user.id
