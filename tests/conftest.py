"""Shared fixtures: an in-memory database, seeded tenants and an API client."""
from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import date

import pytest

# Settings are cached on first use, so the environment is prepared before any import.
os.environ["LOG_DIR"] = ""
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-with-at-least-32-bytes!"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from cashflow.core.security import AuthenticatedUser, get_security_provider, hash_password  # noqa: E402
from cashflow.models import AppUser, Base, Company, CompanyMember  # noqa: E402
from cashflow.services import ImportService, ScenarioService  # noqa: E402

CSV_HEADERS = ["Due", "Amount", "Kind", "Ccy", "Flow", "Partner", "Memo", "Project"]
COLUMN_MAPPING = {
    "date_due": "Due",
    "amount": "Amount",
    "direction": "Kind",
    "currency": "Ccy",
    "flow_id": "Flow",
    "counterparty": "Partner",
    "description": "Memo",
    "project": "Project",
}
CSV_ROWS = [
    ["2026-01-01", "10000.00", "IB", "PLN", "IB-1", "", "Opening balance", ""],
    ["2026-01-05", "1,500.00", "INFLOW", "PLN", "F1", "Globex", "Invoice 1", "Alpha"],
    ["07.01.2026", "400,00", "outflow", "PLN", "F2", "Landlord", "Rent", ""],
    ["2026-01-13", "2 000,50", "INFLOW", "EUR", "F3", "Initech", "Invoice 2", "Beta"],
    ["2026/01/20", "(250.00)", "OUTFLOW", "PLN", "F4", "Utility Co", "Power", ""],
    ["2026-02-10", "999", "OUTFLOW", "PLN", "F5", "Vendor", "Late bill", ""],
]
PLAN_START = date(2026, 1, 5)
PLAN_END = date(2026, 1, 25)


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def session(session_factory: sessionmaker) -> Iterator[Session]:
    """Provide an in-memory database session for each test."""

    with session_factory() as session:
        yield session


def add_member(session: Session, *, email: str, company_name: str = "Acme", base_currency: str = "PLN") -> tuple[AppUser, Company]:
    company = Company(name=company_name, base_currency=base_currency, timezone="Europe/Warsaw")
    session.add(company)
    session.flush()
    user = AppUser(email=email, password_hash=hash_password("secret-password"), default_company_id=company.id)
    session.add(user)
    session.flush()
    session.add(CompanyMember(company_id=company.id, user_id=user.id))
    session.commit()
    return user, company


@pytest.fixture()
def member(session: Session) -> tuple[AppUser, Company]:
    return add_member(session, email="owner@example.com")


@pytest.fixture()
def company(member: tuple[AppUser, Company]) -> Company:
    return member[1]


@pytest.fixture()
def user(member: tuple[AppUser, Company]) -> AppUser:
    return member[0]


def run_sample_import(session: Session, company_id: str, *, dataset_code: str = "DS1", rows=None, **kwargs):
    return ImportService(session).run_import(
        company_id,
        dataset_code=dataset_code,
        headers=CSV_HEADERS,
        rows=CSV_ROWS if rows is None else rows,
        column_mapping=COLUMN_MAPPING,
        **kwargs,
    )


@pytest.fixture()
def sample_import(session: Session, company: Company):
    """A completed import of ``CSV_ROWS`` together with its auto-created scenario."""

    return run_sample_import(session, company.id)


@pytest.fixture()
def plan(session: Session, company: Company, sample_import):
    """Draft scenario covering three weeks from 2026-01-05."""

    return ScenarioService(session).create_scenario(
        company.id,
        name="Plan A",
        import_id=sample_import.record.id,
        start_date=PLAN_START,
        end_date=PLAN_END,
    )


@pytest.fixture()
def client(session_factory: sessionmaker) -> Iterator[TestClient]:
    from cashflow.db.session import get_db_session
    from cashflow.main import app

    def _override() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = _override
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user: AppUser) -> dict[str, str]:
    token = get_security_provider().create_access_token(AuthenticatedUser(user_id=user.id, email=user.email))
    return {"Authorization": f"Bearer {token}"}
