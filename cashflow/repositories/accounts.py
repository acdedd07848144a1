"""Queries over users, companies and memberships."""
from __future__ import annotations

from sqlalchemy import func, select

from cashflow.models import AppUser, Company, CompanyMember

from .base import BaseRepository


class AccountRepository(BaseRepository):
    def get_user(self, user_id: int) -> AppUser | None:
        return self._session.get(AppUser, user_id)

    def get_user_by_email(self, email: str) -> AppUser | None:
        statement = select(AppUser).where(func.lower(AppUser.email) == email.strip().lower())
        return self._session.execute(statement).scalars().first()

    def companies_for_user(self, user_id: int) -> list[Company]:
        statement = (
            select(Company)
            .join(CompanyMember, CompanyMember.company_id == Company.id)
            .where(CompanyMember.user_id == user_id)
            .order_by(Company.name, Company.id)
        )
        return list(self._session.execute(statement).scalars())

    def add_user_with_company(self, user: AppUser, company: Company) -> None:
        self._session.add(company)
        self._session.flush()
        user.default_company_id = company.id
        self._session.add(user)
        self._session.flush()
        self._session.add(CompanyMember(company_id=company.id, user_id=user.id))
        self._session.flush()
