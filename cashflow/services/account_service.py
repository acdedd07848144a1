"""Registration, login and the account overview."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cashflow.core.config import get_settings
from cashflow.core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from cashflow.core.logger import get_logger
from cashflow.core.security import AuthenticatedUser, hash_password, verify_password
from cashflow.models import AppUser, Company
from cashflow.repositories import AccountRepository, ScenarioCounts, ScenarioRepository

LOGGER = get_logger(__name__)

MEMBER_ROLE = "Member"


@dataclass(frozen=True, slots=True)
class AccountOverview:
    user: AppUser
    companies: list[Company]
    stats: ScenarioCounts


class AccountService:
    def __init__(
        self,
        session: Session,
        repository: AccountRepository | None = None,
        scenarios: ScenarioRepository | None = None,
    ) -> None:
        self._session = session
        self._repository = repository or AccountRepository(session)
        self._scenarios = scenarios or ScenarioRepository(session)

    def register(
        self,
        *,
        email: str,
        password: str,
        company_name: str,
        base_currency: str | None = None,
    ) -> tuple[AppUser, Company]:
        """Create a user together with their first company and membership."""

        if self._repository.get_user_by_email(email) is not None:
            raise ConflictError("An account with this email already exists")
        defaults = get_settings().imports
        company = Company(
            name=company_name,
            base_currency=(base_currency or defaults.default_base_currency).upper(),
            timezone=defaults.default_timezone,
        )
        user = AppUser(email=email.strip().lower(), password_hash=hash_password(password))
        try:
            self._repository.add_user_with_company(user, company)
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise ConflictError("An account with this email already exists") from exc
        LOGGER.info("Registered user id=%s with company %s", user.id, company.id)
        return user, company

    def authenticate(self, email: str, password: str) -> AuthenticatedUser:
        user = self._repository.get_user_by_email(email)
        if user is None or not user.is_active or not verify_password(password, user.password_hash):
            LOGGER.info("Invalid login attempt for %s", email)
            raise UnauthorizedError("Invalid email or password")
        return AuthenticatedUser(user_id=user.id, email=user.email)

    def _require_user(self, user_id: int) -> AppUser:
        user = self._repository.get_user(user_id)
        if user is None:
            raise NotFoundError.for_entity("User", user_id)
        return user

    def overview(self, user_id: int) -> AccountOverview:
        user = self._require_user(user_id)
        companies = self._repository.companies_for_user(user_id)
        stats = self._scenarios.status_counts(company.id for company in companies)
        return AccountOverview(user=user, companies=companies, stats=stats)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> None:
        user = self._require_user(user_id)
        if not verify_password(current_password, user.password_hash):
            raise ValidationError.for_field("current_password", "Current password is incorrect")
        if len(new_password) < get_settings().auth.min_password_length:
            raise ValidationError.for_field("new_password", "Password must be at least 8 characters")
        user.password_hash = hash_password(new_password)
        self._session.commit()
        LOGGER.info("Password changed for user id=%s", user_id)

    def profile(self, user_id: int) -> AppUser:
        return self._require_user(user_id)


__all__ = ["AccountOverview", "AccountService", "MEMBER_ROLE"]
