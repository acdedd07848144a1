"""Schemas for registration, login and the account page."""
from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field, StringConstraints, model_validator

from .common import ApiModel

Email = Annotated[
    str, StringConstraints(strip_whitespace=True, to_lower=True, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
]
Password = Annotated[str, StringConstraints(min_length=8, max_length=128)]
CompanyName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
CurrencyCode = Annotated[str, StringConstraints(strip_whitespace=True, to_upper=True, pattern=r"^[A-Za-z]{3}$")]


class RegisterRequest(ApiModel):
    email: Email
    password: Password
    confirm_password: str | None = Field(default=None, alias="confirmPassword")
    company_name: CompanyName = Field(alias="companyName")
    base_currency: CurrencyCode | None = Field(default=None, alias="baseCurrency")

    @model_validator(mode="after")
    def _passwords_match(self) -> "RegisterRequest":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(ApiModel):
    email: Email
    password: Annotated[str, StringConstraints(min_length=1, max_length=128)]


class ChangePasswordRequest(ApiModel):
    current_password: Annotated[str, StringConstraints(min_length=1)] = Field(alias="currentPassword")
    new_password: Password = Field(alias="newPassword")
    confirm_password: str = Field(alias="confirmPassword")

    @model_validator(mode="after")
    def _passwords_match(self) -> "ChangePasswordRequest":
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class UserOut(BaseModel):
    id: int | None = None
    email: str


class CompanyMembershipOut(BaseModel):
    id: str
    name: str
    base_currency: str
    role: str = "Member"


class AccountStats(BaseModel):
    total: int = 0
    draft: int = 0
    locked: int = 0


class AccountOverview(BaseModel):
    user: UserOut
    companies: list[CompanyMembershipOut]
    stats: AccountStats


class ProfileOut(BaseModel):
    user_id: int
    email: str
    default_company_id: str | None = None


class AuthResponse(BaseModel):
    user: UserOut
    company_id: str | None = None
    access_token: str
    token_type: str = "bearer"
