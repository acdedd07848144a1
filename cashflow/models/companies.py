"""Tenant models: companies and their members."""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import ID_TYPE, Base, utcnow


def _new_company_id() -> str:
    return str(uuid.uuid4())


class Company(Base):
    """A tenant. Every dataset, import and scenario belongs to exactly one company."""

    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_company_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="PLN")
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="Europe/Warsaw")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.current_timestamp()
    )

    members: Mapped[list["CompanyMember"]] = relationship(
        back_populates="company", cascade="all, delete-orphan"
    )


class CompanyMember(Base):
    """Membership of a user in a company; the only authorisation primitive."""

    __tablename__ = "company_members"

    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("app_users.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.current_timestamp()
    )

    company: Mapped[Company] = relationship(back_populates="members")
