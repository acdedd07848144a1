"""Scenarios and the per-transaction overrides applied within them."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from sqlalchemy import BigInteger, Date, DateTime, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from .base import ID_TYPE, Base, utcnow


class ScenarioStatus(str, Enum):
    DRAFT = "Draft"
    LOCKED = "Locked"


class Scenario(Base):
    """A named, date-bounded view of one import's dataset."""

    __tablename__ = "scenarios"
    __table_args__ = (
        Index(
            "uq_scenarios_company_live_name",
            "company_id",
            "name",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    import_id: Mapped[int] = mapped_column(ID_TYPE, ForeignKey("imports.id"), nullable=False)
    dataset_code: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ScenarioStatus.DRAFT.value)
    base_scenario_id: Mapped[int | None] = mapped_column(ID_TYPE, ForeignKey("scenarios.id"))
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    locked_by: Mapped[int | None] = mapped_column(ID_TYPE, ForeignKey("app_users.id", ondelete="SET NULL"))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.current_timestamp()
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @property
    def is_draft(self) -> bool:
        return self.status == ScenarioStatus.DRAFT.value

    @property
    def is_locked(self) -> bool:
        return self.status == ScenarioStatus.LOCKED.value


class ScenarioOverride(Base):
    """Effective date/amount replacement for one flow within one scenario.

    ``original_*`` columns are frozen on first write and never updated afterwards.
    """

    __tablename__ = "scenario_overrides"
    __table_args__ = (
        UniqueConstraint("company_id", "scenario_id", "flow_id", name="uq_scenario_overrides_flow"),
    )

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    company_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    scenario_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("scenarios.id", ondelete="CASCADE"), nullable=False, index=True
    )
    flow_id: Mapped[str] = mapped_column(String(255), nullable=False)
    original_date_due: Mapped[date] = mapped_column(Date, nullable=False)
    original_amount_book_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    new_date_due: Mapped[date | None] = mapped_column(Date)
    new_amount_book_cents: Mapped[int | None] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, server_default=func.current_timestamp()
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
