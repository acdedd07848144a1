"""Shared helpers for repositories."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session


class BaseRepository:
    """Base repository holding the session and small coercion helpers."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _count(self, statement: Select) -> int:
        """Return the row count of ``statement`` ignoring its ordering and paging."""

        counted = select(func.count()).select_from(
            statement.order_by(None).limit(None).offset(None).subquery()
        )
        return int(self._session.execute(counted).scalar() or 0)

    @staticmethod
    def _to_int(value: Any) -> int:
        if value is None:
            return 0
        return int(value)

    @staticmethod
    def _coerce_date(value: Any) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if value is None:
            raise ValueError("Cannot convert None to date")
        return date.fromisoformat(str(value)[:10])

    @staticmethod
    def _coerce_optional_date(value: Any) -> date | None:
        if value is None:
            return None
        return BaseRepository._coerce_date(value)

    @staticmethod
    def _search_pattern(value: str | None) -> str | None:
        if not value or not value.strip():
            return None
        return f"%{value.strip().lower()}%"
