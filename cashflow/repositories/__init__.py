"""Repositories wrapping SQLAlchemy queries."""

from .accounts import AccountRepository
from .analytics import AnalyticsRepository, BalancePoint, ExportRow, ScenarioTotals
from .imports import ImportRepository
from .scenarios import OverrideRepository, ScenarioCounts, ScenarioRepository

__all__ = [
    "AccountRepository",
    "AnalyticsRepository",
    "BalancePoint",
    "ExportRow",
    "ImportRepository",
    "OverrideRepository",
    "ScenarioCounts",
    "ScenarioRepository",
    "ScenarioTotals",
]
