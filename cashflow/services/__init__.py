"""Service layer entrypoints for domain logic."""

from .account_service import AccountService
from .analytics_service import AnalyticsService
from .export_service import ExportService
from .imports_service import ImportService
from .overrides_service import OverrideInput, OverrideService
from .scenarios_service import ScenarioService

__all__ = [
    "AccountService",
    "AnalyticsService",
    "ExportService",
    "ImportService",
    "OverrideInput",
    "OverrideService",
    "ScenarioService",
]
