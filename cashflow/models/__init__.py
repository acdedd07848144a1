"""Database models for the cash-flow planner."""
from __future__ import annotations

from .base import Base
from .companies import Company, CompanyMember
from .imports import Import, ImportRow, ImportStatus
from .scenarios import Scenario, ScenarioOverride, ScenarioStatus
from .transactions import INITIAL_BALANCE_SLOT, Transaction, TransactionDirection
from .users import AppUser

__all__ = [
    "Base",
    "AppUser",
    "Company",
    "CompanyMember",
    "Import",
    "ImportRow",
    "ImportStatus",
    "INITIAL_BALANCE_SLOT",
    "Scenario",
    "ScenarioOverride",
    "ScenarioStatus",
    "Transaction",
    "TransactionDirection",
]
