"""FastAPI routers for the cash-flow planner."""

from .account import router as account_router
from .analytics import router as analytics_router
from .auth import router as auth_router
from .imports import router as imports_router
from .overrides import router as overrides_router
from .scenarios import router as scenarios_router

__all__ = [
    "account_router",
    "analytics_router",
    "auth_router",
    "imports_router",
    "overrides_router",
    "scenarios_router",
]
