"""FastAPI application instance and startup hooks."""
from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI

from cashflow.core import get_logger, get_settings
from cashflow.core.errors import register_exception_handlers
from cashflow.core.logger import init_logging
from cashflow.core.security import get_security_provider
from cashflow.middleware.auth import AuthMiddleware
from cashflow.routers import (
    account_router,
    analytics_router,
    auth_router,
    imports_router,
    overrides_router,
    scenarios_router,
)

LOGGER = get_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = get_settings()
    init_logging(
        level=settings.logging.level,
        log_dir=Path(settings.logging.log_dir) if settings.logging.log_dir else None,
    )

    app = FastAPI(title="Cash-flow Planner", version="0.1.0")
    app.add_middleware(
        AuthMiddleware,
        security_provider=get_security_provider(),
    )
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(account_router)
    app.include_router(imports_router)
    app.include_router(scenarios_router)
    app.include_router(overrides_router)
    app.include_router(analytics_router)

    @app.get("/health", include_in_schema=False)
    def health() -> dict[str, str]:
        return {"status": "ok"}

    LOGGER.info("FastAPI application initialised")
    return app


app = create_app()
