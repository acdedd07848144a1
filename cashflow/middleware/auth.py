"""Middleware that resolves the access token and guards the JSON API."""
from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from cashflow.core.errors import UnauthorizedError, error_response
from cashflow.core.logger import get_logger, log_context
from cashflow.core.security import AuthenticatedUser, AuthenticationError, SecurityProvider

LOGGER = get_logger(__name__)

DEFAULT_EXEMPT_PATHS = frozenset(
    {
        "/api/auth/login",
        "/api/auth/logout",
        "/api/auth/register",
        "/health",
    }
)


class AuthMiddleware(BaseHTTPMiddleware):
    """Reject anonymous ``/api`` requests with a 401 error envelope."""

    def __init__(
        self,
        app,
        security_provider: SecurityProvider,
        *,
        protected_prefix: str = "/api/",
        exempt_paths: Iterable[str] | None = None,
    ) -> None:
        super().__init__(app)
        self._security_provider = security_provider
        self._protected_prefix = protected_prefix
        self._exempt_paths = set(exempt_paths or ()) | DEFAULT_EXEMPT_PATHS

    def _is_protected(self, path: str) -> bool:
        if path in self._exempt_paths:
            return False
        return path.startswith(self._protected_prefix)

    def _extract_token(self, request: Request) -> str | None:
        header = request.headers.get("authorization", "")
        scheme, _, credentials = header.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
        return request.cookies.get(self._security_provider.cookie_name)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        token = self._extract_token(request)
        user: AuthenticatedUser | None = None
        invalid_token = False

        if token:
            try:
                user = self._security_provider.decode_token(token)
            except AuthenticationError as exc:
                LOGGER.info("Failed to decode access token: %s", exc)
                invalid_token = True

        request.state.user = user

        if user is None and self._is_protected(request.url.path):
            message = "Invalid or expired token" if invalid_token else "Authentication required"
            response = error_response(UnauthorizedError.status_code, UnauthorizedError.code, message)
            if invalid_token:
                response.delete_cookie(self._security_provider.cookie_name)
            return response

        if user is None:
            return await call_next(request)
        with log_context.scoped(user_id=user.user_id):
            return await call_next(request)


__all__ = ["AuthMiddleware"]
