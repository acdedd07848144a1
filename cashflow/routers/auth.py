"""Registration, login and logout endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from cashflow.core.logger import get_logger
from cashflow.core.security import AuthenticatedUser, SecurityProvider, get_security_provider
from cashflow.db.session import get_db_session
from cashflow.schemas.account import AuthResponse, LoginRequest, RegisterRequest, UserOut
from cashflow.schemas.common import ERROR_RESPONSES
from cashflow.services import AccountService

LOGGER = get_logger(__name__)
router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
    responses=ERROR_RESPONSES,
)


def get_security() -> SecurityProvider:
    return get_security_provider()


def get_account_service(session: Session = Depends(get_db_session)) -> AccountService:
    """Return a service instance per request."""

    return AccountService(session)


def _token_response(
    security: SecurityProvider,
    user: AuthenticatedUser,
    company_id: str | None,
    status_code: int,
) -> JSONResponse:
    token = security.create_access_token(user)
    body = AuthResponse(
        user=UserOut(id=user.user_id, email=user.email),
        company_id=company_id,
        access_token=token,
    )
    response = JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))
    response.set_cookie(
        security.cookie_name,
        token,
        max_age=security.token_ttl_seconds,
        httponly=True,
        samesite="lax",
    )
    return response


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=AuthResponse)
def register(
    payload: RegisterRequest,
    service: AccountService = Depends(get_account_service),
    security: SecurityProvider = Depends(get_security),
) -> JSONResponse:
    user, company = service.register(
        email=payload.email,
        password=payload.password,
        company_name=payload.company_name,
        base_currency=payload.base_currency,
    )
    principal = AuthenticatedUser(user_id=user.id, email=user.email)
    return _token_response(security, principal, company.id, status.HTTP_201_CREATED)


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_account_service),
    security: SecurityProvider = Depends(get_security),
) -> JSONResponse:
    principal = service.authenticate(payload.email, payload.password)
    profile = service.profile(principal.user_id)
    LOGGER.info("User logged in user_id=%s", principal.user_id)
    return _token_response(security, principal, profile.default_company_id, status.HTTP_200_OK)


@router.post("/logout")
def logout(security: SecurityProvider = Depends(get_security)) -> JSONResponse:
    """Clear the access token cookie."""

    response = JSONResponse(content={"success": True})
    response.delete_cookie(security.cookie_name)
    return response


__all__ = ["router", "get_account_service"]
