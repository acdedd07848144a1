"""Account overview, password change and profile endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from cashflow.core.security import AuthenticatedUser, get_authenticated_user
from cashflow.routers.auth import get_account_service
from cashflow.schemas.account import (
    AccountOverview,
    AccountStats,
    ChangePasswordRequest,
    CompanyMembershipOut,
    ProfileOut,
    UserOut,
)
from cashflow.schemas.common import ERROR_RESPONSES
from cashflow.services import AccountService
from cashflow.services.account_service import MEMBER_ROLE

router = APIRouter(
    prefix="/api",
    tags=["account"],
    responses=ERROR_RESPONSES,
)


@router.get("/account", response_model=AccountOverview)
def get_account(
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: AccountService = Depends(get_account_service),
) -> AccountOverview:
    overview = service.overview(user.user_id)
    return AccountOverview(
        user=UserOut(id=overview.user.id, email=overview.user.email),
        companies=[
            CompanyMembershipOut(
                id=company.id,
                name=company.name,
                base_currency=company.base_currency,
                role=MEMBER_ROLE,
            )
            for company in overview.companies
        ],
        stats=AccountStats(
            total=overview.stats.total,
            draft=overview.stats.draft,
            locked=overview.stats.locked,
        ),
    )


@router.post("/account/change-password")
def change_password(
    payload: ChangePasswordRequest,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: AccountService = Depends(get_account_service),
) -> dict[str, bool]:
    service.change_password(user.user_id, payload.current_password, payload.new_password)
    return {"success": True}


@router.get("/profile", response_model=ProfileOut)
def get_profile(
    user: AuthenticatedUser = Depends(get_authenticated_user),
    service: AccountService = Depends(get_account_service),
) -> ProfileOut:
    profile = service.profile(user.user_id)
    return ProfileOut(
        user_id=profile.id,
        email=profile.email,
        default_company_id=profile.default_company_id,
    )


__all__ = ["router"]
