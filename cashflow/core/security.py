"""JWT access tokens, bcrypt password hashing and company membership checks."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import bcrypt
import jwt
from fastapi import Depends, Request
from jwt import ExpiredSignatureError, InvalidTokenError
from sqlalchemy import select
from sqlalchemy.orm import Session

from cashflow.core.config import AuthSettings, get_settings
from cashflow.core.errors import ForbiddenError, UnauthorizedError
from cashflow.core.logger import get_logger
from cashflow.db.session import get_db_session
from cashflow.models import CompanyMember

LOGGER = get_logger(__name__)


class AuthenticationError(Exception):
    """Raised when token validation fails."""


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    """Representation of the authenticated principal."""

    user_id: int
    email: str


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage.
        return False


class SecurityProvider:
    """Issue and verify JWT access tokens."""

    def __init__(self, settings: AuthSettings) -> None:
        self._settings = settings

    @property
    def cookie_name(self) -> str:
        """Return the cookie name used for the access token."""

        return self._settings.cookie_name

    @property
    def token_ttl_seconds(self) -> int:
        """Return the access token lifetime in seconds."""

        return int(self._settings.access_token_expire_minutes * 60)

    @property
    def min_password_length(self) -> int:
        return self._settings.min_password_length

    def create_access_token(self, user: AuthenticatedUser) -> str:
        """Create a signed JWT for the authenticated user."""

        now = datetime.now(tz=timezone.utc)
        expires = now + timedelta(minutes=self._settings.access_token_expire_minutes)
        payload: dict[str, object] = {
            "sub": str(user.user_id),
            "email": user.email,
            "iat": int(now.timestamp()),
            "exp": int(expires.timestamp()),
        }
        return jwt.encode(payload, self._settings.secret_key, algorithm=self._settings.algorithm)

    def decode_token(self, token: str) -> AuthenticatedUser:
        """Decode a JWT and return the corresponding ``AuthenticatedUser``."""

        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key,
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError as exc:
            raise AuthenticationError("Token expired") from exc
        except InvalidTokenError as exc:
            raise AuthenticationError("Invalid token") from exc

        subject = payload.get("sub")
        email = payload.get("email")
        if not isinstance(subject, str) or not isinstance(email, str):
            raise AuthenticationError("Token payload missing required claims")
        try:
            user_id = int(subject)
        except ValueError as exc:
            raise AuthenticationError("Token subject claim invalid") from exc
        return AuthenticatedUser(user_id=user_id, email=email)


@lru_cache(maxsize=1)
def get_security_provider() -> SecurityProvider:
    """Return a cached security provider instance."""

    return SecurityProvider(get_settings().auth)


def get_authenticated_user(request: Request) -> AuthenticatedUser:
    """Retrieve the authenticated user placed on the request by the middleware."""

    user = getattr(request.state, "user", None)
    if user is None:
        raise UnauthorizedError("Authentication required")
    return user


def is_company_member(session: Session, company_id: str, user_id: int) -> bool:
    membership = session.execute(
        select(CompanyMember.user_id).where(
            CompanyMember.company_id == company_id,
            CompanyMember.user_id == user_id,
        )
    ).first()
    return membership is not None


def require_company_member(
    company_id: str,
    user: AuthenticatedUser = Depends(get_authenticated_user),
    session: Session = Depends(get_db_session),
) -> AuthenticatedUser:
    """Ensure the user belongs to the company named in the path."""

    if not is_company_member(session, company_id, user.user_id):
        LOGGER.info("Denied company access user_id=%s company_id=%s", user.user_id, company_id)
        raise ForbiddenError("You do not have access to this company")
    return user


__all__ = [
    "AuthenticatedUser",
    "AuthenticationError",
    "SecurityProvider",
    "get_authenticated_user",
    "get_security_provider",
    "hash_password",
    "is_company_member",
    "require_company_member",
    "verify_password",
]
