"""
Auth context - who is making the request.

The actor is resolved from the bearer token on every request and then
re-checked against the user store, so a deactivated user is locked out
even while their token is still valid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from taskhub.auth.jwt import TokenExpiredError, TokenInvalidError, TokenKind
from taskhub.core.models import User, UserRole
from taskhub.core.results import ErrorCode
from taskhub.integrations.sentry import set_user

logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    """
    The authenticated actor for a request.

    Usage in routes:
        async def my_route(actor: AuthContext = Depends(get_current_actor)):
            result = await services.projects.get_project(actor, project_id)
    """

    user_id: str
    email: str
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def for_user(cls, user: User) -> AuthContext:
        return cls(user_id=user.id, email=user.email, role=user.role)


class AuthenticationError(Exception):
    """Request could not be authenticated (always a 401)."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


# =============================================================================
# Request Dependency
# =============================================================================


# Optional bearer so a missing header yields our own MISSING_TOKEN error
optional_bearer = HTTPBearer(auto_error=False)


async def get_current_actor(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(optional_bearer),
) -> AuthContext:
    """
    Resolve the AuthContext from the Authorization header.

    Raises:
        AuthenticationError: MISSING_TOKEN, TOKEN_EXPIRED, INVALID_TOKEN or
            INVALID_USER (token is fine but the user is gone or inactive)
    """
    if not credentials or not credentials.credentials:
        raise AuthenticationError(ErrorCode.MISSING_TOKEN, "Access token is required")

    services = request.app.state.services

    try:
        payload = services.issuer.verify_token(credentials.credentials, TokenKind.ACCESS)
    except TokenExpiredError:
        raise AuthenticationError(ErrorCode.TOKEN_EXPIRED, "Access token has expired")
    except TokenInvalidError as e:
        logger.debug("Rejected access token: %s", e)
        raise AuthenticationError(ErrorCode.INVALID_TOKEN, "Invalid access token")

    user = await services.repos.users.find_by_id(payload.user_id)
    if user is None or not user.is_active:
        raise AuthenticationError(ErrorCode.INVALID_USER, "User not found or inactive")

    set_user(user.id)

    # Role comes from the stored user, not the token, so demotions apply at once
    return AuthContext.for_user(user)
