"""
Authentication and authorization.

- jwt: password hashing and signed access/refresh tokens
- context: the per-request AuthContext and its FastAPI dependency
- policies: the AccessPolicy that decides (actor, action, resource)
- routes: the /auth endpoints (imported by the app, not re-exported here)
"""

from taskhub.auth.context import AuthContext, AuthenticationError, get_current_actor
from taskhub.auth.jwt import (
    CredentialIssuer,
    IdentityClaims,
    TokenError,
    TokenExpiredError,
    TokenInvalidError,
    TokenKind,
    TokenPair,
    TokenPayload,
)
from taskhub.auth.policies import AccessPolicy, Action, Decision

__all__ = [
    # Context
    "AuthContext",
    "AuthenticationError",
    "get_current_actor",
    # Tokens
    "CredentialIssuer",
    "IdentityClaims",
    "TokenError",
    "TokenExpiredError",
    "TokenInvalidError",
    "TokenKind",
    "TokenPair",
    "TokenPayload",
    # Policy
    "AccessPolicy",
    "Action",
    "Decision",
]
