# =============================================================================
# Credential & Token Issuer
# =============================================================================
#
# This module provides:
#   - Password hashing (PBKDF2-SHA256)
#   - Token creation (access + refresh, separate secrets)
#   - Token validation
#
# Tokens carry the identity claims (user_id, email, role). Both kinds are
# signed JWTs; the "type" claim stops a refresh token being used as an
# access token and vice versa.
#
# =============================================================================

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum

import jwt
from pydantic import BaseModel

from taskhub.config import Settings
from taskhub.core.models import User, UserRole
from taskhub.core.utils import generate_id, utc_now

logger = logging.getLogger(__name__)

HASH_SCHEME = "pbkdf2_sha256"


# =============================================================================
# Models
# =============================================================================

class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class IdentityClaims(BaseModel):
    """Who the token is about."""
    user_id: str
    email: str
    role: UserRole

    @classmethod
    def for_user(cls, user: User) -> IdentityClaims:
        return cls(user_id=user.id, email=user.email, role=user.role)


class TokenPayload(IdentityClaims):
    """Validated JWT payload."""
    type: TokenKind
    jti: str
    iat: datetime
    exp: datetime

    def identity(self) -> IdentityClaims:
        return IdentityClaims(user_id=self.user_id, email=self.email, role=self.role)


class TokenPair(BaseModel):
    """Access and refresh token pair."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires


# =============================================================================
# Errors
# =============================================================================

class TokenError(Exception):
    """Base exception for token errors."""
    pass


class TokenExpiredError(TokenError):
    """Token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Token is invalid or malformed."""
    pass


# =============================================================================
# Issuer
# =============================================================================

class CredentialIssuer:
    """
    Hashes passwords and issues/verifies signed tokens.

    Constructed from Settings so tests can use cheap hashing and their
    own secrets.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    # -------------------------------------------------------------------------
    # Passwords
    # -------------------------------------------------------------------------

    def hash_password(self, password: str) -> str:
        """
        Hash a password using PBKDF2-SHA256.

        Returns: "pbkdf2_sha256$<iterations>$<salt>$<hash>"
        """
        iterations = self.settings.password_hash_iterations
        salt = secrets.token_hex(16)
        digest = hashlib.pbkdf2_hmac(
            "sha256",
            password.encode("utf-8"),
            salt.encode("utf-8"),
            iterations=iterations,
        )
        return f"{HASH_SCHEME}${iterations}${salt}${digest.hex()}"

    def verify_password(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash."""
        try:
            scheme, iterations, salt, stored_hash = password_hash.split("$")
            if scheme != HASH_SCHEME:
                return False
            digest = hashlib.pbkdf2_hmac(
                "sha256",
                password.encode("utf-8"),
                salt.encode("utf-8"),
                iterations=int(iterations),
            )
            return secrets.compare_digest(digest.hex(), stored_hash)
        except (ValueError, AttributeError):
            return False

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    def _secret_for(self, kind: TokenKind) -> str:
        if kind == TokenKind.REFRESH:
            return self.settings.jwt_refresh_secret_key
        return self.settings.jwt_secret_key

    def _issue(self, claims: IdentityClaims, kind: TokenKind, lifetime: timedelta) -> str:
        now = utc_now()
        payload = {
            "sub": claims.user_id,
            "email": claims.email,
            "role": claims.role.value,
            "type": kind.value,
            "jti": generate_id(),
            "iss": self.settings.jwt_issuer,
            "iat": now,
            "exp": now + lifetime,
        }
        return jwt.encode(payload, self._secret_for(kind), algorithm=self.settings.jwt_algorithm)

    def issue_access_token(self, claims: IdentityClaims) -> str:
        """Create a short-lived access token."""
        lifetime = timedelta(minutes=self.settings.jwt_access_token_expire_minutes)
        return self._issue(claims, TokenKind.ACCESS, lifetime)

    def issue_refresh_token(self, claims: IdentityClaims) -> str:
        """Create a refresh token (longer-lived)."""
        lifetime = timedelta(days=self.settings.jwt_refresh_token_expire_days)
        return self._issue(claims, TokenKind.REFRESH, lifetime)

    def issue_token_pair(self, claims: IdentityClaims) -> TokenPair:
        """Create both access and refresh tokens."""
        return TokenPair(
            access_token=self.issue_access_token(claims),
            refresh_token=self.issue_refresh_token(claims),
            expires_in=self.settings.jwt_access_token_expire_minutes * 60,
        )

    def verify_token(self, token: str, kind: TokenKind = TokenKind.ACCESS) -> TokenPayload:
        """
        Decode and validate a JWT token.

        Args:
            token: The JWT string
            kind: Which kind of token is expected

        Returns:
            TokenPayload with validated claims

        Raises:
            TokenExpiredError: Token has expired
            TokenInvalidError: Token is invalid, malformed or of the wrong kind
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_for(kind),
                algorithms=[self.settings.jwt_algorithm],
                issuer=self.settings.jwt_issuer,
                options={"require": ["exp", "iat", "sub", "iss"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid token: {e}")

        if payload.get("type") != kind.value:
            raise TokenInvalidError(f"Expected {kind.value} token, got {payload.get('type')}")

        try:
            return TokenPayload(
                user_id=payload["sub"],
                email=payload["email"],
                role=UserRole(payload["role"]),
                type=TokenKind(payload["type"]),
                jti=payload.get("jti", ""),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, ValueError) as e:
            raise TokenInvalidError(f"Invalid token claims: {e}")
