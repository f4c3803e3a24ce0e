"""
User service - registration, login, tokens and profiles.

Password hashing is an explicit step here, never a storage hook: the
repository only ever sees the finished hash.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any

from taskhub.auth.context import AuthContext
from taskhub.auth.jwt import CredentialIssuer, IdentityClaims, TokenError, TokenKind
from taskhub.auth.policies import AccessPolicy, Action
from taskhub.config import Settings
from taskhub.core.models import User, UserPublic, UserRole
from taskhub.core.results import ErrorCode, Page, ServiceResult
from taskhub.core.utils import utc_now
from taskhub.services.base import DomainService
from taskhub.storage import queries
from taskhub.storage.base import DuplicateKeyError
from taskhub.storage.repository import Repositories

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {"name", "email", "avatar"}
ADMIN_FIELDS = {"role", "is_active"}


class UserService(DomainService):
    """Everything about users and their credentials."""

    def __init__(
        self,
        repos: Repositories,
        policy: AccessPolicy,
        settings: Settings,
        issuer: CredentialIssuer,
    ):
        super().__init__(repos, policy, settings)
        self.issuer = issuer
        # Checked against when the email is unknown
        self._dummy_hash = issuer.hash_password(secrets.token_urlsafe(16))

    def _auth_payload(self, user: User) -> dict[str, Any]:
        tokens = self.issuer.issue_token_pair(IdentityClaims.for_user(user))
        return {
            "user": user.to_public(),
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
            "token_type": tokens.token_type,
            "expires_in": tokens.expires_in,
        }

    # =========================================================================
    # Authentication
    # =========================================================================

    async def register(self, name: str, email: str, password: str) -> ServiceResult[dict[str, Any]]:
        """Create an account and sign it in."""
        email = queries.normalize_email(email)
        if await queries.email_taken(self.repos.users, email):
            return ServiceResult.fail(ErrorCode.USER_EXISTS, "User with this email already exists")

        try:
            user = await self.repos.users.create(User(
                name=name.strip(),
                email=email,
                password_hash=self.issuer.hash_password(password),
            ))
        except DuplicateKeyError:
            return ServiceResult.fail(ErrorCode.USER_EXISTS, "User with this email already exists")
        logger.info("Registered user %s", user.id)
        return ServiceResult.ok(self._auth_payload(user))

    async def login(self, email: str, password: str) -> ServiceResult[dict[str, Any]]:
        user = await queries.find_user_by_email(self.repos.users, email)
        if user is None:
            # Unknown emails pay the same PBKDF2 cost as a wrong password
            self.issuer.verify_password(password, self._dummy_hash)
            return ServiceResult.fail(ErrorCode.INVALID_CREDENTIALS, "Invalid credentials")
        if not self.issuer.verify_password(password, user.password_hash):
            return ServiceResult.fail(ErrorCode.INVALID_CREDENTIALS, "Invalid credentials")

        if not user.is_active:
            logger.info("Login attempt on inactive account %s", user.id)
            if self.settings.login_reveal_inactive:
                return ServiceResult.fail(ErrorCode.USER_INACTIVE, "Account is deactivated")
            return ServiceResult.fail(ErrorCode.INVALID_CREDENTIALS, "Invalid credentials")

        user = await self.repos.users.update_by_id(user.id, {"last_login": utc_now()})
        return ServiceResult.ok(self._auth_payload(user))

    async def refresh_token(self, token: str) -> ServiceResult[dict[str, Any]]:
        """Exchange a refresh token for a new access token."""
        try:
            payload = self.issuer.verify_token(token, TokenKind.REFRESH)
        except TokenError as e:
            logger.debug("Refresh rejected: %s", e)
            return ServiceResult.fail(ErrorCode.INVALID_REFRESH_TOKEN, "Invalid refresh token")

        user = await self.repos.users.find_by_id(payload.user_id)
        if user is None or not user.is_active:
            return ServiceResult.fail(ErrorCode.INVALID_REFRESH_TOKEN, "Invalid refresh token")

        return ServiceResult.ok({
            "access_token": self.issuer.issue_access_token(IdentityClaims.for_user(user)),
            "token_type": "bearer",
            "expires_in": self.settings.jwt_access_token_expire_minutes * 60,
        })

    # =========================================================================
    # Profiles
    # =========================================================================

    async def get_profile(self, actor: AuthContext, user_id: str) -> ServiceResult[UserPublic]:
        user = await self.repos.users.find_by_id(user_id)
        if user is None:
            return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "User not found")

        decision = await self.policy.can_access(actor, Action.USER_READ, user_id=user_id)
        if not decision:
            return decision.to_result()

        return ServiceResult.ok(user.to_public())

    async def update_profile(
        self, actor: AuthContext, user_id: str, changes: dict[str, Any]
    ) -> ServiceResult[UserPublic]:
        """Update name, email or avatar."""
        user = await self.repos.users.find_by_id(user_id)
        if user is None:
            return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "User not found")

        decision = await self.policy.can_access(actor, Action.USER_UPDATE, user_id=user_id)
        if not decision:
            return decision.to_result()

        updates = {k: v for k, v in changes.items() if k in PROFILE_FIELDS and v is not None}
        if "email" in updates:
            updates["email"] = queries.normalize_email(updates["email"])
            if await queries.email_taken(self.repos.users, updates["email"], exclude_id=user_id):
                return ServiceResult.fail(ErrorCode.EMAIL_EXISTS, "Email already exists")
        if "name" in updates:
            updates["name"] = updates["name"].strip()

        try:
            updated = await self.repos.users.update_by_id(user_id, updates)
        except DuplicateKeyError:
            return ServiceResult.fail(ErrorCode.EMAIL_EXISTS, "Email already exists")
        return ServiceResult.ok(updated.to_public())

    async def change_password(
        self, actor: AuthContext, current_password: str, new_password: str
    ) -> ServiceResult[None]:
        user = await self.repos.users.find_by_id(actor.user_id)
        if user is None:
            return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "User not found")

        if not self.issuer.verify_password(current_password, user.password_hash):
            return ServiceResult.fail(ErrorCode.INVALID_PASSWORD, "Current password is incorrect")

        await self.repos.users.update_by_id(
            user.id, {"password_hash": self.issuer.hash_password(new_password)}
        )
        logger.info("Password changed for user %s", user.id)
        return ServiceResult.ok()

    # =========================================================================
    # Directory
    # =========================================================================

    async def search_users(
        self, actor: AuthContext, query: str, limit: int | None = None
    ) -> ServiceResult[list[UserPublic]]:
        """Active users whose name or email contains the query."""
        if not query or not query.strip():
            return ServiceResult.fail(ErrorCode.VALIDATION_ERROR, "Search query is required")
        invalid = self.check_pagination(1, limit)
        if invalid:
            return invalid

        filters = queries.combine(
            {"is_active": True},
            queries.text_search_filter(query, ["name", "email"]),
        )
        users = await self.repos.users.find_many(
            filters, sort=[("name", 1)], limit=self.page_size(limit)
        )
        return ServiceResult.ok([u.to_public() for u in users])

    # =========================================================================
    # Admin
    # =========================================================================

    async def list_users(
        self,
        actor: AuthContext,
        page: int = 1,
        limit: int | None = None,
        role: UserRole | None = None,
        is_active: bool | None = None,
    ) -> ServiceResult[list[UserPublic]]:
        decision = await self.policy.can_access(actor, Action.ADMIN_VIEW)
        if not decision:
            return decision.to_result()
        invalid = self.check_pagination(page, limit)
        if invalid:
            return invalid

        filters: dict[str, Any] = {}
        if role is not None:
            filters["role"] = role
        if is_active is not None:
            filters["is_active"] = is_active

        result: Page[User] = await self.repos.users.find_paginated(
            filters, page, self.page_size(limit), sort=[("created_at", -1)]
        )
        return ServiceResult.ok([u.to_public() for u in result.items], **result.meta())

    async def admin_update_user(
        self, actor: AuthContext, user_id: str, changes: dict[str, Any]
    ) -> ServiceResult[UserPublic]:
        """Change a user's role or activation."""
        decision = await self.policy.can_access(actor, Action.ADMIN_VIEW)
        if not decision:
            return decision.to_result()

        user = await self.repos.users.find_by_id(user_id)
        if user is None:
            return ServiceResult.fail(ErrorCode.USER_NOT_FOUND, "User not found")

        updates = {k: v for k, v in changes.items() if k in ADMIN_FIELDS and v is not None}
        updated = await self.repos.users.update_by_id(user_id, updates)
        logger.info("Admin %s updated user %s: %s", actor.user_id, user_id, sorted(updates))
        return ServiceResult.ok(updated.to_public())

    async def get_user_statistics(self, actor: AuthContext) -> ServiceResult[dict[str, Any]]:
        decision = await self.policy.can_access(actor, Action.ADMIN_VIEW)
        if not decision:
            return decision.to_result()
        return ServiceResult.ok(await queries.user_stats(self.repos.users, utc_now()))
