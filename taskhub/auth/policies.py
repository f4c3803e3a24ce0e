"""
Access policy - decides whether an actor may perform an action.

Usage:
    decision = await policy.can_access(actor, Action.PROJECT_UPDATE, project_id=pid)
    if not decision:
        return decision.to_result()

Design:
- Stateless: ownership and membership are re-read from storage on every
  call, nothing is cached between checks
- Membership always means {owner} ∪ members
- Admins may do anything except the owner-only project mutations, and
  never bypass target-integrity rules (removing the owner, adding an
  invalid or existing member, assigning to a user without access)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from taskhub.auth.context import AuthContext
from taskhub.core.models import Project
from taskhub.core.results import ErrorCode, ServiceResult
from taskhub.storage.repository import Repositories

logger = logging.getLogger(__name__)


# =============================================================================
# Actions
# =============================================================================


class Action(str, Enum):
    """Everything the policy knows how to decide on."""

    # Project
    PROJECT_READ = "project.read"
    PROJECT_UPDATE = "project.update"
    PROJECT_DELETE = "project.delete"
    PROJECT_ADD_MEMBER = "project.add_member"
    PROJECT_REMOVE_MEMBER = "project.remove_member"

    # Task
    TASK_CREATE = "task.create"
    TASK_READ = "task.read"
    TASK_UPDATE = "task.update"
    TASK_DELETE = "task.delete"
    TASK_ASSIGN = "task.assign"

    # User
    USER_READ = "user.read"
    USER_UPDATE = "user.update"

    # Admin
    ADMIN_VIEW = "admin.view"


OWNER_ONLY_ACTIONS = {
    Action.PROJECT_UPDATE,
    Action.PROJECT_DELETE,
    Action.PROJECT_ADD_MEMBER,
    Action.PROJECT_REMOVE_MEMBER,
}

TASK_SCOPED_ACTIONS = {
    Action.TASK_READ,
    Action.TASK_UPDATE,
    Action.TASK_DELETE,
    Action.TASK_ASSIGN,
}

USER_ACTIONS = {Action.USER_READ, Action.USER_UPDATE}


# =============================================================================
# Decision
# =============================================================================


@dataclass(frozen=True)
class Decision:
    """Allow, or Deny with a stable code and message."""

    allowed: bool
    code: ErrorCode | None = None
    message: str | None = None

    @classmethod
    def allow(cls) -> Decision:
        return cls(allowed=True)

    @classmethod
    def deny(cls, code: ErrorCode, message: str) -> Decision:
        return cls(allowed=False, code=code, message=message)

    def __bool__(self) -> bool:
        return self.allowed

    def to_result(self) -> ServiceResult[Any]:
        """The failed ServiceResult for a denial."""
        return ServiceResult.fail(self.code, self.message)


# =============================================================================
# Policy
# =============================================================================


class AccessPolicy:
    """
    The authorization engine.

    `project_id` names the project the action is scoped to (for task
    actions, the task's parent project). `user_id` names the target user:
    the member being added or removed, the assignee, or the user being
    read or updated.
    """

    def __init__(self, repos: Repositories):
        self.repos = repos

    async def can_access(
        self,
        actor: AuthContext,
        action: Action | str,
        *,
        project_id: str | None = None,
        user_id: str | None = None,
    ) -> Decision:
        action = Action(action)

        if action == Action.ADMIN_VIEW:
            decision = self._check_admin(actor)
        elif action in USER_ACTIONS:
            decision = self._check_self(actor, user_id)
        else:
            project = await self.repos.projects.find_by_id(project_id) if project_id else None
            if project is None:
                decision = Decision.deny(ErrorCode.PROJECT_NOT_FOUND, "Project not found")
            else:
                decision = await self._check_project(actor, action, project, user_id)

        if not decision:
            logger.debug(
                "Denied %s for user %s: %s", action.value, actor.user_id, decision.code.value
            )
        return decision

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_admin(actor: AuthContext) -> Decision:
        if actor.is_admin:
            return Decision.allow()
        return Decision.deny(ErrorCode.INSUFFICIENT_PERMISSIONS, "Admin access required")

    @staticmethod
    def _check_self(actor: AuthContext, user_id: str | None) -> Decision:
        if actor.is_admin or (user_id is not None and actor.user_id == user_id):
            return Decision.allow()
        return Decision.deny(ErrorCode.ACCESS_DENIED, "Access denied")

    async def _check_project(
        self,
        actor: AuthContext,
        action: Action,
        project: Project,
        target_id: str | None,
    ) -> Decision:
        if action == Action.PROJECT_REMOVE_MEMBER:
            return self._check_remove_member(actor, project, target_id)

        if action in OWNER_ONLY_ACTIONS:
            if not project.is_owner(actor.user_id):
                return Decision.deny(
                    ErrorCode.INSUFFICIENT_PERMISSIONS,
                    "Only the project owner can perform this action",
                )
            if action == Action.PROJECT_ADD_MEMBER:
                return await self._check_new_member(project, target_id)
            return Decision.allow()

        if not (actor.is_admin or project.has_access(actor.user_id)):
            if action in TASK_SCOPED_ACTIONS:
                return Decision.deny(ErrorCode.TASK_ACCESS_DENIED, "Access denied to this task")
            return Decision.deny(ErrorCode.PROJECT_ACCESS_DENIED, "Access denied to this project")

        if action in (Action.TASK_CREATE, Action.TASK_ASSIGN) and target_id is not None:
            return await self._check_assignee(project, target_id)

        return Decision.allow()

    @staticmethod
    def _check_remove_member(
        actor: AuthContext, project: Project, target_id: str | None
    ) -> Decision:
        if target_id is None:
            return Decision.deny(ErrorCode.VALIDATION_ERROR, "A user id is required")
        # Owner check comes first and applies to every caller, admins included
        if project.is_owner(target_id):
            return Decision.deny(
                ErrorCode.CANNOT_REMOVE_OWNER, "The project owner cannot be removed"
            )
        if not (project.is_owner(actor.user_id) or actor.user_id == target_id):
            return Decision.deny(
                ErrorCode.INSUFFICIENT_PERMISSIONS,
                "Only the project owner can remove other members",
            )
        if not project.is_member(target_id):
            return Decision.deny(ErrorCode.NOT_A_MEMBER, "User is not a member of this project")
        return Decision.allow()

    async def _check_new_member(self, project: Project, target_id: str | None) -> Decision:
        user = await self.repos.users.find_by_id(target_id) if target_id else None
        if user is None or not user.is_active:
            return Decision.deny(ErrorCode.INVALID_USER, "User not found or inactive")
        if project.has_access(user.id):
            return Decision.deny(
                ErrorCode.ALREADY_MEMBER, "User is already a member of this project"
            )
        return Decision.allow()

    async def _check_assignee(self, project: Project, assignee_id: str) -> Decision:
        user = await self.repos.users.find_by_id(assignee_id)
        if user is None or not user.is_active:
            return Decision.deny(
                ErrorCode.INVALID_ASSIGNED_USER, "Assigned user not found or inactive"
            )
        if not project.has_access(user.id):
            return Decision.deny(
                ErrorCode.ASSIGNED_USER_NO_ACCESS,
                "Assigned user does not have access to this project",
            )
        return Decision.allow()
