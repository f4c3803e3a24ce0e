"""
Project service - projects and their membership.
"""

from __future__ import annotations

import logging
from typing import Any

from taskhub.auth.context import AuthContext
from taskhub.auth.policies import Action
from taskhub.core.models import Project, ProjectStatus
from taskhub.core.results import ErrorCode, ServiceResult
from taskhub.core.utils import utc_now
from taskhub.services.base import DomainService
from taskhub.storage import queries

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"name", "description", "status"}

DASHBOARD_SIZE = 5


class ProjectService(DomainService):
    """CRUD, membership, search and dashboards for projects."""

    async def _find(self, project_id: str) -> Project | None:
        return await self.repos.projects.find_by_id(project_id)

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_project(
        self,
        actor: AuthContext,
        name: str,
        description: str,
        members: list[str] | None = None,
        status: ProjectStatus = ProjectStatus.ACTIVE,
    ) -> ServiceResult[Project]:
        """
        Create a project owned by the actor.

        Member ids are deduplicated and the owner dropped before all of
        them are checked against active users in one query.
        """
        member_ids = list(dict.fromkeys(m for m in (members or []) if m != actor.user_id))

        if member_ids:
            found = await queries.find_active_users(self.repos.users, member_ids)
            found_ids = {u.id for u in found}
            invalid = [m for m in member_ids if m not in found_ids]
            if invalid:
                return ServiceResult.fail(
                    ErrorCode.INVALID_MEMBERS,
                    "One or more members are invalid or inactive",
                    details={"invalid_ids": invalid},
                )

        project = await self.repos.projects.create(Project(
            name=name.strip(),
            description=description.strip(),
            owner_id=actor.user_id,
            members=member_ids,
            status=status,
        ))
        logger.info("User %s created project %s", actor.user_id, project.id)
        return ServiceResult.ok(project)

    async def get_project(self, actor: AuthContext, project_id: str) -> ServiceResult[Project]:
        project = await self._find(project_id)
        if project is None:
            return ServiceResult.fail(ErrorCode.PROJECT_NOT_FOUND, "Project not found")

        decision = await self.policy.can_access(actor, Action.PROJECT_READ, project_id=project_id)
        if not decision:
            return decision.to_result()
        return ServiceResult.ok(project)

    async def update_project(
        self, actor: AuthContext, project_id: str, changes: dict[str, Any]
    ) -> ServiceResult[Project]:
        """Owner-only change of name, description or status."""
        if await self._find(project_id) is None:
            return ServiceResult.fail(ErrorCode.PROJECT_NOT_FOUND, "Project not found")

        decision = await self.policy.can_access(actor, Action.PROJECT_UPDATE, project_id=project_id)
        if not decision:
            return decision.to_result()

        updates = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
        for key in ("name", "description"):
            if key in updates:
                updates[key] = updates[key].strip()

        project = await self.repos.projects.update_by_id(project_id, updates)
        return ServiceResult.ok(project)

    async def delete_project(
        self, actor: AuthContext, project_id: str
    ) -> ServiceResult[dict[str, Any]]:
        """Owner-only delete; the project's tasks go with it."""
        if await self._find(project_id) is None:
            return ServiceResult.fail(ErrorCode.PROJECT_NOT_FOUND, "Project not found")

        decision = await self.policy.can_access(actor, Action.PROJECT_DELETE, project_id=project_id)
        if not decision:
            return decision.to_result()

        deleted_tasks = await self.repos.tasks.delete_many({"project_id": project_id})
        await self.repos.projects.delete_by_id(project_id)
        logger.info("Deleted project %s with %d tasks", project_id, deleted_tasks)
        return ServiceResult.ok({"id": project_id, "deleted_tasks": deleted_tasks})

    # =========================================================================
    # Membership
    # =========================================================================

    async def add_member(
        self, actor: AuthContext, project_id: str, user_id: str
    ) -> ServiceResult[Project]:
        decision = await self.policy.can_access(
            actor, Action.PROJECT_ADD_MEMBER, project_id=project_id, user_id=user_id
        )
        if not decision:
            return decision.to_result()

        project = await self.repos.projects.add_to_set(project_id, "members", user_id)
        logger.info("Added user %s to project %s", user_id, project_id)
        return ServiceResult.ok(project)

    async def remove_member(
        self, actor: AuthContext, project_id: str, user_id: str
    ) -> ServiceResult[Project]:
        """Owner removes anyone but themself; members may remove themselves."""
        decision = await self.policy.can_access(
            actor, Action.PROJECT_REMOVE_MEMBER, project_id=project_id, user_id=user_id
        )
        if not decision:
            return decision.to_result()

        project = await self.repos.projects.pull(project_id, "members", user_id)
        logger.info("Removed user %s from project %s", user_id, project_id)
        return ServiceResult.ok(project)

    # =========================================================================
    # Listing & search
    # =========================================================================

    async def get_user_projects(
        self,
        actor: AuthContext,
        page: int = 1,
        limit: int | None = None,
        status: ProjectStatus | None = None,
    ) -> ServiceResult[list[Project]]:
        """Projects the actor owns or belongs to, most recently updated first."""
        invalid = self.check_pagination(page, limit)
        if invalid:
            return invalid

        filters = queries.combine(
            queries.access_filter(actor.user_id),
            {"status": status} if status else None,
        )
        result = await self.repos.projects.find_paginated(
            filters, page, self.page_size(limit), sort=[("updated_at", -1)]
        )
        return ServiceResult.ok(result.items, **result.meta())

    async def search_projects(
        self,
        actor: AuthContext,
        query: str | None = None,
        status: ProjectStatus | None = None,
        owner_id: str | None = None,
        member_id: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> ServiceResult[list[Project]]:
        """
        Search by name/description with optional filters.

        Non-admins only ever see projects they can access.
        """
        invalid = self.check_pagination(page, limit)
        if invalid:
            return invalid

        filters = queries.combine(
            None if actor.is_admin else queries.access_filter(actor.user_id),
            queries.text_search_filter(query, ["name", "description"]) if query else None,
            {"status": status} if status else None,
            {"owner_id": owner_id} if owner_id else None,
            {"members": member_id} if member_id else None,
        )
        result = await self.repos.projects.find_paginated(
            filters, page, self.page_size(limit), sort=[("updated_at", -1)]
        )
        return ServiceResult.ok(result.items, **result.meta())

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_project_statistics(self, actor: AuthContext) -> ServiceResult[dict[str, Any]]:
        """Platform-wide project counts (admin only)."""
        decision = await self.policy.can_access(actor, Action.ADMIN_VIEW)
        if not decision:
            return decision.to_result()

        by_status = await queries.project_status_counts(self.repos.projects)
        return ServiceResult.ok({
            "total_projects": sum(by_status.values()),
            "active_projects": by_status[ProjectStatus.ACTIVE.value],
            "completed_projects": by_status[ProjectStatus.COMPLETED.value],
            "paused_projects": by_status[ProjectStatus.PAUSED.value],
            "projects_by_month": await queries.projects_by_month(self.repos.projects),
        })

    async def get_project_dashboard(self, actor: AuthContext) -> ServiceResult[dict[str, Any]]:
        """The actor's project overview. Zeroed, never failing, on empty data."""
        owned = await self.repos.projects.count({"owner_id": actor.user_id})
        member = await self.repos.projects.count({"members": actor.user_id})
        access = queries.access_filter(actor.user_id)

        recent = await self.repos.projects.find_many(
            access, sort=[("updated_at", -1)], limit=DASHBOARD_SIZE
        )
        with_tasks = await queries.projects_with_task_counts(
            self.repos.projects, self.repos.tasks, access, utc_now()
        )

        return ServiceResult.ok({
            "my_projects": {"owned": owned, "member": member, "total": owned + member},
            "recent_projects": recent,
            "projects_by_status": await queries.project_status_counts(self.repos.projects, access),
            "projects_with_tasks": with_tasks[:DASHBOARD_SIZE],
        })
