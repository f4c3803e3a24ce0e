"""
Dashboard service - combines the per-entity overviews.
"""

from __future__ import annotations

import logging
from typing import Any

from taskhub.auth.context import AuthContext
from taskhub.auth.policies import Action
from taskhub.core.results import ServiceResult
from taskhub.services.base import DomainService
from taskhub.services.projects import ProjectService
from taskhub.services.tasks import TaskService
from taskhub.services.users import UserService

logger = logging.getLogger(__name__)


def _data_or_none(result: ServiceResult[Any]) -> Any:
    if not result.success:
        logger.warning("Dashboard section failed: %s", result.code)
        return None
    return result.data


class DashboardService(DomainService):
    """
    User and admin dashboards.

    Each section is built by its own service; a failing section shows up
    as None rather than failing the whole dashboard.
    """

    def __init__(
        self,
        users: UserService,
        projects: ProjectService,
        tasks: TaskService,
    ):
        super().__init__(projects.repos, projects.policy, projects.settings)
        self.users = users
        self.projects = projects
        self.tasks = tasks

    async def get_dashboard(self, actor: AuthContext) -> ServiceResult[dict[str, Any]]:
        return ServiceResult.ok({
            "projects": _data_or_none(await self.projects.get_project_dashboard(actor)),
            "tasks": _data_or_none(await self.tasks.get_task_dashboard(actor)),
        })

    async def get_admin_dashboard(self, actor: AuthContext) -> ServiceResult[dict[str, Any]]:
        decision = await self.policy.can_access(actor, Action.ADMIN_VIEW)
        if not decision:
            return decision.to_result()

        return ServiceResult.ok({
            "projects": _data_or_none(await self.projects.get_project_statistics(actor)),
            "tasks": _data_or_none(await self.tasks.get_task_statistics(actor)),
            "users": _data_or_none(await self.users.get_user_statistics(actor)),
        })
