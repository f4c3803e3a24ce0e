"""
Task service - tasks inside projects.

Tasks are returned as views: the stored fields plus `is_overdue` and
`days_until_due` computed against the current time.

`completed_at` is derived here on every status-changing write (single and
bulk) by `completion_timestamp`; nothing else writes it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from taskhub.auth.context import AuthContext
from taskhub.auth.policies import Action
from taskhub.core.models import Task, TaskPriority, TaskStatus
from taskhub.core.results import ErrorCode, ServiceResult
from taskhub.core.utils import as_utc, utc_now
from taskhub.services.base import DomainService
from taskhub.storage import queries
from taskhub.storage.base import Filters

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"title", "description", "status", "priority", "due_date", "assigned_to"}
BULK_FIELDS = {"status", "priority", "assigned_to"}

DASHBOARD_SIZE = 5
MAX_DUE_SOON_DAYS = 30


def completion_timestamp(task: Task, new_status: TaskStatus, now: datetime) -> datetime | None:
    """
    completed_at after moving `task` to `new_status`.

    Set on entering completed, kept on completed -> completed, cleared
    on leaving.
    """
    if new_status != TaskStatus.COMPLETED:
        return None
    if task.status == TaskStatus.COMPLETED and task.completed_at is not None:
        return task.completed_at
    return now


def _views(tasks: list[Task], now: datetime) -> list[dict[str, Any]]:
    return [t.to_view(now) for t in tasks]


class TaskService(DomainService):
    """CRUD, search, bulk updates and statistics for tasks."""

    async def _find(self, task_id: str) -> Task | None:
        return await self.repos.tasks.find_by_id(task_id)

    async def _scope(self, actor: AuthContext) -> Filters | None:
        """Tasks in projects the actor can access. None for admins (everything)."""
        if actor.is_admin:
            return None
        project_ids = await queries.accessible_project_ids(self.repos.projects, actor.user_id)
        return {"project_id": {"$in": project_ids}}

    # =========================================================================
    # CRUD
    # =========================================================================

    async def create_task(
        self,
        actor: AuthContext,
        title: str,
        description: str,
        project_id: str,
        assigned_to: str,
        due_date: datetime,
        priority: TaskPriority = TaskPriority.MEDIUM,
        status: TaskStatus = TaskStatus.TODO,
    ) -> ServiceResult[dict[str, Any]]:
        now = utc_now()
        if as_utc(due_date) <= now:
            return ServiceResult.fail(
                ErrorCode.VALIDATION_ERROR,
                "Due date must be in the future",
                details={"field": "due_date"},
            )

        if await self.repos.projects.find_by_id(project_id) is None:
            return ServiceResult.fail(ErrorCode.PROJECT_NOT_FOUND, "Project not found")

        decision = await self.policy.can_access(
            actor, Action.TASK_CREATE, project_id=project_id, user_id=assigned_to
        )
        if not decision:
            return decision.to_result()

        task = await self.repos.tasks.create(Task(
            title=title.strip(),
            description=description.strip(),
            project_id=project_id,
            assigned_to=assigned_to,
            status=status,
            priority=priority,
            due_date=as_utc(due_date),
            completed_at=now if status == TaskStatus.COMPLETED else None,
        ))
        logger.info("User %s created task %s in project %s", actor.user_id, task.id, project_id)
        return ServiceResult.ok(task.to_view(now))

    async def get_task(self, actor: AuthContext, task_id: str) -> ServiceResult[dict[str, Any]]:
        task = await self._find(task_id)
        if task is None:
            return ServiceResult.fail(ErrorCode.TASK_NOT_FOUND, "Task not found")

        decision = await self.policy.can_access(actor, Action.TASK_READ, project_id=task.project_id)
        if not decision:
            return decision.to_result()
        return ServiceResult.ok(task.to_view())

    async def update_task(
        self, actor: AuthContext, task_id: str, changes: dict[str, Any]
    ) -> ServiceResult[dict[str, Any]]:
        task = await self._find(task_id)
        if task is None:
            return ServiceResult.fail(ErrorCode.TASK_NOT_FOUND, "Task not found")

        decision = await self.policy.can_access(actor, Action.TASK_UPDATE, project_id=task.project_id)
        if not decision:
            return decision.to_result()

        updates = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
        now = utc_now()

        if "assigned_to" in updates and updates["assigned_to"] != task.assigned_to:
            decision = await self.policy.can_access(
                actor, Action.TASK_ASSIGN, project_id=task.project_id, user_id=updates["assigned_to"]
            )
            if not decision:
                return decision.to_result()

        if "due_date" in updates:
            updates["due_date"] = as_utc(updates["due_date"])
            if updates["due_date"] != as_utc(task.due_date) and updates["due_date"] <= now:
                return ServiceResult.fail(
                    ErrorCode.VALIDATION_ERROR,
                    "Due date must be in the future",
                    details={"field": "due_date"},
                )

        for key in ("title", "description"):
            if key in updates:
                updates[key] = updates[key].strip()

        if "status" in updates:
            updates["completed_at"] = completion_timestamp(task, TaskStatus(updates["status"]), now)

        updated = await self.repos.tasks.update_by_id(task_id, updates)
        return ServiceResult.ok(updated.to_view(now))

    async def delete_task(self, actor: AuthContext, task_id: str) -> ServiceResult[dict[str, Any]]:
        task = await self._find(task_id)
        if task is None:
            return ServiceResult.fail(ErrorCode.TASK_NOT_FOUND, "Task not found")

        decision = await self.policy.can_access(actor, Action.TASK_DELETE, project_id=task.project_id)
        if not decision:
            return decision.to_result()

        await self.repos.tasks.delete_by_id(task_id)
        logger.info("User %s deleted task %s", actor.user_id, task_id)
        return ServiceResult.ok({"id": task_id})

    # =========================================================================
    # Bulk
    # =========================================================================

    async def bulk_update_tasks(
        self, actor: AuthContext, task_ids: list[str], changes: dict[str, Any]
    ) -> ServiceResult[dict[str, Any]]:
        """
        Apply the same status/priority/assignee change to many tasks.

        All-or-nothing: every task and every project is validated before a
        single atomic write. Nothing is written if any check fails.
        """
        ids = list(dict.fromkeys(task_ids))
        updates = {k: v for k, v in changes.items() if k in BULK_FIELDS and v is not None}
        if not ids:
            return ServiceResult.fail(ErrorCode.VALIDATION_ERROR, "At least one task id is required")
        if not updates:
            return ServiceResult.fail(ErrorCode.VALIDATION_ERROR, "No updates provided")

        tasks = await self.repos.tasks.find_many({"id": {"$in": ids}})
        found = {t.id for t in tasks}
        missing = [i for i in ids if i not in found]
        if missing:
            return ServiceResult.fail(
                ErrorCode.TASKS_NOT_FOUND,
                "One or more tasks not found",
                details={"missing_ids": missing},
            )

        project_ids = list(dict.fromkeys(t.project_id for t in tasks))
        for project_id in project_ids:
            decision = await self.policy.can_access(actor, Action.TASK_UPDATE, project_id=project_id)
            if not decision:
                return ServiceResult.fail(
                    ErrorCode.TASKS_ACCESS_DENIED,
                    "Access denied to one or more tasks",
                    details={"project_id": project_id},
                )

        if "assigned_to" in updates:
            for project_id in project_ids:
                decision = await self.policy.can_access(
                    actor, Action.TASK_ASSIGN, project_id=project_id, user_id=updates["assigned_to"]
                )
                if not decision:
                    return decision.to_result()

        now = utc_now()
        per_task: dict[str, dict[str, Any]] = {}
        for task in tasks:
            task_updates = dict(updates)
            if "status" in updates:
                task_updates["completed_at"] = completion_timestamp(
                    task, TaskStatus(updates["status"]), now
                )
            per_task[task.id] = task_updates

        updated = await self.repos.tasks.update_many(per_task)
        logger.info("User %s bulk-updated %d tasks", actor.user_id, updated)
        return ServiceResult.ok({"updated": updated})

    # =========================================================================
    # Listing & search
    # =========================================================================

    async def get_project_tasks(
        self,
        actor: AuthContext,
        project_id: str,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> ServiceResult[list[dict[str, Any]]]:
        if await self.repos.projects.find_by_id(project_id) is None:
            return ServiceResult.fail(ErrorCode.PROJECT_NOT_FOUND, "Project not found")

        decision = await self.policy.can_access(actor, Action.PROJECT_READ, project_id=project_id)
        if not decision:
            return decision.to_result()

        invalid = self.check_pagination(page, limit)
        if invalid:
            return invalid

        filters = queries.combine(
            {"project_id": project_id},
            {"status": status} if status else None,
            {"priority": priority} if priority else None,
        )
        result = await self.repos.tasks.find_paginated(
            filters, page, self.page_size(limit), sort=[("due_date", 1)]
        )
        return ServiceResult.ok(_views(result.items, utc_now()), **result.meta())

    async def get_user_tasks(
        self,
        actor: AuthContext,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> ServiceResult[list[dict[str, Any]]]:
        """Tasks assigned to the actor, soonest due first."""
        invalid = self.check_pagination(page, limit)
        if invalid:
            return invalid

        filters = queries.combine(
            {"assigned_to": actor.user_id},
            {"status": status} if status else None,
            {"priority": priority} if priority else None,
        )
        result = await self.repos.tasks.find_paginated(
            filters, page, self.page_size(limit), sort=[("due_date", 1)]
        )
        return ServiceResult.ok(_views(result.items, utc_now()), **result.meta())

    async def search_tasks(
        self,
        actor: AuthContext,
        query: str | None = None,
        project_id: str | None = None,
        assigned_to: str | None = None,
        status: TaskStatus | None = None,
        priority: TaskPriority | None = None,
        overdue: bool | None = None,
        due_soon: int | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> ServiceResult[list[dict[str, Any]]]:
        """
        Search tasks across every project the actor can access.

        `due_soon` is a window in days (1-30) of not-completed tasks.
        """
        invalid = self.check_pagination(page, limit)
        if invalid:
            return invalid
        if due_soon is not None and not 1 <= due_soon <= MAX_DUE_SOON_DAYS:
            return ServiceResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"due_soon must be between 1 and {MAX_DUE_SOON_DAYS} days",
            )

        now = utc_now()
        filters = queries.combine(
            await self._scope(actor),
            queries.text_search_filter(query, ["title", "description"]) if query else None,
            {"project_id": project_id} if project_id else None,
            {"assigned_to": assigned_to} if assigned_to else None,
            {"status": status} if status else None,
            {"priority": priority} if priority else None,
            queries.overdue_filter(now) if overdue else None,
            queries.due_soon_filter(now, due_soon) if due_soon else None,
        )
        result = await self.repos.tasks.find_paginated(
            filters, page, self.page_size(limit), sort=[("due_date", 1)]
        )
        return ServiceResult.ok(_views(result.items, now), **result.meta())

    async def get_overdue_tasks(self, actor: AuthContext) -> ServiceResult[list[dict[str, Any]]]:
        """The actor's assigned tasks that are past due and not completed."""
        now = utc_now()
        tasks = await self.repos.tasks.find_many(
            queries.combine({"assigned_to": actor.user_id}, queries.overdue_filter(now)),
            sort=[("due_date", 1)],
        )
        return ServiceResult.ok(_views(tasks, now))

    async def get_tasks_due_soon(
        self, actor: AuthContext, days: int | None = None
    ) -> ServiceResult[list[dict[str, Any]]]:
        """The actor's open tasks due within `days` (default from settings)."""
        days = days if days is not None else self.settings.due_soon_days
        if not 1 <= days <= MAX_DUE_SOON_DAYS:
            return ServiceResult.fail(
                ErrorCode.VALIDATION_ERROR, f"Days must be between 1 and {MAX_DUE_SOON_DAYS}"
            )

        now = utc_now()
        tasks = await self.repos.tasks.find_many(
            queries.combine({"assigned_to": actor.user_id}, queries.due_soon_filter(now, days)),
            sort=[("due_date", 1)],
        )
        return ServiceResult.ok(_views(tasks, now))

    # =========================================================================
    # Statistics
    # =========================================================================

    async def get_task_statistics(
        self,
        actor: AuthContext,
        project_id: str | None = None,
        user_id: str | None = None,
    ) -> ServiceResult[dict[str, Any]]:
        """
        Counts, completion rate and average completion time.

        Scoped to one project and/or one assignee. Without a project,
        non-admins only count tasks in projects they can access.
        """
        if project_id:
            decision = await self.policy.can_access(actor, Action.PROJECT_READ, project_id=project_id)
            if not decision:
                return decision.to_result()
        if user_id:
            decision = await self.policy.can_access(actor, Action.USER_READ, user_id=user_id)
            if not decision:
                return decision.to_result()

        filters = queries.combine(
            {"project_id": project_id} if project_id else await self._scope(actor),
            {"assigned_to": user_id} if user_id else None,
        )
        stats = await queries.task_stats(self.repos.tasks, filters, utc_now())
        return ServiceResult.ok({
            **stats,
            "completion_rate": queries.completion_rate(stats),
            "average_completion_time": await queries.average_completion_days(self.repos.tasks, filters),
        })

    async def get_task_dashboard(self, actor: AuthContext) -> ServiceResult[dict[str, Any]]:
        """The actor's task overview. Zeroed, never failing, on empty data."""
        now = utc_now()
        mine: Filters = {"assigned_to": actor.user_id}

        stats = await queries.task_stats(self.repos.tasks, mine, now)
        recent = await self.repos.tasks.find_many(mine, sort=[("updated_at", -1)], limit=DASHBOARD_SIZE)
        upcoming = await self.repos.tasks.find_many(
            queries.combine(mine, {"status": {"$ne": TaskStatus.COMPLETED}, "due_date": {"$gte": now}}),
            sort=[("due_date", 1)],
            limit=DASHBOARD_SIZE,
        )

        week_ago = now - timedelta(days=7)
        two_weeks_ago = now - timedelta(days=14)
        completed_this_week = await self.repos.tasks.count(queries.combine(
            mine, {"status": TaskStatus.COMPLETED, "completed_at": {"$gte": week_ago}}
        ))
        completed_last_week = await self.repos.tasks.count(queries.combine(
            mine,
            {"status": TaskStatus.COMPLETED, "completed_at": {"$gte": two_weeks_ago, "$lt": week_ago}},
        ))

        summaries = await queries.project_task_summaries(self.repos.tasks, self.repos.projects, mine, now)

        return ServiceResult.ok({
            "my_tasks": stats,
            "recent_tasks": _views(recent, now),
            "upcoming_deadlines": _views(upcoming, now),
            "productivity": {
                "completion_rate": queries.completion_rate(stats),
                "tasks_completed_this_week": completed_this_week,
                "tasks_completed_last_week": completed_last_week,
                "average_completion_time": await queries.average_completion_days(self.repos.tasks, mine),
            },
            "project_summaries": summaries[:DASHBOARD_SIZE],
        })
