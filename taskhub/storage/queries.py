"""
Entity-specific queries and aggregations.

Free functions over the typed repositories. Aggregations always return a
fully populated result with zeroed defaults, never None.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Any

from taskhub.core.models import Project, ProjectStatus, Task, TaskPriority, TaskStatus, User
from taskhub.core.utils import as_utc
from taskhub.storage.base import Filters
from taskhub.storage.repository import Repository


# =============================================================================
# Filter builders
# =============================================================================


def access_filter(user_id: str) -> Filters:
    """Projects the user owns or is a member of."""
    return {"$or": [{"owner_id": user_id}, {"members": user_id}]}


def text_search_filter(query: str, fields: list[str]) -> Filters:
    """Case-insensitive substring match on any of the fields."""
    pattern = re.compile(re.escape(query.strip()), re.IGNORECASE)
    return {"$or": [{f: {"$regex": pattern}} for f in fields]}


def overdue_filter(now: datetime) -> Filters:
    return {"status": {"$ne": TaskStatus.COMPLETED}, "due_date": {"$lt": now}}


def due_soon_filter(now: datetime, days: int) -> Filters:
    return {
        "status": {"$ne": TaskStatus.COMPLETED},
        "due_date": {"$gte": now, "$lte": now + timedelta(days=days)},
    }


def combine(*filters: Filters | None) -> Filters:
    """AND together the non-empty filters."""
    parts = [f for f in filters if f]
    if not parts:
        return {}
    if len(parts) == 1:
        return parts[0]
    return {"$and": parts}


# =============================================================================
# Users
# =============================================================================


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_user_by_email(users: Repository[User], email: str) -> User | None:
    return await users.find_one({"email": normalize_email(email)})


async def email_taken(users: Repository[User], email: str, exclude_id: str | None = None) -> bool:
    filters: Filters = {"email": normalize_email(email)}
    if exclude_id:
        filters["id"] = {"$ne": exclude_id}
    return await users.count(filters) > 0


async def find_active_users(users: Repository[User], user_ids: list[str]) -> list[User]:
    """One batch query for every active user among the ids."""
    if not user_ids:
        return []
    return await users.find_many({"id": {"$in": user_ids}, "is_active": True})


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_month(now: datetime) -> datetime:
    return _start_of_day(now).replace(day=1)


async def user_stats(users: Repository[User], now: datetime) -> dict[str, Any]:
    """Totals by role and activity, new signups and recent logins."""
    by_role = await users.group_count("role")
    return {
        "total_users": sum(by_role.values()),
        "active_users": await users.count({"is_active": True}),
        "admin_users": by_role.get("admin", 0),
        "regular_users": by_role.get("user", 0),
        "new_users_this_month": await users.count({"created_at": {"$gte": start_of_month(now)}}),
        "last_login_stats": {
            "today": await users.count({"last_login": {"$gte": _start_of_day(now)}}),
            "this_week": await users.count({"last_login": {"$gte": now - timedelta(days=7)}}),
            "this_month": await users.count({"last_login": {"$gte": start_of_month(now)}}),
        },
    }


# =============================================================================
# Projects
# =============================================================================


async def accessible_project_ids(projects: Repository[Project], user_id: str) -> list[str]:
    return [p.id for p in await projects.find_many(access_filter(user_id))]


async def project_status_counts(
    projects: Repository[Project], filters: Filters | None = None
) -> dict[str, int]:
    grouped = await projects.group_count("status", filters)
    return {status.value: grouped.get(status.value, 0) for status in ProjectStatus}


async def projects_by_month(projects: Repository[Project]) -> list[dict[str, Any]]:
    """Project creation counts per YYYY-MM, oldest first."""
    counts: dict[str, int] = {}
    for project in await projects.find_many():
        month = as_utc(project.created_at).strftime("%Y-%m")
        counts[month] = counts.get(month, 0) + 1
    return [{"month": month, "count": counts[month]} for month in sorted(counts)]


# =============================================================================
# Tasks
# =============================================================================


def _percent(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole else 0.0


async def task_stats(tasks: Repository[Task], filters: Filters | None, now: datetime) -> dict[str, Any]:
    """Counts by status and priority plus the overdue count."""
    by_status = await tasks.group_count("status", filters)
    by_priority = await tasks.group_count("priority", filters)
    overdue = await tasks.count(combine(filters, overdue_filter(now)))

    total = sum(by_status.values())
    return {
        "total": total,
        "todo": by_status.get(TaskStatus.TODO.value, 0),
        "in_progress": by_status.get(TaskStatus.IN_PROGRESS.value, 0),
        "completed": by_status.get(TaskStatus.COMPLETED.value, 0),
        "overdue": overdue,
        "by_priority": {p.value: by_priority.get(p.value, 0) for p in TaskPriority},
    }


async def average_completion_days(tasks: Repository[Task], filters: Filters | None = None) -> float:
    """Mean days from creation to completion over completed tasks."""
    completed = await tasks.find_many(
        combine(filters, {"status": TaskStatus.COMPLETED, "completed_at": {"$exists": True}})
    )
    if not completed:
        return 0.0
    durations = [
        (as_utc(t.completed_at) - as_utc(t.created_at)).total_seconds() / 86400
        for t in completed
    ]
    return sum(durations) / len(durations)


async def project_task_summaries(
    tasks: Repository[Task],
    projects: Repository[Project],
    filters: Filters | None,
    now: datetime,
) -> list[dict[str, Any]]:
    """Per-project task counts and progress for the matching tasks."""
    grouped: dict[str, list[Task]] = {}
    for task in await tasks.find_many(filters):
        grouped.setdefault(task.project_id, []).append(task)

    summaries = []
    for project_id, project_tasks in grouped.items():
        project = await projects.find_by_id(project_id)
        if project is None:
            continue
        completed = sum(1 for t in project_tasks if t.status == TaskStatus.COMPLETED)
        summaries.append({
            "project_id": project_id,
            "project_name": project.name,
            "total_tasks": len(project_tasks),
            "completed_tasks": completed,
            "overdue_tasks": sum(1 for t in project_tasks if t.is_overdue(now)),
            "progress": _percent(completed, len(project_tasks)),
            "tasks_by_status": {
                s.value: sum(1 for t in project_tasks if t.status == s) for s in TaskStatus
            },
        })
    summaries.sort(key=lambda s: s["total_tasks"], reverse=True)
    return summaries


async def projects_with_task_counts(
    projects: Repository[Project],
    tasks: Repository[Task],
    filters: Filters | None,
    now: datetime,
) -> list[dict[str, Any]]:
    """Projects (most recently updated first) with their task progress."""
    results = []
    for project in await projects.find_many(filters, sort=[("updated_at", -1)]):
        project_tasks = await tasks.find_many({"project_id": project.id})
        completed = sum(1 for t in project_tasks if t.status == TaskStatus.COMPLETED)
        results.append({
            **project.model_dump(mode="json"),
            "task_count": len(project_tasks),
            "completed_tasks": completed,
            "overdue_tasks": sum(1 for t in project_tasks if t.is_overdue(now)),
            "progress": _percent(completed, len(project_tasks)),
        })
    return results


def completion_rate(stats: dict[str, Any]) -> float:
    return _percent(stats["completed"], stats["total"])
