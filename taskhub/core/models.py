"""
Core data models for TaskHub.

These models represent the fundamental entities: Users, Projects and
Tasks. They are plain data; every derived field (password hashes,
completion timestamps) is computed by the services that write them.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from taskhub.core.utils import as_utc, days_between, generate_id, utc_now


# =============================================================================
# Enums
# =============================================================================


class UserRole(str, Enum):
    """Platform-wide role of a user."""

    ADMIN = "admin"
    USER = "user"


class ProjectStatus(str, Enum):
    """Status of a project."""

    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


class TaskStatus(str, Enum):
    """
    Status of a task.

    Any status may move to any other; there is no terminal state.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    """Priority of a task."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# =============================================================================
# User
# =============================================================================


class User(BaseModel):
    """
    A registered user of the platform.

    Users own projects, are members of other projects and are assigned
    tasks. Never deleted, only deactivated via is_active.
    """

    id: str = Field(default_factory=generate_id)
    name: str
    email: str

    # Auth
    password_hash: str
    role: UserRole = UserRole.USER
    is_active: bool = True

    avatar: str | None = None

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_login: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_public(self) -> UserPublic:
        """Strip sensitive fields."""
        return UserPublic(**self.model_dump(exclude={"password_hash"}))


class UserPublic(BaseModel):
    """User data returned to clients (no password hash)."""

    id: str
    name: str
    email: str
    role: UserRole
    is_active: bool
    avatar: str | None = None
    created_at: datetime
    updated_at: datetime
    last_login: datetime | None = None


# =============================================================================
# Project
# =============================================================================


class Project(BaseModel):
    """
    A project - the container for tasks.

    The owner has implicit access and is never stored in `members`.
    """

    id: str = Field(default_factory=generate_id)

    name: str
    description: str

    # Ownership (immutable after creation)
    owner_id: str
    members: list[str] = Field(default_factory=list)

    status: ProjectStatus = ProjectStatus.ACTIVE

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def is_owner(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def is_member(self, user_id: str) -> bool:
        return user_id in self.members

    def has_access(self, user_id: str) -> bool:
        """Owner or member."""
        return self.is_owner(user_id) or self.is_member(user_id)


# =============================================================================
# Task
# =============================================================================


class Task(BaseModel):
    """
    A unit of work inside a project, assigned to one user.

    completed_at is set exactly when status is COMPLETED.
    """

    id: str = Field(default_factory=generate_id)

    title: str
    description: str

    project_id: str
    assigned_to: str

    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM

    due_date: datetime
    completed_at: datetime | None = None

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.status == TaskStatus.COMPLETED:
            return False
        return as_utc(self.due_date) < (now or utc_now())

    def days_until_due(self, now: datetime | None = None) -> int:
        return days_between(now or utc_now(), self.due_date)

    def to_view(self, now: datetime | None = None) -> dict[str, Any]:
        """Task data plus the derived overdue fields."""
        now = now or utc_now()
        return {
            **self.model_dump(mode="json"),
            "is_overdue": self.is_overdue(now),
            "days_until_due": self.days_until_due(now),
        }
