"""
Request bodies for the HTTP API.

Field-level validation lives here; anything that needs storage (unique
emails, membership, due dates against now) is checked by the services.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Annotated

from fastapi import Path
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from taskhub.core.models import ProjectStatus, TaskPriority, TaskStatus, UserRole
from taskhub.core.utils import ID_PATTERN, is_valid_id

PASSWORD_RULES = [
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"\d"), "one number"),
    (re.compile(r"[^A-Za-z0-9]"), "one special character"),
]


# Path parameter for resource ids
ResourceId = Annotated[str, Path(pattern=ID_PATTERN.pattern)]


def _check_password(value: str) -> str:
    missing = [label for pattern, label in PASSWORD_RULES if not pattern.search(value)]
    if missing:
        raise ValueError("Password must contain at least " + ", ".join(missing))
    return value


def _check_id(value: str) -> str:
    if not is_valid_id(value):
        raise ValueError("Invalid ID format")
    return value


# =============================================================================
# Auth & users
# =============================================================================


class RegisterRequest(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=8)
    confirm_password: str

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password(value)

    @model_validator(mode="after")
    def passwords_match(self) -> RegisterRequest:
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=50)
    email: EmailStr | None = None
    avatar: str | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8)
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password(value)

    @model_validator(mode="after")
    def passwords_match(self) -> ChangePasswordRequest:
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class AdminUpdateUserRequest(BaseModel):
    role: UserRole | None = None
    is_active: bool | None = None


# =============================================================================
# Projects
# =============================================================================


class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=1, max_length=500)
    members: list[str] = Field(default_factory=list)
    status: ProjectStatus = ProjectStatus.ACTIVE

    @field_validator("members")
    @classmethod
    def member_ids(cls, value: list[str]) -> list[str]:
        return [_check_id(v) for v in value]


class UpdateProjectRequest(BaseModel):
    name: str | None = Field(default=None, min_length=3, max_length=100)
    description: str | None = Field(default=None, min_length=1, max_length=500)
    status: ProjectStatus | None = None


class MemberRequest(BaseModel):
    user_id: str

    @field_validator("user_id")
    @classmethod
    def user_id_format(cls, value: str) -> str:
        return _check_id(value)


# =============================================================================
# Tasks
# =============================================================================


class CreateTaskRequest(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=1, max_length=1000)
    project_id: str
    assigned_to: str
    due_date: datetime
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.TODO

    @field_validator("project_id", "assigned_to")
    @classmethod
    def id_format(cls, value: str) -> str:
        return _check_id(value)


class UpdateTaskRequest(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=200)
    description: str | None = Field(default=None, min_length=1, max_length=1000)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    assigned_to: str | None = None

    @field_validator("assigned_to")
    @classmethod
    def assignee_id(cls, value: str | None) -> str | None:
        return _check_id(value) if value is not None else value


class BulkUpdateTasksRequest(BaseModel):
    task_ids: list[str] = Field(min_length=1, max_length=100)
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    assigned_to: str | None = None

    @field_validator("task_ids")
    @classmethod
    def task_id_format(cls, value: list[str]) -> list[str]:
        return [_check_id(v) for v in value]

    @model_validator(mode="after")
    def has_updates(self) -> BulkUpdateTasksRequest:
        if self.status is None and self.priority is None and self.assigned_to is None:
            raise ValueError("At least one of status, priority or assigned_to is required")
        return self
