"""
Core module - fundamental data models and shared types.

This module contains:
- models: Core data models (User, Project, Task)
- results: ServiceResult, error codes and pagination
- utils: Shared utility functions
"""

from taskhub.core.models import (
    Project,
    ProjectStatus,
    Task,
    TaskPriority,
    TaskStatus,
    User,
    UserPublic,
    UserRole,
)

from taskhub.core.results import (
    ErrorCode,
    Page,
    ServiceError,
    ServiceResult,
    http_status_for,
)

from taskhub.core.utils import (
    generate_id,
    utc_now,
)

__all__ = [
    # Models
    "Project",
    "ProjectStatus",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "User",
    "UserPublic",
    "UserRole",
    # Results
    "ErrorCode",
    "Page",
    "ServiceError",
    "ServiceResult",
    "http_status_for",
    # Utils
    "generate_id",
    "utc_now",
]
