"""
Service results and error codes.

Every domain service method returns a ServiceResult instead of raising for
expected business failures. The API layer turns the result into a response
and maps the error code to an HTTP status with `http_status_for`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Stable error codes returned to clients."""

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Credentials / tokens
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    USER_INACTIVE = "USER_INACTIVE"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    MISSING_TOKEN = "MISSING_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_USER = "INVALID_USER"
    INVALID_PASSWORD = "INVALID_PASSWORD"

    # Conflicts
    USER_EXISTS = "USER_EXISTS"
    EMAIL_EXISTS = "EMAIL_EXISTS"

    # Not found
    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    TASKS_NOT_FOUND = "TASKS_NOT_FOUND"

    # Authorization
    ACCESS_DENIED = "ACCESS_DENIED"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    PROJECT_ACCESS_DENIED = "PROJECT_ACCESS_DENIED"
    TASK_ACCESS_DENIED = "TASK_ACCESS_DENIED"
    TASKS_ACCESS_DENIED = "TASKS_ACCESS_DENIED"

    # Business rules
    INVALID_MEMBERS = "INVALID_MEMBERS"
    ALREADY_MEMBER = "ALREADY_MEMBER"
    NOT_A_MEMBER = "NOT_A_MEMBER"
    CANNOT_REMOVE_OWNER = "CANNOT_REMOVE_OWNER"
    INVALID_ASSIGNED_USER = "INVALID_ASSIGNED_USER"
    ASSIGNED_USER_NO_ACCESS = "ASSIGNED_USER_NO_ACCESS"

    # Throttling
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server
    INTERNAL_ERROR = "INTERNAL_ERROR"


CONFLICT_CODES = {ErrorCode.USER_EXISTS, ErrorCode.EMAIL_EXISTS}

UNAUTHORIZED_CODES = {
    ErrorCode.INVALID_CREDENTIALS,
    ErrorCode.USER_INACTIVE,
    ErrorCode.INVALID_REFRESH_TOKEN,
    ErrorCode.MISSING_TOKEN,
    ErrorCode.TOKEN_EXPIRED,
    ErrorCode.INVALID_TOKEN,
}


def http_status_for(code: ErrorCode | str) -> int:
    """
    Map an error code to an HTTP status.

    *_NOT_FOUND -> 404, *ACCESS_DENIED and INSUFFICIENT_PERMISSIONS -> 403,
    conflicts -> 409, credential/token failures -> 401, RATE_LIMIT_EXCEEDED -> 429,
    INTERNAL_ERROR -> 500, every other business code -> 400.
    """
    value = code.value if isinstance(code, ErrorCode) else str(code)

    if value == ErrorCode.INTERNAL_ERROR.value:
        return 500
    if value == ErrorCode.RATE_LIMIT_EXCEEDED.value:
        return 429
    if value.endswith("NOT_FOUND"):
        return 404
    if value.endswith("ACCESS_DENIED") or value == ErrorCode.INSUFFICIENT_PERMISSIONS.value:
        return 403
    if value in {c.value for c in CONFLICT_CODES}:
        return 409
    if value in {c.value for c in UNAUTHORIZED_CODES}:
        return 401
    return 400


# =============================================================================
# Results
# =============================================================================


@dataclass
class ServiceError:
    """What went wrong, in client-safe terms."""

    code: ErrorCode
    message: str
    details: Any = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data


@dataclass
class ServiceResult(Generic[T]):
    """
    Discriminated success/failure result.

    Usage:
        result = await project_service.get_project(actor, project_id)
        if not result.success:
            return error_response(result.error)
        project = result.data
    """

    success: bool
    data: T | None = None
    error: ServiceError | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: T | None = None, **meta: Any) -> ServiceResult[T]:
        return cls(success=True, data=data, meta=meta)

    @classmethod
    def fail(cls, code: ErrorCode, message: str, details: Any = None) -> ServiceResult[T]:
        return cls(success=False, error=ServiceError(code=code, message=message, details=details))

    @property
    def code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.success:
            payload["data"] = self.data
        else:
            payload["error"] = self.error.to_dict()
        return payload


# =============================================================================
# Pagination
# =============================================================================


@dataclass
class Page(Generic[T]):
    """One page of a larger result set."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def meta(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "pages": self.pages,
            "has_next_page": self.page < self.pages,
            "has_prev_page": self.page > 1,
        }
