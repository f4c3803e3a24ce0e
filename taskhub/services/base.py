"""
Base class for the domain services.

Every service method follows the same shape:

    validate referenced entities -> ask the AccessPolicy -> persist -> ServiceResult

Expected business failures come back as failed ServiceResults. Storage
and other infrastructure errors are not caught here; they propagate to
the API layer's exception handler.
"""

from __future__ import annotations

from typing import Any

from taskhub.auth.policies import AccessPolicy
from taskhub.config import Settings
from taskhub.core.results import ErrorCode, ServiceResult
from taskhub.storage.repository import Repositories


class DomainService:
    """Shared wiring for the User/Project/Task/Dashboard services."""

    def __init__(self, repos: Repositories, policy: AccessPolicy, settings: Settings):
        self.repos = repos
        self.policy = policy
        self.settings = settings

    def check_pagination(self, page: int, limit: int | None) -> ServiceResult[Any] | None:
        """Return a failed result when page/limit are out of range, else None."""
        if page < 1:
            return ServiceResult.fail(ErrorCode.VALIDATION_ERROR, "Page must be at least 1")
        if limit is not None and not 1 <= limit <= self.settings.max_page_size:
            return ServiceResult.fail(
                ErrorCode.VALIDATION_ERROR,
                f"Limit must be between 1 and {self.settings.max_page_size}",
            )
        return None

    def page_size(self, limit: int | None) -> int:
        return limit if limit is not None else self.settings.default_page_size

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
