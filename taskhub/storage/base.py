"""
Storage abstraction layer.

All persistence goes through the DocumentStore interface. This allows
swapping implementations (in-memory for tests, JSON files on disk for a
single-node deployment) without changing application code.

Filters use a small MongoDB-style language:

    {"status": "todo"}                         equality (list fields: contains)
    {"due_date": {"$lt": now}}                 $eq $ne $lt $lte $gt $gte
    {"id": {"$in": [...]}}                     $in $nin
    {"completed_at": {"$exists": True}}        $exists
    {"title": {"$regex": "deploy"}}            case-insensitive search
    {"$or": [{...}, {...}]}                    $or / $and
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


Filters = dict[str, Any]
Sort = list[tuple[str, int]]


# =============================================================================
# Storage Interface
# =============================================================================


class DocumentStore(ABC):
    """
    Storage for structured documents (users, projects, tasks).

    Documents are dicts keyed by "id". Writes to a single document are
    atomic; `update_many` commits a batch of documents atomically. A write
    that breaks a unique field (users.email) raises DuplicateKeyError.

    Lifecycle: construct once at startup, `open()` before use and `close()`
    on shutdown.
    """

    async def open(self) -> None:
        """Acquire connections or other resources."""
        pass

    async def close(self) -> None:
        """Release resources."""
        pass

    @abstractmethod
    async def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        """Insert a new document, return the stored copy."""
        pass

    @abstractmethod
    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Get a document by ID."""
        pass

    @abstractmethod
    async def find(
        self,
        collection: str,
        filters: Filters | None = None,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Query documents with optional filters, sort and pagination."""
        pass

    @abstractmethod
    async def count(self, collection: str, filters: Filters | None = None) -> int:
        """Count documents matching the filters."""
        pass

    @abstractmethod
    async def update(
        self, collection: str, id: str, updates: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Set fields on a document, return the updated copy."""
        pass

    @abstractmethod
    async def update_many(
        self, collection: str, updates_by_id: dict[str, dict[str, Any]]
    ) -> int:
        """
        Apply per-document field updates as one atomic batch.

        Either every listed document is updated or none is.
        Returns the number of documents updated.
        """
        pass

    @abstractmethod
    async def add_to_set(
        self, collection: str, id: str, field: str, value: Any
    ) -> dict[str, Any] | None:
        """Append value to a list field unless already present."""
        pass

    @abstractmethod
    async def pull(
        self, collection: str, id: str, field: str, value: Any
    ) -> dict[str, Any] | None:
        """Remove every occurrence of value from a list field."""
        pass

    @abstractmethod
    async def delete(self, collection: str, id: str) -> bool:
        """Delete a document."""
        pass

    @abstractmethod
    async def delete_many(self, collection: str, filters: Filters) -> int:
        """Delete every matching document, return how many."""
        pass

    @abstractmethod
    async def group_count(
        self, collection: str, field: str, filters: Filters | None = None
    ) -> dict[Any, int]:
        """Count matching documents grouped by the value of a field."""
        pass


class StorageError(Exception):
    """Raised when the store cannot complete an operation."""
    pass


class DuplicateKeyError(StorageError):
    """A write would give two documents the same value in a unique field."""

    def __init__(self, collection: str, field: str):
        super().__init__(f"Duplicate value for unique field {collection}.{field}")
        self.collection = collection
        self.field = field


# =============================================================================
# Collection Names
# =============================================================================


class Collections:
    """Standard collection/table names."""

    USERS = "users"
    PROJECTS = "projects"
    TASKS = "tasks"
