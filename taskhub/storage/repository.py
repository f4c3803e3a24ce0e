"""
Typed repositories over a DocumentStore.

A Repository is parameterised over the entity model and composed with a
store and a collection name. It handles (de)serialisation and nothing else:
entity-specific queries live in `taskhub.storage.queries` as free functions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from taskhub.core.models import Project, Task, User
from taskhub.core.results import Page
from taskhub.core.utils import utc_now
from taskhub.storage.base import Collections, DocumentStore, Filters, Sort

ModelT = TypeVar("ModelT", bound=BaseModel)


class Repository(Generic[ModelT]):
    """CRUD and aggregate access to one collection of `model` entities."""

    def __init__(self, store: DocumentStore, collection: str, model: type[ModelT]):
        self.store = store
        self.collection = collection
        self.model = model

    def _load(self, document: dict[str, Any] | None) -> ModelT | None:
        if document is None:
            return None
        return self.model.model_validate(document)

    async def find_by_id(self, id: str) -> ModelT | None:
        return self._load(await self.store.get(self.collection, id))

    async def find_many(
        self,
        filters: Filters | None = None,
        *,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[ModelT]:
        documents = await self.store.find(
            self.collection, filters, sort=sort, skip=skip, limit=limit
        )
        return [self.model.model_validate(d) for d in documents]

    async def find_one(self, filters: Filters) -> ModelT | None:
        found = await self.find_many(filters, limit=1)
        return found[0] if found else None

    async def find_paginated(
        self,
        filters: Filters | None,
        page: int,
        limit: int,
        *,
        sort: Sort | None = None,
    ) -> Page[ModelT]:
        total = await self.store.count(self.collection, filters)
        items = await self.find_many(
            filters, sort=sort, skip=(page - 1) * limit, limit=limit
        )
        return Page(items=items, total=total, page=page, limit=limit)

    async def create(self, entity: ModelT) -> ModelT:
        stored = await self.store.insert(self.collection, entity.model_dump())
        return self.model.model_validate(stored)

    async def update_by_id(self, id: str, updates: dict[str, Any]) -> ModelT | None:
        if not updates:
            return await self.find_by_id(id)
        changes = {"updated_at": utc_now(), **updates}
        return self._load(await self.store.update(self.collection, id, changes))

    async def update_many(self, updates_by_id: dict[str, dict[str, Any]]) -> int:
        now = utc_now()
        stamped = {
            doc_id: {"updated_at": now, **updates}
            for doc_id, updates in updates_by_id.items()
        }
        return await self.store.update_many(self.collection, stamped)

    async def add_to_set(self, id: str, field: str, value: Any) -> ModelT | None:
        return self._load(await self.store.add_to_set(self.collection, id, field, value))

    async def pull(self, id: str, field: str, value: Any) -> ModelT | None:
        return self._load(await self.store.pull(self.collection, id, field, value))

    async def delete_by_id(self, id: str) -> bool:
        return await self.store.delete(self.collection, id)

    async def delete_many(self, filters: Filters) -> int:
        return await self.store.delete_many(self.collection, filters)

    async def count(self, filters: Filters | None = None) -> int:
        return await self.store.count(self.collection, filters)

    async def group_count(self, field: str, filters: Filters | None = None) -> dict[Any, int]:
        return await self.store.group_count(self.collection, field, filters)


@dataclass
class Repositories:
    """The three entity repositories sharing one store."""

    users: Repository[User]
    projects: Repository[Project]
    tasks: Repository[Task]

    @classmethod
    def from_store(cls, store: DocumentStore) -> Repositories:
        return cls(
            users=Repository(store, Collections.USERS, User),
            projects=Repository(store, Collections.PROJECTS, Project),
            tasks=Repository(store, Collections.TASKS, Task),
        )
