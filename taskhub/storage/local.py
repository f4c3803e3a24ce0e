"""
Local storage implementations.

- InMemoryDocumentStore: everything in process memory (tests, development)
- JsonFileDocumentStore: the same store written through to one JSON file
  per collection, so data survives a restart
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from taskhub.config import Settings
from taskhub.storage.base import (
    Collections,
    DocumentStore,
    DuplicateKeyError,
    Filters,
    Sort,
    StorageError,
)

logger = logging.getLogger(__name__)

# Fields that must be unique within their collection
UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    Collections.USERS: ("email",),
}


# =============================================================================
# Filter Evaluation
# =============================================================================


def _equals(value: Any, expected: Any) -> bool:
    # Scalar against a list field means "contains", like MongoDB.
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return value == expected


def _compare(value: Any, operand: Any, op: str) -> bool:
    if value is None or operand is None:
        return False
    try:
        if op == "$lt":
            return value < operand
        if op == "$lte":
            return value <= operand
        if op == "$gt":
            return value > operand
        return value >= operand
    except TypeError:
        return False


def _apply_operator(op: str, value: Any, operand: Any) -> bool:
    if op == "$eq":
        return _equals(value, operand)
    if op == "$ne":
        return not _equals(value, operand)
    if op in ("$lt", "$lte", "$gt", "$gte"):
        return _compare(value, operand, op)
    if op == "$in":
        if isinstance(value, list):
            return any(v in operand for v in value)
        return value in operand
    if op == "$nin":
        return not _apply_operator("$in", value, operand)
    if op == "$exists":
        return (value is not None) == bool(operand)
    if op == "$regex":
        if not isinstance(value, str):
            return False
        pattern = operand if isinstance(operand, re.Pattern) else re.compile(operand, re.IGNORECASE)
        return bool(pattern.search(value))
    raise StorageError(f"Unsupported filter operator: {op}")


def matches(document: dict[str, Any], filters: Filters | None) -> bool:
    """Check a document against a filter."""
    if not filters:
        return True

    for key, condition in filters.items():
        if key == "$or":
            if not any(matches(document, sub) for sub in condition):
                return False
            continue
        if key == "$and":
            if not all(matches(document, sub) for sub in condition):
                return False
            continue

        value = document.get(key)
        if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
            for op, operand in condition.items():
                if not _apply_operator(op, value, operand):
                    return False
        elif not _equals(value, condition):
            return False

    return True


def _sort_documents(documents: list[dict[str, Any]], sort: Sort) -> list[dict[str, Any]]:
    # Stable multi-key sort: apply keys from last to first. Missing values
    # always sort last.
    result = list(documents)
    for field, direction in reversed(sort):
        present = [d for d in result if d.get(field) is not None]
        missing = [d for d in result if d.get(field) is None]
        present.sort(key=lambda d: d[field], reverse=direction < 0)
        result = present + missing
    return result


def _group_key(value: Any) -> Any:
    return getattr(value, "value", value)


# =============================================================================
# In-Memory Document Storage
# =============================================================================


class InMemoryDocumentStore(DocumentStore):
    """
    In-memory document storage for development and tests.

    Nothing survives `close()`. No method awaits between reading and
    writing, so every write is atomic on the event loop.
    """

    def __init__(self, unique_fields: dict[str, tuple[str, ...]] | None = None):
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._open = False
        self.unique_fields = UNIQUE_FIELDS if unique_fields is None else unique_fields

    async def open(self) -> None:
        self._open = True
        logger.debug("In-memory document store opened")

    async def close(self) -> None:
        self._open = False
        self._data.clear()
        logger.debug("In-memory document store closed")

    @property
    def is_open(self) -> bool:
        return self._open

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        if not self._open:
            raise StorageError("Document store is not open")
        return self._data.setdefault(collection, {})

    def _check_unique(self, collection: str, doc_id: str, values: dict[str, Any]) -> None:
        for field in self.unique_fields.get(collection, ()):
            if values.get(field) is None:
                continue
            for other_id, other in self._data.get(collection, {}).items():
                if other_id != doc_id and other.get(field) == values[field]:
                    raise DuplicateKeyError(collection, field)

    async def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        docs = self._collection(collection)
        doc_id = document.get("id")
        if not doc_id:
            raise StorageError("Documents must carry an id")
        if doc_id in docs:
            raise StorageError(f"Duplicate id in {collection}: {doc_id}")
        self._check_unique(collection, doc_id, document)
        docs[doc_id] = copy.deepcopy(document)
        return copy.deepcopy(docs[doc_id])

    async def get(self, collection: str, id: str) -> dict[str, Any] | None:
        doc = self._collection(collection).get(id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find(
        self,
        collection: str,
        filters: Filters | None = None,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        results = [d for d in self._collection(collection).values() if matches(d, filters)]

        if sort:
            results = _sort_documents(results, sort)

        end = skip + limit if limit is not None else None
        return [copy.deepcopy(d) for d in results[skip:end]]

    async def count(self, collection: str, filters: Filters | None = None) -> int:
        return sum(1 for d in self._collection(collection).values() if matches(d, filters))

    async def update(
        self, collection: str, id: str, updates: dict[str, Any]
    ) -> dict[str, Any] | None:
        docs = self._collection(collection)
        if id not in docs:
            return None
        self._check_unique(collection, id, updates)
        docs[id].update(copy.deepcopy(updates))
        return copy.deepcopy(docs[id])

    async def update_many(
        self, collection: str, updates_by_id: dict[str, dict[str, Any]]
    ) -> int:
        docs = self._collection(collection)
        missing = [doc_id for doc_id in updates_by_id if doc_id not in docs]
        if missing:
            raise StorageError(f"Cannot update missing documents in {collection}: {missing}")
        for doc_id, updates in updates_by_id.items():
            self._check_unique(collection, doc_id, updates)

        # Build every new version first, then swap them in together.
        staged = {
            doc_id: {**docs[doc_id], **copy.deepcopy(updates)}
            for doc_id, updates in updates_by_id.items()
        }
        docs.update(staged)
        return len(staged)

    async def add_to_set(
        self, collection: str, id: str, field: str, value: Any
    ) -> dict[str, Any] | None:
        docs = self._collection(collection)
        if id not in docs:
            return None
        items = docs[id].setdefault(field, [])
        if value not in items:
            items.append(value)
        return copy.deepcopy(docs[id])

    async def pull(
        self, collection: str, id: str, field: str, value: Any
    ) -> dict[str, Any] | None:
        docs = self._collection(collection)
        if id not in docs:
            return None
        docs[id][field] = [v for v in docs[id].get(field, []) if v != value]
        return copy.deepcopy(docs[id])

    async def delete(self, collection: str, id: str) -> bool:
        docs = self._collection(collection)
        if id in docs:
            del docs[id]
            return True
        return False

    async def delete_many(self, collection: str, filters: Filters) -> int:
        docs = self._collection(collection)
        doomed = [doc_id for doc_id, d in docs.items() if matches(d, filters)]
        for doc_id in doomed:
            del docs[doc_id]
        return len(doomed)

    async def group_count(
        self, collection: str, field: str, filters: Filters | None = None
    ) -> dict[Any, int]:
        counts: dict[Any, int] = {}
        for doc in self._collection(collection).values():
            if matches(doc, filters):
                key = _group_key(doc.get(field))
                counts[key] = counts.get(key, 0) + 1
        return counts


# =============================================================================
# JSON File Document Storage
# =============================================================================

DATE_KEY = "$date"


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {DATE_KEY: value.isoformat()}
    raise TypeError(f"Cannot store value of type {type(value).__name__}")


def _decode(obj: dict[str, Any]) -> Any:
    if len(obj) == 1 and DATE_KEY in obj:
        return datetime.fromisoformat(obj[DATE_KEY])
    return obj


class JsonFileDocumentStore(InMemoryDocumentStore):
    """
    Document storage persisted to `<data_dir>/<collection>.json`.

    Queries run against the in-memory copy loaded by `open()`. Every write
    rewrites the touched collection file through a temp file and
    `os.replace`, so a file on disk is always a complete collection.
    Datetimes are stored as {"$date": iso-string}.
    """

    def __init__(
        self,
        data_dir: str = "./data",
        unique_fields: dict[str, tuple[str, ...]] | None = None,
    ):
        super().__init__(unique_fields)
        self.data_dir = Path(data_dir)

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.json"

    def _flush(self, collection: str) -> None:
        path = self._path(collection)
        tmp = path.with_name(path.name + ".tmp")
        documents = list(self._data.get(collection, {}).values())
        tmp.write_text(json.dumps(documents, default=_encode, indent=2), encoding="utf-8")
        os.replace(tmp, path)

    async def open(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._data = {}
        for path in sorted(self.data_dir.glob("*.json")):
            try:
                documents = json.loads(path.read_text(encoding="utf-8"), object_hook=_decode)
            except ValueError as e:
                raise StorageError(f"Corrupt collection file {path}: {e}") from e
            self._data[path.stem] = {doc["id"]: doc for doc in documents}
        self._open = True
        logger.info(
            "JSON document store opened at %s (%d collections)", self.data_dir, len(self._data)
        )

    async def close(self) -> None:
        if self._open:
            for collection in self._data:
                self._flush(collection)
        await super().close()

    async def insert(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        stored = await super().insert(collection, document)
        self._flush(collection)
        return stored

    async def update(
        self, collection: str, id: str, updates: dict[str, Any]
    ) -> dict[str, Any] | None:
        updated = await super().update(collection, id, updates)
        if updated is not None:
            self._flush(collection)
        return updated

    async def update_many(
        self, collection: str, updates_by_id: dict[str, dict[str, Any]]
    ) -> int:
        count = await super().update_many(collection, updates_by_id)
        self._flush(collection)
        return count

    async def add_to_set(
        self, collection: str, id: str, field: str, value: Any
    ) -> dict[str, Any] | None:
        updated = await super().add_to_set(collection, id, field, value)
        if updated is not None:
            self._flush(collection)
        return updated

    async def pull(
        self, collection: str, id: str, field: str, value: Any
    ) -> dict[str, Any] | None:
        updated = await super().pull(collection, id, field, value)
        if updated is not None:
            self._flush(collection)
        return updated

    async def delete(self, collection: str, id: str) -> bool:
        deleted = await super().delete(collection, id)
        if deleted:
            self._flush(collection)
        return deleted

    async def delete_many(self, collection: str, filters: Filters) -> int:
        count = await super().delete_many(collection, filters)
        if count:
            self._flush(collection)
        return count


# =============================================================================
# Factories
# =============================================================================


def create_local_storage() -> InMemoryDocumentStore:
    """Create the in-memory document store (not yet opened)."""
    return InMemoryDocumentStore()


def create_storage(settings: Settings) -> DocumentStore:
    """Create the document store selected by `settings.storage_backend`."""
    if settings.storage_backend == "memory":
        return create_local_storage()
    if settings.storage_backend == "file":
        return JsonFileDocumentStore(settings.storage_path)
    raise StorageError(f"Unknown storage backend: {settings.storage_backend}")
