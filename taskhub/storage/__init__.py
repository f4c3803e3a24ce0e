"""
Storage abstractions.

- DocumentStore → in-memory for tests, JSON files on disk for a deployment
- Repository    → typed CRUD over one collection
- queries       → entity-specific queries and aggregations
"""

from taskhub.storage.base import (
    Collections,
    DocumentStore,
    DuplicateKeyError,
    StorageError,
)
from taskhub.storage.local import (
    InMemoryDocumentStore,
    JsonFileDocumentStore,
    create_local_storage,
    create_storage,
)
from taskhub.storage.repository import Repositories, Repository

__all__ = [
    "Collections",
    "DocumentStore",
    "DuplicateKeyError",
    "StorageError",
    "InMemoryDocumentStore",
    "JsonFileDocumentStore",
    "create_local_storage",
    "create_storage",
    "Repositories",
    "Repository",
]
