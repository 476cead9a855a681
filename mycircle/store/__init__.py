"""Document store contract, backends and the process-wide store instance."""
from __future__ import annotations

from functools import lru_cache

from ..config import get_settings
from .base import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    BaseDocumentStore,
    ChangeKind,
    DocumentChange,
    DocumentRef,
    Query,
    Snapshot,
    SnapshotEvent,
)
from .feed import MappedSubscription, Subscription
from .memory import MemoryDocumentStore


@lru_cache()
def get_store() -> BaseDocumentStore:
    """Return the store selected by ``STORE_BACKEND``."""

    settings = get_settings()
    if settings.store_backend == "memory":
        return MemoryDocumentStore()

    from ..database import init_db
    from .sql import SqlDocumentStore

    init_db()
    return SqlDocumentStore()


__all__ = [
    "DELETE_FIELD",
    "SERVER_TIMESTAMP",
    "ArrayRemove",
    "ArrayUnion",
    "BaseDocumentStore",
    "ChangeKind",
    "DocumentChange",
    "DocumentRef",
    "MappedSubscription",
    "MemoryDocumentStore",
    "Query",
    "Snapshot",
    "SnapshotEvent",
    "Subscription",
    "get_store",
]
