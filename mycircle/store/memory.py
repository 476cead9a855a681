"""In-process document store."""
from __future__ import annotations

import copy
import itertools
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from ..errors import AlreadyExistsError
from .base import BaseDocumentStore, Snapshot


class MemoryDocumentStore(BaseDocumentStore):
    """Keeps every collection in a dict; suitable for tests and single-process use."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        super().__init__(clock=clock)
        self._collections: dict[str, dict[str, Snapshot]] = {}
        self._sequence = itertools.count(1)

    def _read(self, tx: Any, collection: str, doc_id: str) -> Snapshot | None:
        snapshot = self._collections.get(collection, {}).get(doc_id)
        return _copy(snapshot) if snapshot is not None else None

    def _read_all(self, tx: Any, collection: str) -> list[Snapshot]:
        return [_copy(snapshot) for snapshot in self._collections.get(collection, {}).values()]

    def _insert(self, tx: Any, collection: str, doc_id: str, data: dict[str, Any], now: datetime) -> Snapshot:
        documents = self._collections.setdefault(collection, {})
        if doc_id in documents:
            raise AlreadyExistsError(f"{collection}/{doc_id} already exists")
        snapshot = Snapshot(
            collection=collection,
            id=doc_id,
            data=data,
            seq=next(self._sequence),
            version=1,
            create_time=now,
            update_time=now,
        )
        documents[doc_id] = snapshot
        return _copy(snapshot)

    def _replace(self, tx: Any, current: Snapshot, data: dict[str, Any], now: datetime) -> Snapshot:
        snapshot = replace(current, data=data, version=current.version + 1, update_time=now)
        self._collections.setdefault(current.collection, {})[current.id] = snapshot
        return _copy(snapshot)

    def _remove(self, tx: Any, collection: str, doc_id: str) -> bool:
        return self._collections.get(collection, {}).pop(doc_id, None) is not None


def _copy(snapshot: Snapshot) -> Snapshot:
    return replace(snapshot, data=copy.deepcopy(snapshot.data))


__all__ = ["MemoryDocumentStore"]
