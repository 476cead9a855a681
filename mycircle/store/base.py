"""Document store contract shared by the in-memory and SQL backends.

The conversation core talks to a document database with field-level patches
and a push-based change feed. :class:`BaseDocumentStore` implements everything
that does not depend on where documents live: patch transforms, query
evaluation, the monotonic server clock and listener fan-out. Backends only
provide the primitive row operations.
"""
from __future__ import annotations

import copy
import logging
import secrets
import threading
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import StrEnum
from typing import Any, Callable, Iterator, Sequence

from ..errors import ValidationError

logger = logging.getLogger(__name__)


class _Sentinel:
    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return self.name


SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")
DELETE_FIELD = _Sentinel("DELETE_FIELD")


class ArrayUnion:
    """Append ``values`` to an array field, skipping ones already present."""

    __slots__ = ("values",)

    def __init__(self, *values: Any) -> None:
        self.values = values

    def __repr__(self) -> str:
        return f"ArrayUnion{self.values!r}"


class ArrayRemove:
    """Remove every occurrence of ``values`` from an array field."""

    __slots__ = ("values",)

    def __init__(self, *values: Any) -> None:
        self.values = values

    def __repr__(self) -> str:
        return f"ArrayRemove{self.values!r}"


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Immutable view of a stored document at one version."""

    collection: str
    id: str
    data: dict[str, Any]
    seq: int
    version: int
    create_time: datetime
    update_time: datetime

    def get(self, path: str, default: Any = None) -> Any:
        return get_path(self.data, path, default)

    def to_dict(self) -> dict[str, Any]:
        payload = copy.deepcopy(self.data)
        payload["id"] = self.id
        return payload


@dataclass(frozen=True, slots=True)
class DocumentRef:
    collection: str
    id: str


class ChangeKind(StrEnum):
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


@dataclass(frozen=True, slots=True)
class DocumentChange:
    kind: ChangeKind
    snapshot: Snapshot


@dataclass(frozen=True, slots=True)
class SnapshotEvent:
    """One delivery from the change feed.

    ``documents`` is the complete current result of the subscribed target;
    ``changes`` lists what differs from the previous delivery. The first event
    of every subscription has ``initial`` set and reports every document as
    added.
    """

    documents: list[Snapshot]
    changes: list[DocumentChange]
    initial: bool = False


_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda left, right: left == right,
    "!=": lambda left, right: left != right,
    "<": lambda left, right: left is not None and left < right,
    "<=": lambda left, right: left is not None and left <= right,
    ">": lambda left, right: left is not None and left > right,
    ">=": lambda left, right: left is not None and left >= right,
    "in": lambda left, right: left in right,
    "array_contains": lambda left, right: isinstance(left, list) and right in left,
}


@dataclass(frozen=True, slots=True)
class Query:
    """Declarative query over one collection."""

    collection: str
    filters: tuple[tuple[str, str, Any], ...] = ()
    orders: tuple[tuple[str, bool], ...] = ()
    limit_count: int | None = None

    def where(self, path: str, op: str, value: Any) -> Query:
        if op not in _OPERATORS:
            raise ValidationError(f"Unsupported query operator '{op}'")
        return replace(self, filters=self.filters + ((path, op, value),))

    def order_by(self, path: str, *, descending: bool = False) -> Query:
        return replace(self, orders=self.orders + ((path, descending),))

    def limit(self, count: int) -> Query:
        if count < 0:
            raise ValidationError("limit must not be negative")
        return replace(self, limit_count=count)

    def matches(self, snapshot: Snapshot) -> bool:
        for path, op, value in self.filters:
            if not _OPERATORS[op](snapshot.get(path), value):
                return False
        return True

    def apply(self, snapshots: Sequence[Snapshot]) -> list[Snapshot]:
        """Filter, order and limit ``snapshots``; ties fall back to insertion order."""

        results = [snap for snap in snapshots if self.matches(snap)]
        tie_descending = self.orders[-1][1] if self.orders else False
        results.sort(key=lambda snap: snap.seq, reverse=tie_descending)
        for path, descending in reversed(self.orders):
            results.sort(key=lambda snap, p=path: _sort_key(snap.get(p)), reverse=descending)
        if self.limit_count is not None:
            results = results[: self.limit_count]
        return results


Target = DocumentRef | Query | str


def _sort_key(value: Any) -> tuple:
    if value is None:
        return (0,)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, datetime):
        return (2, value)
    return (3, str(value))


def get_path(data: dict[str, Any], path: str, default: Any = None) -> Any:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _resolve_value(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {key: _resolve_value(item, now) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_resolve_value(item, now) for item in value]
    return copy.deepcopy(value)


def apply_patch(data: dict[str, Any], patch: dict[str, Any], now: datetime) -> dict[str, Any]:
    """Return a copy of ``data`` with ``patch`` applied.

    Dotted keys address nested map fields. Values may be transforms
    (:data:`SERVER_TIMESTAMP`, :data:`DELETE_FIELD`, :class:`ArrayUnion`,
    :class:`ArrayRemove`); map values replace the addressed field wholesale.
    """

    result = copy.deepcopy(data)
    for key, value in patch.items():
        parts = key.split(".")
        parent = result
        for part in parts[:-1]:
            child = parent.get(part)
            if not isinstance(child, dict):
                if value is DELETE_FIELD:
                    break
                child = {}
                parent[part] = child
            parent = child
        else:
            leaf = parts[-1]
            if value is DELETE_FIELD:
                parent.pop(leaf, None)
            elif isinstance(value, ArrayUnion):
                current = parent.get(leaf)
                items = list(current) if isinstance(current, list) else []
                for item in value.values:
                    resolved = _resolve_value(item, now)
                    if resolved not in items:
                        items.append(resolved)
                parent[leaf] = items
            elif isinstance(value, ArrayRemove):
                current = parent.get(leaf)
                items = list(current) if isinstance(current, list) else []
                parent[leaf] = [item for item in items if item not in value.values]
            else:
                parent[leaf] = _resolve_value(value, now)
    return result


class MonotonicClock:
    """Wall clock that never returns the same or an earlier instant twice."""

    def __init__(self, source: Callable[[], datetime] | None = None) -> None:
        self._source = source or (lambda: datetime.now(timezone.utc))
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            candidate = self._source()
            if candidate.tzinfo is None:
                candidate = candidate.replace(tzinfo=timezone.utc)
            if self._last is not None and candidate <= self._last:
                candidate = self._last + timedelta(microseconds=1)
            self._last = candidate
            return candidate


def generate_document_id() -> str:
    return secrets.token_hex(10)


class _Listener:
    """One registration on the change feed.

    Events are queued while the store lock is held, so ``pending`` is always in
    commit order with the initial replay first. Only one thread drains the
    queue at a time.
    """

    __slots__ = ("target", "deliver", "active", "previous", "pending", "guard", "draining")

    def __init__(self, target: Target, deliver: Callable[[SnapshotEvent], None]) -> None:
        self.target = target
        self.deliver = deliver
        self.active = True
        self.previous: dict[str, Snapshot] | None = None
        self.pending: deque[SnapshotEvent] = deque()
        self.guard = threading.Lock()
        self.draining = False

    def enqueue(self, event: SnapshotEvent) -> None:
        with self.guard:
            self.pending.append(event)

    @property
    def collection(self) -> str:
        if isinstance(self.target, str):
            return self.target
        return self.target.collection


class BaseDocumentStore:
    """Document store behaviour on top of backend row primitives.

    Subclasses implement ``_transaction`` and the ``_read``/``_read_all``/
    ``_insert``/``_replace``/``_remove`` primitives. Every public operation runs
    under a re-entrant lock; listener callbacks run after the lock is released, in commit order.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = MonotonicClock(clock)
        self._lock = threading.RLock()
        self._listeners: list[_Listener] = []

    # -- backend primitives ---------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        yield None

    def _read(self, tx: Any, collection: str, doc_id: str) -> Snapshot | None:
        raise NotImplementedError

    def _read_all(self, tx: Any, collection: str) -> list[Snapshot]:
        raise NotImplementedError

    def _insert(self, tx: Any, collection: str, doc_id: str, data: dict[str, Any], now: datetime) -> Snapshot:
        """Insert a new document; raise :class:`AlreadyExistsError` if present."""
        raise NotImplementedError

    def _replace(self, tx: Any, current: Snapshot, data: dict[str, Any], now: datetime) -> Snapshot:
        raise NotImplementedError

    def _remove(self, tx: Any, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    # -- public API -----------------------------------------------------------------

    def now(self) -> datetime:
        """Return the next instant of the store clock."""

        return self._clock()

    def get(self, collection: str, doc_id: str) -> Snapshot | None:
        with self._lock, self._transaction() as tx:
            return self._read(tx, collection, doc_id)

    def query(self, query: Query | str) -> list[Snapshot]:
        if isinstance(query, str):
            query = Query(query)
        with self._lock, self._transaction() as tx:
            return query.apply(self._read_all(tx, query.collection))

    def write(self, collection: str, doc_id: str, patch: dict[str, Any], *, merge: bool = True) -> Snapshot:
        """Patch (``merge=True``) or replace a document, creating it when missing."""

        with self._lock:
            with self._transaction() as tx:
                now = self._clock()
                current = self._read(tx, collection, doc_id)
                base = current.data if (current is not None and merge) else {}
                data = apply_patch(base, patch, now)
                if current is None:
                    snapshot = self._insert(tx, collection, doc_id, data, now)
                else:
                    snapshot = self._replace(tx, current, data, now)
            touched = self._queue_changes(collection)
        self._flush(touched)
        return snapshot

    def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> Snapshot:
        """Create a document only if ``doc_id`` is unused (compare-and-swap)."""

        with self._lock:
            with self._transaction() as tx:
                now = self._clock()
                snapshot = self._insert(tx, collection, doc_id, apply_patch({}, data, now), now)
            touched = self._queue_changes(collection)
        self._flush(touched)
        return snapshot

    def append(self, collection: str, data: dict[str, Any]) -> Snapshot:
        """Add a document under a store-assigned id."""

        return self.create(collection, generate_document_id(), data)

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            with self._transaction() as tx:
                removed = self._remove(tx, collection, doc_id)
            touched = self._queue_changes(collection) if removed else []
        self._flush(touched)
        return removed

    def listen(self, target: Target, callback: Callable[[SnapshotEvent], None]):
        """Register ``callback`` for ``target`` and return its :class:`Subscription`."""

        from .feed import Subscription

        subscription = Subscription(buffered=False)
        subscription.add_callback(callback)
        self._attach(target, subscription)
        return subscription

    def subscribe(self, target: Target):
        """Return a buffered :class:`Subscription` usable as an async iterator."""

        from .feed import Subscription

        subscription = Subscription(buffered=True)
        self._attach(target, subscription)
        return subscription

    # -- change feed ----------------------------------------------------------------

    def _attach(self, target: Target, subscription) -> None:
        listener = _Listener(target, subscription.deliver)
        with self._lock:
            current = self._evaluate(listener.target)
            listener.previous = {snap.id: snap for snap in current}
            self._listeners.append(listener)
            listener.enqueue(
                SnapshotEvent(
                    documents=current,
                    changes=[DocumentChange(ChangeKind.ADDED, snap) for snap in current],
                    initial=True,
                )
            )
        subscription.bind(lambda: self._detach(listener))
        self._flush([listener])

    def _detach(self, listener: _Listener) -> None:
        with self._lock:
            listener.active = False
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _evaluate(self, target: Target) -> list[Snapshot]:
        with self._transaction() as tx:
            if isinstance(target, DocumentRef):
                snapshot = self._read(tx, target.collection, target.id)
                return [snapshot] if snapshot is not None else []
            query = Query(target) if isinstance(target, str) else target
            return query.apply(self._read_all(tx, query.collection))

    def _queue_changes(self, collection: str) -> list[_Listener]:
        touched: list[_Listener] = []
        for listener in list(self._listeners):
            if not listener.active or listener.collection != collection:
                continue
            current = self._evaluate(listener.target)
            previous = listener.previous or {}
            changes: list[DocumentChange] = []
            current_ids = set()
            for snap in current:
                current_ids.add(snap.id)
                before = previous.get(snap.id)
                if before is None:
                    changes.append(DocumentChange(ChangeKind.ADDED, snap))
                elif before.version != snap.version or before.seq != snap.seq:
                    changes.append(DocumentChange(ChangeKind.MODIFIED, snap))
            for doc_id, before in previous.items():
                if doc_id not in current_ids:
                    changes.append(DocumentChange(ChangeKind.REMOVED, before))
            listener.previous = {snap.id: snap for snap in current}
            if changes:
                listener.enqueue(SnapshotEvent(documents=current, changes=changes))
                touched.append(listener)
        return touched

    def _flush(self, listeners: list[_Listener]) -> None:
        for listener in listeners:
            self._drain(listener)

    def _drain(self, listener: _Listener) -> None:
        # A callback that writes to the store re-enters here; the outer drain
        # delivers the new event once the callback returns.
        with listener.guard:
            if listener.draining:
                return
            listener.draining = True
        while True:
            with listener.guard:
                if not listener.active:
                    listener.pending.clear()
                if not listener.pending:
                    listener.draining = False
                    return
                event = listener.pending.popleft()
            try:
                listener.deliver(event)
            except Exception:
                logger.exception("Change feed listener failed for %s", listener.collection)


__all__ = [
    "SERVER_TIMESTAMP",
    "DELETE_FIELD",
    "ArrayUnion",
    "ArrayRemove",
    "Snapshot",
    "DocumentRef",
    "ChangeKind",
    "DocumentChange",
    "SnapshotEvent",
    "Query",
    "Target",
    "BaseDocumentStore",
    "MonotonicClock",
    "apply_patch",
    "get_path",
    "generate_document_id",
]
