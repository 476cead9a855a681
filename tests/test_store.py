"""Document store patch semantics, queries and the change feed."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mycircle.errors import AlreadyExistsError, ValidationError
from mycircle.store import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    ChangeKind,
    DocumentRef,
    MemoryDocumentStore,
    Query,
)


def test_patch_transforms(store):
    store.write("docs", "d1", {"tags": ["x"], "meta": {"keep": 1, "drop": 2}})

    snapshot = store.write(
        "docs",
        "d1",
        {
            "tags": ArrayUnion("x", "y"),
            "meta.drop": DELETE_FIELD,
            "meta.added": SERVER_TIMESTAMP,
            "seen.u1": {"username": "alice"},
        },
    )

    assert snapshot.get("tags") == ["x", "y"]
    assert snapshot.get("meta.keep") == 1
    assert snapshot.get("meta.drop") is None
    assert isinstance(snapshot.get("meta.added"), datetime)
    assert snapshot.get("seen") == {"u1": {"username": "alice"}}
    assert store.write("docs", "d1", {"tags": ArrayRemove("x")}).get("tags") == ["y"]
    assert store.write("docs", "d1", {"only": True}, merge=False).data == {"only": True}


def test_server_timestamps_strictly_increase():
    fixed = datetime(2024, 1, 1, tzinfo=timezone.utc)
    store = MemoryDocumentStore(clock=lambda: fixed)

    stamps = [store.append("docs", {"at": SERVER_TIMESTAMP}).get("at") for _ in range(3)]

    assert stamps[0] == fixed
    assert stamps[0] < stamps[1] < stamps[2]


def test_create_is_conditional(store):
    store.create("docs", "d1", {"v": 1})
    with pytest.raises(AlreadyExistsError):
        store.create("docs", "d1", {"v": 2})
    assert store.get("docs", "d1").get("v") == 1


def test_delete_is_idempotent(store):
    store.write("docs", "d1", {"v": 1})
    assert store.delete("docs", "d1") is True
    assert store.delete("docs", "d1") is False


def test_query_filters_orders_and_limits(store):
    for name, rank in (("a", 3), ("b", 1), ("c", 2), ("d", 1)):
        store.write("docs", name, {"rank": rank, "tags": [name]})

    ordered = store.query(Query("docs").order_by("rank"))
    assert [snap.id for snap in ordered] == ["b", "d", "c", "a"]
    newest = store.query(Query("docs").order_by("rank", descending=True).limit(2))
    assert [snap.id for snap in newest] == ["a", "c"]
    assert [snap.id for snap in store.query(Query("docs").where("tags", "array_contains", "c"))] == ["c"]
    assert [snap.id for snap in store.query(Query("docs").where("rank", "in", [2, 3]))] == ["a", "c"]
    with pytest.raises(ValidationError):
        Query("docs").where("rank", "~", 1)


def test_listen_reports_changes(store):
    events = []
    subscription = store.listen(Query("docs").where("open", "==", True), events.append)

    store.write("docs", "d1", {"open": True})
    store.write("docs", "d1", {"open": True, "n": 1})
    store.write("docs", "d1", {"open": False})
    store.write("docs", "d2", {"open": False})
    subscription.close()
    store.write("docs", "d3", {"open": True})

    assert events[0].initial and events[0].documents == []
    kinds = [[change.kind for change in event.changes] for event in events[1:]]
    assert kinds == [[ChangeKind.ADDED], [ChangeKind.MODIFIED], [ChangeKind.REMOVED]]


def test_document_ref_target_and_failing_listener(store):
    received = []

    def _boom(_event):
        raise RuntimeError("listener failure")

    store.listen(DocumentRef("docs", "d1"), _boom)
    store.listen(DocumentRef("docs", "d1"), received.append)
    store.write("docs", "d1", {"v": 1})
    store.write("docs", "d2", {"v": 1})

    assert [len(event.documents) for event in received] == [0, 1]
