"""The SQLAlchemy-backed document store against an in-memory SQLite database."""
from __future__ import annotations

from datetime import datetime
from typing import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mycircle.constants import HANDLES
from mycircle.database import Base, init_db
from mycircle.errors import AlreadyExistsError, TagExhausted, TransientStoreError
from mycircle.schemas import ChannelKind
from mycircle.services import (
    add_friend,
    allocate_tag,
    direct_channel_key,
    get_identity,
    list_messages,
    record_view,
    register_identity,
    send_message,
    toggle_reaction,
    unread_count,
)
from mycircle.store import SERVER_TIMESTAMP, ChangeKind, Query
from mycircle.store.sql import SqlDocumentStore, decode_value, encode_value


@pytest.fixture
def sql_store() -> Iterator[SqlDocumentStore]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_db(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, future=True, expire_on_commit=False)
    yield SqlDocumentStore(factory)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


def test_datetime_values_round_trip():
    encoded = encode_value({"at": datetime(2024, 5, 1, 12, 30), "nested": [{"n": 1}]})

    assert encoded == {"at": {"$date": "2024-05-01T12:30:00+00:00"}, "nested": [{"n": 1}]}
    decoded = decode_value(encoded)
    assert decoded["at"].tzinfo is not None
    assert decoded["nested"] == [{"n": 1}]


def test_crud_and_conditional_create(sql_store):
    created = sql_store.create("docs", "d1", {"v": 1, "at": SERVER_TIMESTAMP})
    assert created.version == 1
    assert isinstance(sql_store.get("docs", "d1").get("at"), datetime)

    with pytest.raises(AlreadyExistsError):
        sql_store.create("docs", "d1", {"v": 2})

    updated = sql_store.write("docs", "d1", {"v": 3})
    assert updated.version == 2
    assert updated.get("v") == 3
    assert sql_store.delete("docs", "d1") is True
    assert sql_store.delete("docs", "d1") is False
    assert sql_store.get("docs", "d1") is None


def test_queries_and_listeners(sql_store):
    events = []
    sql_store.listen(Query("docs").order_by("rank"), events.append)

    sql_store.write("docs", "b", {"rank": 2})
    sql_store.write("docs", "a", {"rank": 1})

    assert [snap.id for snap in sql_store.query(Query("docs").order_by("rank"))] == ["a", "b"]
    assert [event.changes[0].kind for event in events[1:]] == [ChangeKind.ADDED, ChangeKind.ADDED]
    assert [snap.id for snap in events[-1].documents] == ["a", "b"]


def test_conversation_flow(sql_store):
    register_identity(sql_store, user_id="a", username="alice")
    register_identity(sql_store, user_id="b", username="bob")
    add_friend(sql_store, "a", "b")
    key = direct_channel_key("a", "b")

    first = send_message(sql_store, key, "a", "hello")
    send_message(sql_store, key, "b", "hi", reply_to=first.id)
    toggle_reaction(sql_store, key, first.id, "b", "👍")
    record_view(sql_store, key, "a", ChannelKind.DIRECT)

    messages = list_messages(sql_store, key)
    assert [message.text for message in messages] == ["hello", "hi"]
    assert messages[0].reactions == {"👍": ["b"]}
    assert messages[1].reply_to.message_id == first.id
    assert messages[1].seen_by == ["a"]
    assert unread_count(sql_store, "b", key) == 1
    assert [edge.peer_id for edge in get_identity(sql_store, "b").friends] == ["a"]
    assert get_identity(sql_store, "a").created_at.tzinfo is not None


def test_tag_claims_are_unique_rows(sql_store):
    allocate_tag(sql_store, "nova", owner_id="u1", choose=lambda _alphabet: "Q")

    assert sql_store.get(HANDLES, "nova#QQQQ").get("ownerId") == "u1"
    with pytest.raises(TagExhausted):
        allocate_tag(sql_store, "nova", owner_id="u2", choose=lambda _alphabet: "Q")


def test_database_errors_surface_as_transient(sql_store, monkeypatch):
    def _fail(*_args, **_kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(sql_store, "_read", _fail)

    with pytest.raises(TransientStoreError):
        sql_store.get("docs", "d1")
