"""Sidebar ranking and the live conversation feed."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from mycircle.schemas import ChannelKind, ConversationEntry, LastMessage
from mycircle.services import (
    SidebarFeed,
    add_friend,
    build_sidebar,
    create_group,
    direct_channel_key,
    on_view,
    rank_conversations,
    send_message,
    set_nickname,
    set_offline,
)

_BASE = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _entry(key: str, title: str, minutes: int | None) -> ConversationEntry:
    last = None
    if minutes is not None:
        last = LastMessage(message_id=f"m-{key}", text="x", sender_id="s", created_at=_BASE + timedelta(minutes=minutes))
    return ConversationEntry(channel_key=key, kind=ChannelKind.DIRECT, target_id=key, title=title, last_message=last)


def test_rank_conversations_orders_by_recency_then_title():
    entries = [
        _entry("k1", "Zed", None),
        _entry("k2", "Amy", 5),
        _entry("k3", "Bob", 10),
        _entry("k4", "Amy", None),
        _entry("k5", "Cat", 5),
        _entry("k0", "Amy", None),
    ]

    ranked = rank_conversations(entries)

    assert [entry.channel_key for entry in ranked] == ["k3", "k2", "k5", "k0", "k4", "k1"]


@pytest.fixture
def circle(store, identity_factory):
    for name in ("alice", "bob", "carol"):
        identity_factory(name, user_id=name[0])
    add_friend(store, "a", "b")
    add_friend(store, "a", "c")
    group = create_group(store, name="Orbit", founder_id="a", initial_members=["b", "c"])
    return group


def test_build_sidebar(store, circle):
    ab = direct_channel_key("a", "b")
    send_message(store, circle.id, "b", "group hello")
    send_message(store, ab, "b", "direct hello")
    set_nickname(store, "a", "b", "Bobby")

    entries = build_sidebar(store, "a")

    assert [(entry.channel_key, entry.title, entry.unread) for entry in entries] == [
        (ab, "Bobby", 1),
        (circle.id, "Orbit", 1),
        (direct_channel_key("a", "c"), "carol", 0),
    ]
    assert entries[0].kind == ChannelKind.DIRECT
    assert entries[0].last_message.text == "direct hello"
    assert entries[1].kind == ChannelKind.GROUP
    assert build_sidebar(store, "ghost") == []


def test_sidebar_feed_tracks_changes(store, circle, identity_factory):
    feed = SidebarFeed(store, "a")
    ac = direct_channel_key("a", "c")

    send_message(store, ac, "c", "ping")
    assert feed.entries.value[0].channel_key == ac
    assert feed.entries.value[0].unread == 1

    on_view(store, "a", ac)
    assert feed.entries.value[0].unread == 0

    set_offline(store, "c")
    assert next(entry for entry in feed.entries.value if entry.channel_key == ac).online is False

    identity_factory("dave", user_id="d")
    add_friend(store, "d", "a")
    assert direct_channel_key("a", "d") in [entry.channel_key for entry in feed.entries.value]

    set_offline(store, "d")
    assert next(entry for entry in feed.entries.value if entry.target_id == "d").online is False

    feed.close()
    send_message(store, circle.id, "b", "after close")
    assert feed.entries.value[0].channel_key == ac
