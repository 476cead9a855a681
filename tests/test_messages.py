"""Message stream, reactions and live subscriptions."""
from __future__ import annotations

import asyncio
import threading
from typing import Callable

import pytest

from mycircle.constants import CHANNELS
from mycircle.errors import EmptyMessageError, NotFoundError, PermissionDenied, ValidationError
from mycircle.services import (
    add_friend,
    create_group,
    direct_channel_key,
    list_messages,
    send_message,
    subscribe_messages,
    toggle_reaction,
)
from mycircle.store import MemoryDocumentStore


class _InterleavingStore(MemoryDocumentStore):
    """Memory store that can run another operation in the middle of one."""

    def __init__(self) -> None:
        super().__init__()
        self.after_read: dict[str, Callable[[], object]] = {}
        self.before_flush: Callable[[], object] | None = None

    def get(self, collection, doc_id):
        snapshot = super().get(collection, doc_id)
        action = self.after_read.pop(doc_id, None)
        if action is not None:
            action()
        return snapshot

    def _flush(self, listeners):
        action, self.before_flush = self.before_flush, None
        if action is not None:
            worker = threading.Thread(target=action)
            worker.start()
            worker.join()
        super()._flush(listeners)


@pytest.fixture
def store() -> _InterleavingStore:
    return _InterleavingStore()


@pytest.fixture
def direct(store, identity_factory):
    identity_factory("alice", user_id="a")
    identity_factory("bob", user_id="b")
    identity_factory("carol", user_id="c")
    add_friend(store, "a", "b")
    return direct_channel_key("a", "b")


def test_messages_are_listed_in_send_order(store, direct):
    for index in range(5):
        send_message(store, direct, "a" if index % 2 else "b", f"m{index}")

    messages = list_messages(store, direct)

    assert [message.text for message in messages] == ["m0", "m1", "m2", "m3", "m4"]
    stamps = [message.created_at for message in messages]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 5


def test_send_updates_channel_summary(store, direct):
    message = send_message(store, direct, "a", "hello")

    summary = store.get(CHANNELS, direct)
    assert summary.get("kind") == "direct"
    assert summary.get("lastMessage.messageId") == message.id
    assert summary.get("lastMessage.text") == "hello"
    assert summary.get("lastMessage.createdAt") == message.created_at


@pytest.mark.parametrize("text, error", [("", EmptyMessageError), ("   \n", EmptyMessageError), ("x" * 2001, ValidationError)])
def test_send_rejects_bad_text(store, direct, text, error):
    with pytest.raises(error):
        send_message(store, direct, "a", text)
    assert list_messages(store, direct) == []


def test_send_requires_membership(store, direct):
    with pytest.raises(PermissionDenied):
        send_message(store, direct, "c", "let me in")
    with pytest.raises(NotFoundError):
        send_message(store, "a_ghost", "a", "anyone?")


def test_reply_carries_preview(store, direct):
    original = send_message(store, direct, "a", "y" * 200)

    reply = send_message(store, direct, "b", "sure", reply_to=original.id)

    assert reply.reply_to.message_id == original.id
    assert reply.reply_to.text == "y" * 120
    assert reply.reply_to.sender_name == "alice"
    with pytest.raises(NotFoundError):
        send_message(store, direct, "b", "huh", reply_to="missing")


def test_toggle_reaction_is_self_inverse(store, direct):
    message = send_message(store, direct, "a", "hello")

    once = toggle_reaction(store, direct, message.id, "b", "👍")
    assert once.reactions == {"👍": ["b"]}

    both = toggle_reaction(store, direct, message.id, "a", "👍")
    assert both.reactions == {"👍": ["b", "a"]}

    toggle_reaction(store, direct, message.id, "b", "👍")
    cleared = toggle_reaction(store, direct, message.id, "a", "👍")
    assert cleared.reactions == {}


def test_concurrent_reactions_are_all_kept(store, direct):
    message = send_message(store, direct, "a", "hello")
    # Alice reacts while Bob's toggle sits between its read and its write.
    store.after_read[message.id] = lambda: toggle_reaction(store, direct, message.id, "a", "👍")

    result = toggle_reaction(store, direct, message.id, "b", "👍")

    assert result.reactions == {"👍": ["a", "b"]}

    store.after_read[message.id] = lambda: toggle_reaction(store, direct, message.id, "a", "👍")
    withdrawn = toggle_reaction(store, direct, message.id, "b", "👍")

    assert withdrawn.reactions == {}


def test_toggle_reaction_validation(store, direct):
    message = send_message(store, direct, "a", "hello")

    with pytest.raises(ValidationError):
        toggle_reaction(store, direct, message.id, "b", "  ")
    with pytest.raises(ValidationError):
        toggle_reaction(store, direct, message.id, "b", "x" * 17)
    with pytest.raises(PermissionDenied):
        toggle_reaction(store, direct, message.id, "c", "👍")
    with pytest.raises(NotFoundError):
        toggle_reaction(store, direct, "missing", "b", "👍")
    with pytest.raises(ValidationError):
        toggle_reaction(store, direct, message.id, "b", "a.b")


def test_group_messages_reach_members_only(store, identity_factory):
    for name in ("alice", "bob", "carol"):
        identity_factory(name, user_id=name[0])
    group = create_group(store, name="Orbit", founder_id="a", initial_members=["b"])

    send_message(store, group.id, "b", "hi all")

    with pytest.raises(PermissionDenied):
        send_message(store, group.id, "c", "hello?")
    assert [message.sender_name for message in list_messages(store, group.id)] == ["bob"]


def test_subscription_replays_then_streams(store, direct):
    send_message(store, direct, "a", "first")
    send_message(store, direct, "b", "second")

    async def _consume() -> list[tuple[str, dict]]:
        received: list[tuple[str, dict]] = []
        async with subscribe_messages(store, direct) as subscription:
            async for message in subscription:
                received.append((message.text, dict(message.reactions)))
                if len(received) == 2:
                    latest = send_message(store, direct, "a", "third")
                elif len(received) == 3:
                    toggle_reaction(store, direct, latest.id, "b", "🔥")
                elif len(received) == 4:
                    break
        return received

    received = asyncio.run(_consume())

    assert received == [("first", {}), ("second", {}), ("third", {}), ("third", {"🔥": ["b"]})]


def test_closed_subscription_stops_delivery(store, direct):
    subscription = subscribe_messages(store, direct)
    send_message(store, direct, "a", "before")
    subscription.close()
    send_message(store, direct, "a", "after")

    async def _drain() -> list[str]:
        return [message.text async for message in subscription]

    assert asyncio.run(_drain()) == []
    assert subscription.closed


def test_each_subscription_replays_history(store, direct):
    send_message(store, direct, "a", "one")
    first = subscribe_messages(store, direct)
    second = subscribe_messages(store, direct)

    assert [message.text for message in first.drain()] == ["one"]
    assert [message.text for message in second.drain()] == ["one"]
    first.close()
    second.close()


def test_replay_precedes_sends_from_other_threads(store, direct):
    send_message(store, direct, "a", "first")
    store.before_flush = lambda: send_message(store, direct, "b", "second")

    subscription = subscribe_messages(store, direct)

    assert [message.text for message in subscription.drain()] == ["first", "second"]
    subscription.close()
