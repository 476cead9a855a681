"""Message stream: sending, listing, reactions and live subscriptions."""
from __future__ import annotations

import logging

from ..constants import CHANNELS, EMOJI_MAX_LENGTH, MESSAGE_MAX_LENGTH, REPLY_PREVIEW_LENGTH, USERS, messages_collection
from ..errors import EmptyMessageError, NotFoundError, PermissionDenied, ValidationError
from ..schemas import ChannelSummary, Identity, Message
from ..store import (
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    BaseDocumentStore,
    ChangeKind,
    MappedSubscription,
    Query,
    SnapshotEvent,
)
from . import unread_service
from .channel_service import ensure_direct_channel, parse_direct_key
from .identity_service import get_identity

logger = logging.getLogger(__name__)


def _messages_query(channel_key: str) -> Query:
    return Query(messages_collection(channel_key)).order_by("createdAt")


def load_channel(store: BaseDocumentStore, channel_key: str) -> ChannelSummary:
    """Return the channel summary, creating a direct channel's on first use."""

    snapshot = store.get(CHANNELS, channel_key)
    if snapshot is not None:
        return ChannelSummary.from_snapshot(snapshot)
    try:
        first, second = parse_direct_key(channel_key)
    except ValidationError as exc:
        raise NotFoundError("Channel not found") from exc
    if store.get(USERS, first) is None or store.get(USERS, second) is None:
        raise NotFoundError("Channel not found")
    return ensure_direct_channel(store, first, second)


def _require_member(channel: ChannelSummary, user_id: str) -> None:
    if user_id not in channel.members:
        raise PermissionDenied("You are not a member of this conversation")


def get_message(store: BaseDocumentStore, channel_key: str, message_id: str) -> Message:
    snapshot = store.get(messages_collection(channel_key), message_id)
    if snapshot is None:
        raise NotFoundError("Message not found")
    return Message.from_snapshot(snapshot)


def send_message(
    store: BaseDocumentStore,
    channel_key: str,
    sender: Identity | str,
    text: str,
    reply_to: str | None = None,
) -> Message:
    """Append a message to the channel.

    The message write, the channel summary update and the unread bumps are
    separate writes; a failure part way leaves the earlier ones in place.
    """

    if not (text or "").strip():
        raise EmptyMessageError("Message text must not be empty")
    if len(text) > MESSAGE_MAX_LENGTH:
        raise ValidationError(f"Message must be at most {MESSAGE_MAX_LENGTH} characters")

    identity = sender if isinstance(sender, Identity) else get_identity(store, sender)
    channel = load_channel(store, channel_key)
    _require_member(channel, identity.id)

    reply: dict[str, str] | None = None
    if reply_to:
        original = get_message(store, channel_key, reply_to)
        reply = {
            "messageId": original.id,
            "text": original.text[:REPLY_PREVIEW_LENGTH],
            "senderName": original.sender_name,
        }

    snapshot = store.append(
        messages_collection(channel_key),
        {
            "channelKey": channel_key,
            "senderId": identity.id,
            "senderName": identity.username,
            "text": text,
            "createdAt": SERVER_TIMESTAMP,
            "reactions": {},
            "replyTo": reply,
            "seenBy": [],
            "seen": {},
        },
    )
    message = Message.from_snapshot(snapshot)

    store.write(
        CHANNELS,
        channel_key,
        {
            "lastMessage": {
                "messageId": message.id,
                "text": message.text,
                "senderId": message.sender_id,
                "senderName": message.sender_name,
                "createdAt": message.created_at,
            }
        },
    )
    unread_service.on_send(store, channel_key, identity.id, channel.members)
    logger.debug("Message %s sent to %s by %s", message.id, channel_key, identity.id)
    return message


def list_messages(store: BaseDocumentStore, channel_key: str) -> list[Message]:
    """Return the channel history, oldest first."""

    messages = [Message.from_snapshot(snapshot) for snapshot in store.query(_messages_query(channel_key))]
    messages.sort(key=Message.sort_key)
    return messages


def latest_message(store: BaseDocumentStore, channel_key: str) -> Message | None:
    snapshots = store.query(Query(messages_collection(channel_key)).order_by("createdAt", descending=True).limit(1))
    return Message.from_snapshot(snapshots[0]) if snapshots else None


def toggle_reaction(
    store: BaseDocumentStore,
    channel_key: str,
    message_id: str,
    user_id: str,
    emoji: str,
) -> Message:
    """Add the user's reaction, or take it back if it is already there.

    Only the ``reactions.<emoji>`` array is transformed, so concurrent toggles
    by different members all land.
    """

    clean = (emoji or "").strip()
    if not clean:
        raise ValidationError("Emoji is required")
    if len(clean) > EMOJI_MAX_LENGTH:
        raise ValidationError(f"Emoji must be at most {EMOJI_MAX_LENGTH} characters")
    if "." in clean:
        raise ValidationError("Emoji must not contain '.'")

    _require_member(load_channel(store, channel_key), user_id)
    message = get_message(store, channel_key, message_id)
    if user_id in message.reactions.get(clean, []):
        change: ArrayUnion | ArrayRemove = ArrayRemove(user_id)
    else:
        change = ArrayUnion(user_id)
    snapshot = store.write(messages_collection(channel_key), message_id, {f"reactions.{clean}": change})
    return Message.from_snapshot(snapshot)


class MessageSubscription(MappedSubscription[Message]):
    """Live view of one channel's messages.

    The history is replayed oldest first on attach; afterwards every added or
    modified message is emitted once per change.
    """

    def __init__(self, store: BaseDocumentStore, channel_key: str) -> None:
        self.channel_key = channel_key
        super().__init__(store, _messages_query(channel_key), _changed_messages)


def _changed_messages(event: SnapshotEvent) -> list[Message]:
    messages = [
        Message.from_snapshot(change.snapshot)
        for change in event.changes
        if change.kind in (ChangeKind.ADDED, ChangeKind.MODIFIED)
    ]
    if event.initial:
        messages.sort(key=Message.sort_key)
    return messages


def subscribe_messages(store: BaseDocumentStore, channel_key: str) -> MessageSubscription:
    return MessageSubscription(store, channel_key)


__all__ = [
    "load_channel",
    "get_message",
    "send_message",
    "list_messages",
    "latest_message",
    "toggle_reaction",
    "MessageSubscription",
    "subscribe_messages",
]
