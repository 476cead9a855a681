"""Per-client conversation session."""
from __future__ import annotations

import logging

from ..errors import PermissionDenied, ValidationError
from ..schemas import ChannelKind, Group, Identity, Message
from ..store import BaseDocumentStore
from . import message_service, receipt_service, unread_service
from .channel_service import ChannelTarget, resolve
from .identity_service import get_identity
from .live import LiveValue
from .message_service import MessageSubscription
from .presence_service import PresenceSession, PresenceState

logger = logging.getLogger(__name__)


class ChatSession:
    """Tracks the channel one client has open.

    Opening a channel always detaches the previous message subscription first,
    so messages of the old channel can never reach the new view.
    """

    def __init__(self, store: BaseDocumentStore, user_id: str, *, presence: PresenceSession | None = None) -> None:
        self._store = store
        self.user_id = user_id
        self.presence = presence or PresenceSession(store, user_id)
        self.active_channel: LiveValue[str | None] = LiveValue(None)
        self._kind: ChannelKind | None = None
        self._subscription: MessageSubscription | None = None

    @property
    def identity(self) -> Identity:
        return get_identity(self._store, self.user_id)

    @property
    def subscription(self) -> MessageSubscription | None:
        return self._subscription

    def open_channel(self, target: Identity | Group | ChannelTarget) -> MessageSubscription:
        channel_key = resolve(self.user_id, target)
        channel = message_service.load_channel(self._store, channel_key)
        if self.user_id not in channel.members:
            raise PermissionDenied("You are not a member of this conversation")

        self._cancel_subscription()
        self._kind = channel.kind
        self._subscription = message_service.subscribe_messages(self._store, channel_key)
        self.active_channel.set(channel_key)

        unread_service.on_view(self._store, self.user_id, channel_key)
        receipt_service.record_view(self._store, channel_key, self.user_id, channel.kind)
        return self._subscription

    def _require_channel(self) -> str:
        channel_key = self.active_channel.value
        if channel_key is None:
            raise ValidationError("No conversation is open")
        return channel_key

    def send(self, text: str, reply_to: str | None = None) -> Message:
        return message_service.send_message(self._store, self._require_channel(), self.user_id, text, reply_to)

    def react(self, message_id: str, emoji: str) -> Message:
        return message_service.toggle_reaction(self._store, self._require_channel(), message_id, self.user_id, emoji)

    def _cancel_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def close(self) -> None:
        self._cancel_subscription()
        self.active_channel.set(None)
        if self.presence.current != PresenceState.ENDED:
            self.presence.end()
        logger.info("Chat session closed for %s", self.user_id)


__all__ = ["ChatSession"]
