"""Conversation list shown in the sidebar, ranked by recency."""
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable

from ..constants import CHANNELS, GROUPS, UNREAD, USERS
from ..schemas import ChannelKind, ChannelSummary, ConversationEntry, Identity
from ..store import BaseDocumentStore, DocumentRef, Query, Subscription
from .channel_service import direct_channel_key
from .friendship_service import display_name
from .group_service import list_groups
from .live import LiveValue
from .unread_service import unread_counts

logger = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def rank_conversations(entries: Iterable[ConversationEntry]) -> list[ConversationEntry]:
    """Most recent conversation first; ones without messages go last."""

    ranked = sorted(entries, key=lambda entry: (entry.title, entry.channel_key))
    ranked.sort(key=lambda entry: entry.last_message_at or _EPOCH, reverse=True)
    return ranked


def _summary(store: BaseDocumentStore, channel_key: str) -> ChannelSummary | None:
    snapshot = store.get(CHANNELS, channel_key)
    return ChannelSummary.from_snapshot(snapshot) if snapshot is not None else None


def build_sidebar(store: BaseDocumentStore, viewer_id: str) -> list[ConversationEntry]:
    """Assemble and rank the viewer's direct and group conversations."""

    viewer_snapshot = store.get(USERS, viewer_id)
    if viewer_snapshot is None:
        return []
    viewer = Identity.from_snapshot(viewer_snapshot)
    counts = unread_counts(store, viewer_id)
    entries: list[ConversationEntry] = []

    for edge in viewer.friends:
        peer_snapshot = store.get(USERS, edge.peer_id)
        if peer_snapshot is None:
            continue
        peer = Identity.from_snapshot(peer_snapshot)
        key = direct_channel_key(viewer_id, peer.id)
        summary = _summary(store, key)
        entries.append(
            ConversationEntry(
                channel_key=key,
                kind=ChannelKind.DIRECT,
                target_id=peer.id,
                title=display_name(edge, peer),
                avatar_ref=peer.avatar_ref,
                online=peer.online,
                last_message=summary.last_message if summary else None,
                unread=counts.get(key, 0),
            )
        )

    for group in list_groups(store, viewer_id):
        summary = _summary(store, group.id)
        entries.append(
            ConversationEntry(
                channel_key=group.id,
                kind=ChannelKind.GROUP,
                target_id=group.id,
                title=group.name,
                last_message=summary.last_message if summary else None,
                unread=counts.get(group.id, 0),
            )
        )
    return rank_conversations(entries)


class SidebarFeed:
    """Keeps a ranked conversation list current for one viewer.

    The list is rebuilt whenever the viewer's identity, a friend's identity,
    the viewer's groups, a channel summary or an unread counter changes. Friend
    identity listeners follow the viewer's friend list.
    """

    def __init__(self, store: BaseDocumentStore, viewer_id: str) -> None:
        self._store = store
        self.viewer_id = viewer_id
        self.entries: LiveValue[list[ConversationEntry]] = LiveValue([])
        self._lock = threading.RLock()
        self._ready = False
        self._closed = False
        self._refreshing = False
        self._friend_subscriptions: dict[str, Subscription] = {}
        self._subscriptions: list[Subscription] = [
            store.listen(DocumentRef(USERS, viewer_id), self._on_change),
            store.listen(Query(GROUPS).where("members", "array_contains", viewer_id), self._on_change),
            store.listen(CHANNELS, self._on_change),
            store.listen(Query(UNREAD).where("viewerId", "==", viewer_id), self._on_change),
        ]
        self._ready = True
        self.refresh()

    def subscribe(self, callback: Callable[[list[ConversationEntry]], None]) -> Callable[[], None]:
        return self.entries.subscribe(callback)

    def _on_change(self, _event: object) -> None:
        if self._ready and not self._closed:
            self.refresh()

    def _retarget(self, friend_ids: set[str]) -> None:
        for peer_id in list(self._friend_subscriptions):
            if peer_id not in friend_ids:
                self._friend_subscriptions.pop(peer_id).close()
        for peer_id in friend_ids - set(self._friend_subscriptions):
            self._friend_subscriptions[peer_id] = self._store.listen(DocumentRef(USERS, peer_id), self._on_change)

    def refresh(self) -> None:
        with self._lock:
            # Listeners attached while refreshing deliver their initial event re-entrantly.
            if self._closed or self._refreshing:
                return
            self._refreshing = True
            try:
                viewer = self._store.get(USERS, self.viewer_id)
                friend_ids = {edge.peer_id for edge in Identity.from_snapshot(viewer).friends} if viewer else set()
                self._retarget(friend_ids)
                self.entries.set(build_sidebar(self._store, self.viewer_id))
            finally:
                self._refreshing = False

    def close(self) -> None:
        with self._lock:
            self._closed = True
            for subscription in [*self._subscriptions, *self._friend_subscriptions.values()]:
                subscription.close()
            self._subscriptions.clear()
            self._friend_subscriptions.clear()


__all__ = ["rank_conversations", "build_sidebar", "SidebarFeed"]
