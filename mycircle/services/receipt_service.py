"""Read receipts on the latest message of a channel."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from ..config import get_settings
from ..constants import messages_collection
from ..schemas import ChannelKind, Identity, Message
from ..store import SERVER_TIMESTAMP, ArrayUnion, BaseDocumentStore
from .identity_service import get_identity
from .message_service import latest_message

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def record_view(
    store: BaseDocumentStore,
    channel_key: str,
    viewer: Identity | str,
    kind: ChannelKind,
) -> Message | None:
    """Mark the channel's latest message as seen by ``viewer``.

    Only the newest message carries receipts; nothing is recorded when the
    viewer wrote it or the channel is empty.
    """

    message = latest_message(store, channel_key)
    viewer_id = viewer.id if isinstance(viewer, Identity) else viewer
    if message is None or message.sender_id == viewer_id:
        return message

    if kind == ChannelKind.DIRECT:
        if viewer_id in message.seen_by:
            return message
        patch = {"seenBy": ArrayUnion(viewer_id)}
    else:
        if viewer_id in message.seen:
            return message
        identity = viewer if isinstance(viewer, Identity) else get_identity(store, viewer_id)
        patch = {f"seen.{viewer_id}": {"username": identity.username, "seenAt": SERVER_TIMESTAMP}}

    snapshot = store.write(messages_collection(channel_key), message.id, patch)
    return Message.from_snapshot(snapshot)


def seen_status(
    message: Message,
    viewer_id: str,
    kind: ChannelKind,
    peer_id: str | None = None,
    names: int | None = None,
) -> str:
    """Describe who has seen ``message`` from its author's point of view."""

    if message.sender_id != viewer_id:
        return ""
    if kind == ChannelKind.DIRECT:
        if peer_id is None:
            seen = any(uid != viewer_id for uid in message.seen_by)
        else:
            seen = peer_id in message.seen_by
        return "Seen" if seen else "Sent"

    viewers = [(uid, entry) for uid, entry in message.seen.items() if uid != viewer_id]
    if not viewers:
        return "Sent"
    if len(viewers) == 1:
        return "Seen by 1 member"

    limit = get_settings().seen_summary_names if names is None else names
    viewers.sort(key=lambda item: (item[1].seen_at or _EPOCH, item[1].username))
    shown = [entry.username for _, entry in viewers[:limit]]
    summary = f"Seen by {len(viewers)} members"
    if shown:
        summary += ": " + ", ".join(shown)
        remaining = len(viewers) - len(shown)
        if remaining:
            summary += f" and {remaining} more"
    return summary


__all__ = ["record_view", "seen_status"]
