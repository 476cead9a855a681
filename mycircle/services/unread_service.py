"""Per-viewer unread counters.

One document per ``(viewer, channel)`` pair lives in the ``unread`` collection
under the id ``viewerId:channelKey``.
"""
from __future__ import annotations

import logging
from typing import Iterable

from ..constants import UNREAD
from ..store import SERVER_TIMESTAMP, BaseDocumentStore, Query

logger = logging.getLogger(__name__)


def unread_doc_id(viewer_id: str, channel_key: str) -> str:
    return f"{viewer_id}:{channel_key}"


def _clamp(value: object) -> int:
    try:
        count = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


def on_send(store: BaseDocumentStore, channel_key: str, sender_id: str, recipients: Iterable[str]) -> None:
    """Bump the counter of every recipient other than the sender.

    The increment reads the current count and writes it back plus one, so two
    concurrent sends may both read the same value and one bump is lost.
    """

    for recipient in dict.fromkeys(recipients):
        if recipient == sender_id:
            continue
        doc_id = unread_doc_id(recipient, channel_key)
        current = store.get(UNREAD, doc_id)
        count = _clamp(current.get("count")) if current is not None else 0
        store.write(
            UNREAD,
            doc_id,
            {"viewerId": recipient, "channelKey": channel_key, "count": count + 1, "updatedAt": SERVER_TIMESTAMP},
        )


def on_view(store: BaseDocumentStore, viewer_id: str, channel_key: str) -> None:
    store.write(
        UNREAD,
        unread_doc_id(viewer_id, channel_key),
        {"viewerId": viewer_id, "channelKey": channel_key, "count": 0, "updatedAt": SERVER_TIMESTAMP},
    )


def clear(store: BaseDocumentStore, viewer_id: str, channel_key: str) -> None:
    """Forget the counter of a viewer who no longer belongs to ``channel_key``."""

    store.delete(UNREAD, unread_doc_id(viewer_id, channel_key))


def unread_count(store: BaseDocumentStore, viewer_id: str, channel_key: str) -> int:
    snapshot = store.get(UNREAD, unread_doc_id(viewer_id, channel_key))
    return _clamp(snapshot.get("count")) if snapshot is not None else 0


def unread_counts(store: BaseDocumentStore, viewer_id: str) -> dict[str, int]:
    """Return every non-zero counter of ``viewer_id`` keyed by channel."""

    counts: dict[str, int] = {}
    for snapshot in store.query(Query(UNREAD).where("viewerId", "==", viewer_id)):
        count = _clamp(snapshot.get("count"))
        if count:
            counts[snapshot.get("channelKey")] = count
    return counts


__all__ = ["unread_doc_id", "on_send", "on_view", "clear", "unread_count", "unread_counts"]
