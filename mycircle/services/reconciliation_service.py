"""Background repair of one-sided friend edges."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from ..constants import USERS
from ..errors import TransientStoreError
from ..schemas import FriendEdge, Identity, edges_to_document
from ..store import BaseDocumentStore

logger = logging.getLogger(__name__)


class ReconcileError(RuntimeError):
    """Raised when the reconciliation pass cannot complete successfully."""


@dataclass(frozen=True, slots=True)
class AsymmetricEdge:
    owner_id: str
    peer_id: str


@dataclass(frozen=True, slots=True)
class ReconcileSummary:
    """Outcome of one reconciliation pass."""

    scanned: int
    healed: int
    dropped: int

    @property
    def total(self) -> int:
        return self.healed + self.dropped


def _load_identities(store: BaseDocumentStore) -> dict[str, Identity]:
    return {snapshot.id: Identity.from_snapshot(snapshot) for snapshot in store.query(USERS)}


def find_asymmetric_edges(store: BaseDocumentStore) -> list[AsymmetricEdge]:
    """List edges whose reverse edge is missing, including edges to deleted identities."""

    identities = _load_identities(store)
    found: list[AsymmetricEdge] = []
    for owner in identities.values():
        for edge in owner.friends:
            peer = identities.get(edge.peer_id)
            if peer is None or not peer.lists(owner.id):
                found.append(AsymmetricEdge(owner.id, edge.peer_id))
    return found


def reconcile_friend_edges(store: BaseDocumentStore) -> ReconcileSummary:
    """Make every friend edge symmetric.

    A one-sided edge is normally what an interrupted add leaves behind, so the
    missing reverse edge is added. When the peer is gone, or holds a removal
    tombstone for the owner, the edge is the remnant of a removal and is
    dropped instead.
    """

    asymmetric = find_asymmetric_edges(store)
    healed = dropped = 0
    for item in asymmetric:
        owner_snapshot = store.get(USERS, item.owner_id)
        if owner_snapshot is None:
            continue
        owner = Identity.from_snapshot(owner_snapshot)
        if not owner.lists(item.peer_id):
            continue

        peer_snapshot = store.get(USERS, item.peer_id)
        peer = Identity.from_snapshot(peer_snapshot) if peer_snapshot is not None else None
        if peer is not None and peer.lists(owner.id):
            continue

        if peer is None or owner.id in peer.removed_friends:
            remaining = [edge for edge in owner.friends if edge.peer_id != item.peer_id]
            store.write(USERS, owner.id, {"friends": edges_to_document(remaining)})
            logger.warning("Dropped one-sided edge %s -> %s", owner.id, item.peer_id)
            dropped += 1
        else:
            store.write(USERS, peer.id, {"friends": edges_to_document([*peer.friends, FriendEdge(peer_id=owner.id)])})
            logger.warning("Restored missing edge %s -> %s", peer.id, owner.id)
            healed += 1

    return ReconcileSummary(scanned=len(asymmetric), healed=healed, dropped=dropped)


def perform_reconciliation(store: BaseDocumentStore) -> ReconcileSummary:
    """Run one reconciliation pass over the whole friend graph.

    Raises
    ------
    ReconcileError
        If the document store fails part way; repairs written before the
        failure are kept.
    """

    try:
        summary = reconcile_friend_edges(store)
    except TransientStoreError as exc:
        logger.exception("Friend edge reconciliation failed")
        raise ReconcileError("friend edge reconciliation failed") from exc

    logger.info(
        "Reconciliation finished (scanned=%d, healed=%d, dropped=%d)",
        summary.scanned,
        summary.healed,
        summary.dropped,
    )
    return summary


def run_reconciliation(store_factory: Callable[[], BaseDocumentStore]) -> ReconcileSummary:
    """Run a pass against the store returned by ``store_factory``.

    Suitable for a FastAPI startup hook or a scheduled background task.
    """

    return perform_reconciliation(store_factory())


__all__ = [
    "ReconcileError",
    "AsymmetricEdge",
    "ReconcileSummary",
    "find_asymmetric_edges",
    "reconcile_friend_edges",
    "perform_reconciliation",
    "run_reconciliation",
]
