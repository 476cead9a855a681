"""Friend graph maintenance.

Each identity document holds its own ordered list of friend edges. Adding or
removing a friend touches two documents in two independent writes; there is no
multi-document transaction, so an interrupted operation can leave the graph
asymmetric. :mod:`reconciliation_service` repairs such edges.
"""
from __future__ import annotations

import logging

from ..constants import NICKNAME_MAX_LENGTH, USERS
from ..errors import DuplicateEdgeError, EdgeNotFoundError, NotFoundError, SelfReferenceError
from ..schemas import FriendEdge, Identity, edges_to_document
from ..store import ArrayRemove, ArrayUnion, BaseDocumentStore
from .identity_service import get_identity

logger = logging.getLogger(__name__)


def _write_edges(store: BaseDocumentStore, owner_id: str, edges: list[FriendEdge], **extra: object) -> None:
    store.write(USERS, owner_id, {"friends": edges_to_document(edges), **extra})


def list_friend_edges(store: BaseDocumentStore, user_id: str) -> list[FriendEdge]:
    return list(get_identity(store, user_id).friends)


def add_friend(store: BaseDocumentStore, user_id: str, peer_id: str) -> FriendEdge:
    """Create a symmetric edge between ``user_id`` and ``peer_id``.

    The user's side is written first, then the peer's. A peer that already
    lists the user keeps its edge and nickname untouched.
    """

    if user_id == peer_id:
        raise SelfReferenceError("Cannot befriend yourself")
    user = get_identity(store, user_id)
    peer = get_identity(store, peer_id)
    if user.lists(peer_id):
        raise DuplicateEdgeError(f"{peer.username} is already in your circle")

    edge = FriendEdge(peer_id=peer_id)
    _write_edges(store, user_id, [*user.friends, edge], removedFriends=ArrayRemove(peer_id))

    peer = get_identity(store, peer_id)
    peer_edges = peer.friends if peer.lists(user_id) else [*peer.friends, FriendEdge(peer_id=user_id)]
    _write_edges(store, peer_id, peer_edges, removedFriends=ArrayRemove(user_id))

    logger.info("Friend edge created between %s and %s", user_id, peer_id)
    return edge


def remove_friend(store: BaseDocumentStore, user_id: str, peer_id: str) -> None:
    """Drop the edge on both sides; missing edges or documents are ignored.

    The remover records a tombstone for the peer so that a stale write from the
    peer's side that re-adds the edge can be recognised and pruned later.
    """

    user_snapshot = store.get(USERS, user_id)
    if user_snapshot is not None:
        user = Identity.from_snapshot(user_snapshot)
        remaining = [edge for edge in user.friends if edge.peer_id != peer_id]
        _write_edges(store, user_id, remaining, removedFriends=ArrayUnion(peer_id))

    peer_snapshot = store.get(USERS, peer_id)
    if peer_snapshot is not None:
        peer = Identity.from_snapshot(peer_snapshot)
        remaining = [edge for edge in peer.friends if edge.peer_id != user_id]
        if len(remaining) != len(peer.friends):
            _write_edges(store, peer_id, remaining)
    logger.info("Friend edge removed between %s and %s", user_id, peer_id)


def set_nickname(store: BaseDocumentStore, owner_id: str, peer_id: str, nickname: str) -> FriendEdge:
    """Set the owner's private nickname for ``peer_id``."""

    owner = get_identity(store, owner_id)
    if not owner.lists(peer_id):
        raise EdgeNotFoundError("Friend not found")
    clean = (nickname or "").strip()[:NICKNAME_MAX_LENGTH]
    updated: list[FriendEdge] = []
    result: FriendEdge | None = None
    for edge in owner.friends:
        if edge.peer_id == peer_id:
            edge = FriendEdge(peer_id=peer_id, nickname=clean)
            result = edge
        updated.append(edge)
    _write_edges(store, owner_id, updated)
    return result or FriendEdge(peer_id=peer_id, nickname=clean)


def prune_stale_edges(store: BaseDocumentStore, user_id: str) -> list[FriendEdge]:
    """Return the user's edges after dropping ones the peer has removed.

    An edge is stale when the peer no longer lists the user and holds a
    removal tombstone for them, or when the peer document is gone.
    """

    user = get_identity(store, user_id)
    kept: list[FriendEdge] = []
    for edge in user.friends:
        peer_snapshot = store.get(USERS, edge.peer_id)
        if peer_snapshot is None:
            logger.warning("Dropping edge from %s to missing identity %s", user_id, edge.peer_id)
            continue
        peer = Identity.from_snapshot(peer_snapshot)
        if not peer.lists(user_id) and user_id in peer.removed_friends:
            logger.warning("Dropping edge from %s to %s removed on the peer side", user_id, edge.peer_id)
            continue
        kept.append(edge)
    if len(kept) != len(user.friends):
        _write_edges(store, user_id, kept)
    return kept


def list_friends(store: BaseDocumentStore, user_id: str) -> list[tuple[FriendEdge, Identity]]:
    """Resolve the user's edges to live identities, pruning stale ones first."""

    friends: list[tuple[FriendEdge, Identity]] = []
    for edge in prune_stale_edges(store, user_id):
        try:
            friends.append((edge, get_identity(store, edge.peer_id)))
        except NotFoundError:
            continue
    return friends


def display_name(edge: FriendEdge, identity: Identity) -> str:
    return edge.nickname or identity.username


__all__ = [
    "list_friend_edges",
    "add_friend",
    "remove_friend",
    "set_nickname",
    "prune_stale_edges",
    "list_friends",
    "display_name",
]
