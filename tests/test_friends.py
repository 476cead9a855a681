"""Friend graph symmetry, nicknames and stale edge pruning."""
from __future__ import annotations

import pytest

from mycircle.constants import USERS
from mycircle.errors import DuplicateEdgeError, EdgeNotFoundError, NotFoundError, SelfReferenceError
from mycircle.schemas import FriendEdge, Identity, edges_to_document, normalize_edges
from mycircle.services import (
    add_friend,
    display_name,
    get_identity,
    list_friend_edges,
    list_friends,
    prune_stale_edges,
    remove_friend,
    set_nickname,
)


@pytest.fixture
def pair(identity_factory):
    return identity_factory("alice", user_id="a"), identity_factory("bob", user_id="b")


def test_add_friend_writes_both_sides(store, pair):
    edge = add_friend(store, "a", "b")

    assert edge == FriendEdge(peer_id="b")
    assert [item.peer_id for item in list_friend_edges(store, "a")] == ["b"]
    assert [item.peer_id for item in list_friend_edges(store, "b")] == ["a"]


def test_add_friend_rejections(store, pair):
    with pytest.raises(SelfReferenceError):
        add_friend(store, "a", "a")
    with pytest.raises(NotFoundError):
        add_friend(store, "a", "ghost")
    add_friend(store, "a", "b")
    with pytest.raises(DuplicateEdgeError):
        add_friend(store, "a", "b")


def test_add_friend_keeps_existing_reverse_nickname(store, pair):
    # Half-written add: only bob's side exists, with a nickname.
    store.write(USERS, "b", {"friends": [{"peerId": "a", "nickname": "Al"}]})

    add_friend(store, "a", "b")

    assert list_friend_edges(store, "b") == [FriendEdge(peer_id="a", nickname="Al")]
    assert list_friend_edges(store, "a") == [FriendEdge(peer_id="b")]


def test_remove_friend_is_idempotent(store, pair):
    add_friend(store, "a", "b")

    remove_friend(store, "a", "b")
    remove_friend(store, "a", "b")
    remove_friend(store, "a", "ghost")

    assert list_friend_edges(store, "a") == []
    assert list_friend_edges(store, "b") == []
    assert get_identity(store, "a").removed_friends == ["b", "ghost"]


def test_set_nickname_only_touches_owner(store, pair):
    add_friend(store, "a", "b")

    edge = set_nickname(store, "a", "b", "  Bobby  ")

    assert edge.nickname == "Bobby"
    assert list_friend_edges(store, "a")[0].nickname == "Bobby"
    assert list_friend_edges(store, "b")[0].nickname == ""
    assert display_name(edge, get_identity(store, "b")) == "Bobby"
    with pytest.raises(EdgeNotFoundError):
        set_nickname(store, "b", "ghost", "x")


def test_stale_nickname_write_after_removal_is_pruned(store, pair):
    add_friend(store, "a", "b")
    stale_view = get_identity(store, "b")

    remove_friend(store, "a", "b")
    # Bob's client still holds the old friend list and writes a nickname.
    edges = [FriendEdge(peer_id=edge.peer_id, nickname="Ally") for edge in stale_view.friends]
    store.write(USERS, "b", {"friends": edges_to_document(edges)})

    assert [edge.peer_id for edge in list_friend_edges(store, "b")] == ["a"]
    assert prune_stale_edges(store, "b") == []
    assert list_friend_edges(store, "b") == []
    assert list_friend_edges(store, "a") == []


def test_list_friends_skips_deleted_identities(store, pair):
    add_friend(store, "a", "b")
    store.delete(USERS, "b")

    assert list_friends(store, "a") == []
    assert list_friend_edges(store, "a") == []


def test_legacy_string_entries_normalize():
    edges = normalize_edges(["b", {"peerId": "c", "nickname": "Cee"}, "b", {"uid": "d"}, {}, 7])

    assert edges == [
        FriendEdge(peer_id="b"),
        FriendEdge(peer_id="c", nickname="Cee"),
        FriendEdge(peer_id="d"),
    ]


def test_identity_reads_legacy_friend_list(store, pair):
    store.write(USERS, "a", {"friends": ["b", "b"]})

    identity = Identity.from_snapshot(store.get(USERS, "a"))

    assert identity.friends == [FriendEdge(peer_id="b")]
    assert identity.lists("b")
