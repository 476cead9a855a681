"""Group lifecycle and permissions."""
from __future__ import annotations

import pytest

from mycircle.constants import CHANNELS, GROUPS, UNREAD
from mycircle.errors import NotFoundError, PermissionDenied, ValidationError
from mycircle.services import (
    add_members,
    create_group,
    delete_group,
    get_group,
    is_visible_to,
    list_groups,
    remove_member,
    remove_self,
    rename_group,
    send_message,
    unread_counts,
    watch_groups,
)


@pytest.fixture
def trio(identity_factory):
    return [identity_factory(name, user_id=name[0]) for name in ("alice", "bob", "carol")]


def test_create_group_dedupes_and_puts_founder_first(store, trio):
    group = create_group(store, name="  Orbit  ", founder_id="a", initial_members=["b", "a", "b", "c"])

    assert group.name == "Orbit"
    assert group.members == ["a", "b", "c"]
    assert group.created_by == "a"
    assert group.created_at is not None
    summary = store.get(CHANNELS, group.id)
    assert summary.get("kind") == "group"
    assert summary.get("members") == ["a", "b", "c"]


@pytest.mark.parametrize(
    "name, members, error",
    [
        ("Orbit", [], ValidationError),
        ("Orbit", ["a"], ValidationError),
        ("   ", ["b"], ValidationError),
        ("x" * 61, ["b"], ValidationError),
        ("Orbit", ["ghost"], NotFoundError),
    ],
)
def test_create_group_validation(store, trio, name, members, error):
    with pytest.raises(error):
        create_group(store, name=name, founder_id="a", initial_members=members)
    assert store.query(GROUPS) == []


def test_members_can_invite_outsiders_cannot(store, trio, identity_factory):
    identity_factory("dave", user_id="d")
    group = create_group(store, name="Orbit", founder_id="a", initial_members=["b"])

    with pytest.raises(PermissionDenied):
        add_members(store, group.id, "c", ["d"])

    updated = add_members(store, group.id, "b", ["c", "a"])
    assert updated.members == ["a", "b", "c"]
    assert store.get(CHANNELS, group.id).get("members") == ["a", "b", "c"]


def test_leave_and_last_member_deletes_group(store, trio):
    group = create_group(store, name="Orbit", founder_id="a", initial_members=["b"])

    with pytest.raises(NotFoundError):
        remove_self(store, group.id, "c")

    remaining = remove_self(store, group.id, "a")
    assert remaining.members == ["b"]
    assert remaining.created_by == "a"

    assert remove_self(store, group.id, "b") is None
    assert store.get(GROUPS, group.id) is None
    assert store.get(CHANNELS, group.id) is None


def test_only_creator_removes_others(store, trio):
    group = create_group(store, name="Orbit", founder_id="a", initial_members=["b", "c"])

    with pytest.raises(PermissionDenied):
        remove_member(store, group.id, "b", "c")

    assert remove_member(store, group.id, "a", "c").members == ["a", "b"]
    assert remove_member(store, group.id, "b", "b").members == ["a"]


def test_creator_who_left_loses_creator_powers(store, trio):
    group = create_group(store, name="Orbit", founder_id="a", initial_members=["b", "c"])
    remove_self(store, group.id, "a")

    with pytest.raises(PermissionDenied):
        remove_member(store, group.id, "a", "b")
    with pytest.raises(PermissionDenied):
        delete_group(store, group.id, "a")
    assert get_group(store, group.id).members == ["b", "c"]


def test_leaving_or_deleting_clears_unread_counters(store, trio):
    group = create_group(store, name="Orbit", founder_id="a", initial_members=["b", "c"])
    send_message(store, group.id, "a", "one")
    send_message(store, group.id, "a", "two")
    assert unread_counts(store, "b") == {group.id: 2}

    remove_self(store, group.id, "b")
    remove_member(store, group.id, "a", "c")
    assert unread_counts(store, "b") == {}
    assert unread_counts(store, "c") == {}

    other = create_group(store, name="Lumen", founder_id="a", initial_members=["b"])
    send_message(store, other.id, "a", "hello")
    delete_group(store, other.id, "a")
    assert unread_counts(store, "b") == {}
    assert store.query(UNREAD) == []


def test_rename_and_delete(store, trio):
    group = create_group(store, name="Orbit", founder_id="a", initial_members=["b"])

    assert rename_group(store, group.id, "b", "Lumen").name == "Lumen"
    with pytest.raises(PermissionDenied):
        rename_group(store, group.id, "c", "Nope")
    with pytest.raises(PermissionDenied):
        delete_group(store, group.id, "b")

    delete_group(store, group.id, "a")
    with pytest.raises(NotFoundError):
        get_group(store, group.id)


def test_visibility_and_listing(store, trio):
    first = create_group(store, name="One", founder_id="a", initial_members=["b"])
    second = create_group(store, name="Two", founder_id="b", initial_members=["c"])

    assert is_visible_to(first, "a")
    assert not is_visible_to(first, "c")
    assert [group.id for group in list_groups(store, "b")] == [first.id, second.id]
    assert [group.id for group in list_groups(store, "c")] == [second.id]


def test_watch_groups_follows_membership(store, trio):
    live, stop = watch_groups(store, "c")
    seen: list[list[str]] = []
    live.subscribe(lambda groups: seen.append([group.name for group in groups]))

    group = create_group(store, name="Orbit", founder_id="a", initial_members=["c"])
    rename_group(store, group.id, "a", "Lumen")
    remove_self(store, group.id, "c")
    stop()
    create_group(store, name="Later", founder_id="a", initial_members=["c"])

    assert seen == [[], ["Orbit"], ["Lumen"], []]
