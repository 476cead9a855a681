"""Group creation and membership management."""
from __future__ import annotations

import logging
from typing import Callable, Sequence

from ..constants import CHANNELS, GROUP_MIN_MEMBERS, GROUP_NAME_MAX_LENGTH, GROUPS, USERS
from ..errors import NotFoundError, PermissionDenied, ValidationError
from ..schemas import ChannelKind, Group
from ..store import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, BaseDocumentStore, Query, SnapshotEvent
from . import unread_service
from .live import LiveValue

logger = logging.getLogger(__name__)


def _clean_name(name: str) -> str:
    clean = (name or "").strip()
    if not clean:
        raise ValidationError("Group name is required")
    if len(clean) > GROUP_NAME_MAX_LENGTH:
        raise ValidationError(f"Group name must be at most {GROUP_NAME_MAX_LENGTH} characters")
    return clean


def _collect_unique_members(founder_id: str, extras: Sequence[str] | None) -> list[str]:
    members: list[str] = []
    for raw in [founder_id, *(extras or ())]:
        member_id = (raw or "").strip()
        if member_id and member_id not in members:
            members.append(member_id)
    return members


def _ensure_identities_exist(store: BaseDocumentStore, member_ids: Sequence[str]) -> None:
    for member_id in member_ids:
        if store.get(USERS, member_id) is None:
            raise NotFoundError(f"Identity '{member_id}' not found")


def get_group(store: BaseDocumentStore, group_id: str) -> Group:
    snapshot = store.get(GROUPS, group_id)
    if snapshot is None:
        raise NotFoundError("Group not found")
    return Group.from_snapshot(snapshot)


def _ensure_member(group: Group, user_id: str) -> None:
    if not group.has_member(user_id):
        raise PermissionDenied("You are not part of this group")


def _ensure_creator(group: Group, actor_id: str, action: str) -> None:
    # A creator who has left the group gives up its creator powers.
    if group.created_by != actor_id or not group.has_member(actor_id):
        raise PermissionDenied(f"Only the group creator can {action}")


def create_group(
    store: BaseDocumentStore,
    *,
    name: str,
    founder_id: str,
    initial_members: Sequence[str],
) -> Group:
    """Create a group whose founder is its first member and creator."""

    clean_name = _clean_name(name)
    members = _collect_unique_members(founder_id, initial_members)
    if len(members) < GROUP_MIN_MEMBERS:
        raise ValidationError(f"A group needs at least {GROUP_MIN_MEMBERS} members including the founder")
    _ensure_identities_exist(store, members)

    snapshot = store.append(
        GROUPS,
        {"name": clean_name, "members": members, "createdBy": founder_id, "createdAt": SERVER_TIMESTAMP},
    )
    store.write(CHANNELS, snapshot.id, {"kind": ChannelKind.GROUP.value, "members": members})
    logger.info("Group %s created by %s with %d members", snapshot.id, founder_id, len(members))
    return Group.from_snapshot(snapshot)


def add_members(store: BaseDocumentStore, group_id: str, actor_id: str, new_members: Sequence[str]) -> Group:
    """Invite identities into the group; any member may invite."""

    group = get_group(store, group_id)
    _ensure_member(group, actor_id)
    candidates = [member for member in _collect_unique_members("", new_members) if not group.has_member(member)]
    if not candidates:
        return group
    _ensure_identities_exist(store, candidates)
    store.write(GROUPS, group_id, {"members": ArrayUnion(*candidates)})
    store.write(CHANNELS, group_id, {"members": ArrayUnion(*candidates)})
    return get_group(store, group_id)


def remove_self(store: BaseDocumentStore, group_id: str, member_id: str) -> Group | None:
    """Leave the group. Returns ``None`` when the last member left and the group is gone."""

    group = get_group(store, group_id)
    if not group.has_member(member_id):
        raise NotFoundError("Not a member of this group")
    remaining = [member for member in group.members if member != member_id]
    unread_service.clear(store, member_id, group_id)
    if not remaining:
        store.delete(GROUPS, group_id)
        store.delete(CHANNELS, group_id)
        logger.info("Group %s deleted after its last member left", group_id)
        return None
    store.write(GROUPS, group_id, {"members": ArrayRemove(member_id)})
    store.write(CHANNELS, group_id, {"members": ArrayRemove(member_id)})
    return get_group(store, group_id)


def remove_member(store: BaseDocumentStore, group_id: str, actor_id: str, member_id: str) -> Group | None:
    """Remove another member; only the creator may do so."""

    if actor_id == member_id:
        return remove_self(store, group_id, member_id)
    group = get_group(store, group_id)
    _ensure_creator(group, actor_id, "remove other members")
    if not group.has_member(member_id):
        raise NotFoundError("Not a member of this group")
    store.write(GROUPS, group_id, {"members": ArrayRemove(member_id)})
    store.write(CHANNELS, group_id, {"members": ArrayRemove(member_id)})
    unread_service.clear(store, member_id, group_id)
    return get_group(store, group_id)


def rename_group(store: BaseDocumentStore, group_id: str, actor_id: str, name: str) -> Group:
    group = get_group(store, group_id)
    _ensure_member(group, actor_id)
    store.write(GROUPS, group_id, {"name": _clean_name(name)})
    return get_group(store, group_id)


def delete_group(store: BaseDocumentStore, group_id: str, actor_id: str) -> None:
    """Delete the group; restricted to its creator.

    Messages already sent stay in the channel's collection.
    """

    group = get_group(store, group_id)
    _ensure_creator(group, actor_id, "delete this group")
    store.delete(GROUPS, group_id)
    store.delete(CHANNELS, group_id)
    for member_id in group.members:
        unread_service.clear(store, member_id, group_id)
    logger.info("Group %s deleted by %s", group_id, actor_id)


def is_visible_to(group: Group, viewer_id: str) -> bool:
    return group.has_member(viewer_id)


def _groups_query(viewer_id: str) -> Query:
    return Query(GROUPS).where("members", "array_contains", viewer_id).order_by("createdAt")


def list_groups(store: BaseDocumentStore, viewer_id: str) -> list[Group]:
    return [Group.from_snapshot(snapshot) for snapshot in store.query(_groups_query(viewer_id))]


def watch_groups(store: BaseDocumentStore, viewer_id: str) -> tuple[LiveValue[list[Group]], Callable[[], None]]:
    """Return a live list of the viewer's groups and a function that stops it.

    The list is recomputed from every change-feed delivery, so joining,
    leaving, renames and deletions are reflected without polling.
    """

    live: LiveValue[list[Group]] = LiveValue([])

    def _on_event(event: SnapshotEvent) -> None:
        live.set([Group.from_snapshot(snapshot) for snapshot in event.documents])

    subscription = store.listen(_groups_query(viewer_id), _on_event)
    return live, subscription.close


__all__ = [
    "get_group",
    "create_group",
    "add_members",
    "remove_self",
    "remove_member",
    "rename_group",
    "delete_group",
    "is_visible_to",
    "list_groups",
    "watch_groups",
]
