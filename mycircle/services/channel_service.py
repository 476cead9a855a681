"""Channel resolution: one canonical message channel per friend pair or group."""
from __future__ import annotations

from dataclasses import dataclass

from ..constants import CHANNELS, CHANNEL_SEPARATOR, RESERVED_ID_CHARACTERS
from ..errors import NotFoundError, ValidationError
from ..schemas import ChannelKind, ChannelSummary, Group, Identity
from ..store import BaseDocumentStore


def check_identity_id(user_id: str) -> str:
    """Return ``user_id`` if it can be embedded in keys and field paths."""

    if not user_id:
        raise ValidationError("User id is required")
    reserved = sorted({char for char in user_id if char in RESERVED_ID_CHARACTERS})
    if reserved:
        raise ValidationError(f"User id must not contain {', '.join(repr(char) for char in reserved)}")
    return user_id


def direct_channel_key(user_id: str, peer_id: str) -> str:
    """Return the key shared by both members of a direct conversation.

    The ids are sorted before joining, so the result does not depend on who
    opens the conversation first.
    """

    if not user_id or not peer_id:
        raise ValidationError("Both identity ids are required")
    check_identity_id(user_id)
    check_identity_id(peer_id)
    if user_id == peer_id:
        raise ValidationError("A direct channel needs two distinct identities")
    return CHANNEL_SEPARATOR.join(sorted([user_id, peer_id]))


def group_channel_key(group: Group | str) -> str:
    group_id = group.id if isinstance(group, Group) else group
    if not group_id:
        raise ValidationError("Group id is required")
    return group_id


@dataclass(frozen=True, slots=True)
class ChannelTarget:
    """A conversation partner named by id, without its loaded document."""

    kind: ChannelKind
    target_id: str


def parse_direct_key(channel_key: str) -> tuple[str, str]:
    parts = (channel_key or "").split(CHANNEL_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise ValidationError(f"'{channel_key}' is not a direct channel key")
    return parts[0], parts[1]


def resolve(user: Identity | str, target: Identity | Group | ChannelTarget) -> str:
    """Map ``target`` as seen by ``user`` onto its channel key."""

    if isinstance(target, ChannelTarget):
        if target.kind == ChannelKind.GROUP:
            return group_channel_key(target.target_id)
        user_id = user.id if isinstance(user, Identity) else user
        return direct_channel_key(user_id, target.target_id)
    if isinstance(target, Group):
        return group_channel_key(target)
    if isinstance(target, Identity):
        user_id = user.id if isinstance(user, Identity) else user
        return direct_channel_key(user_id, target.id)
    raise ValidationError(f"Cannot resolve a channel for {type(target).__name__}")


def get_channel(store: BaseDocumentStore, channel_key: str) -> ChannelSummary:
    snapshot = store.get(CHANNELS, channel_key)
    if snapshot is None:
        raise NotFoundError("Channel not found")
    return ChannelSummary.from_snapshot(snapshot)


def ensure_direct_channel(store: BaseDocumentStore, user_id: str, peer_id: str) -> ChannelSummary:
    """Return the direct channel summary, creating it on first use."""

    key = direct_channel_key(user_id, peer_id)
    snapshot = store.get(CHANNELS, key)
    if snapshot is None:
        snapshot = store.write(
            CHANNELS,
            key,
            {"kind": ChannelKind.DIRECT.value, "members": sorted([user_id, peer_id])},
        )
    return ChannelSummary.from_snapshot(snapshot)


def channel_members(store: BaseDocumentStore, channel_key: str) -> list[str]:
    return list(get_channel(store, channel_key).members)


__all__ = [
    "check_identity_id",
    "ChannelTarget",
    "parse_direct_key",
    "direct_channel_key",
    "group_channel_key",
    "resolve",
    "get_channel",
    "ensure_direct_channel",
    "channel_members",
]
