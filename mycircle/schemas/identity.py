"""Schemas for identities and friend edges."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from ..constants import BIO_MAX_LENGTH, HANDLE_SEPARATOR, NICKNAME_MAX_LENGTH, USERNAME_MAX_LENGTH
from .base import DocumentModel


class FriendEdge(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    peer_id: str
    nickname: str = ""


def normalize_edges(raw: Iterable[Any] | None) -> list[FriendEdge]:
    """Coerce stored friend entries into :class:`FriendEdge` values.

    Older documents store bare peer ids instead of ``{peerId, nickname}``
    objects. Entries without a peer id are dropped; the first entry per peer wins.
    """

    edges: list[FriendEdge] = []
    seen: set[str] = set()
    for item in raw or ():
        if isinstance(item, FriendEdge):
            edge = item
        elif isinstance(item, str):
            edge = FriendEdge(peer_id=item)
        elif isinstance(item, dict):
            peer_id = item.get("peerId") or item.get("peer_id") or item.get("uid")
            if not peer_id:
                continue
            edge = FriendEdge(peer_id=str(peer_id), nickname=str(item.get("nickname") or ""))
        else:
            continue
        if not edge.peer_id or edge.peer_id in seen:
            continue
        seen.add(edge.peer_id)
        edges.append(edge)
    return edges


def edges_to_document(edges: Iterable[FriendEdge]) -> list[dict[str, str]]:
    return [edge.model_dump(by_alias=True) for edge in edges]


class Identity(DocumentModel):
    username: str
    username_lower: str = ""
    tag: str
    email: str | None = None
    avatar_ref: str | None = Field(
        default=None,
        validation_alias=AliasChoices("avatarRef", "avatar_ref", "avatar"),
        serialization_alias="avatarRef",
    )
    bio: str = ""
    created_at: datetime | None = None
    last_username_change_at: datetime | None = None
    online: bool = False
    last_seen_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("lastSeenAt", "last_seen_at", "lastSeen"),
        serialization_alias="lastSeenAt",
    )
    friends: list[FriendEdge] = Field(default_factory=list)
    removed_friends: list[str] = Field(default_factory=list)

    @field_validator("friends", mode="before")
    @classmethod
    def _normalize_friends(cls, value: Any) -> list[FriendEdge]:
        return normalize_edges(value)

    @field_validator("bio", mode="before")
    @classmethod
    def _blank_bio(cls, value: Any) -> str:
        return value or ""

    @property
    def handle(self) -> str:
        return f"{self.username}{HANDLE_SEPARATOR}{self.tag}"

    def edge_to(self, peer_id: str) -> FriendEdge | None:
        for edge in self.friends:
            if edge.peer_id == peer_id:
                return edge
        return None

    def lists(self, peer_id: str) -> bool:
        return self.edge_to(peer_id) is not None


class IdentityRegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    email: EmailStr | None = None
    bio: str | None = Field(None, max_length=BIO_MAX_LENGTH)


class UsernameChangeRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)


class ProfileUpdateRequest(BaseModel):
    bio: str | None = Field(None, max_length=BIO_MAX_LENGTH)
    avatar_ref: str | None = Field(None, max_length=1024)


class IdentityResponse(BaseModel):
    id: str
    username: str
    tag: str
    handle: str
    avatar_ref: str | None = None
    bio: str = ""
    online: bool = False
    last_seen_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_identity(cls, identity: Identity) -> IdentityResponse:
        return cls(
            id=identity.id,
            username=identity.username,
            tag=identity.tag,
            handle=identity.handle,
            avatar_ref=identity.avatar_ref,
            bio=identity.bio,
            online=identity.online,
            last_seen_at=identity.last_seen_at,
            created_at=identity.created_at,
        )


class FriendAddRequest(BaseModel):
    handle: str = Field(..., min_length=1, max_length=USERNAME_MAX_LENGTH + 8)


class NicknameRequest(BaseModel):
    nickname: str = Field("", max_length=NICKNAME_MAX_LENGTH)


class FriendSummary(BaseModel):
    id: str
    handle: str
    nickname: str = ""
    display_name: str
    avatar_ref: str | None = None
    online: bool = False
    channel_key: str


class PresenceResponse(BaseModel):
    id: str
    online: bool
    last_seen_at: datetime | None = None
    label: str


__all__ = [
    "FriendEdge",
    "normalize_edges",
    "edges_to_document",
    "Identity",
    "IdentityRegisterRequest",
    "UsernameChangeRequest",
    "ProfileUpdateRequest",
    "IdentityResponse",
    "FriendAddRequest",
    "NicknameRequest",
    "FriendSummary",
    "PresenceResponse",
]
