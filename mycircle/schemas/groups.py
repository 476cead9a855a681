"""Schemas for group conversations."""
from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from ..constants import GROUP_NAME_MAX_LENGTH
from .base import DocumentModel


class Group(DocumentModel):
    name: str
    members: list[str] = Field(default_factory=list)
    created_by: str
    created_at: datetime | None = None

    def has_member(self, user_id: str) -> bool:
        return user_id in self.members


class GroupCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=GROUP_NAME_MAX_LENGTH)
    members: List[str] = Field(default_factory=list, description="Identity ids to invite besides the founder")


class GroupInviteRequest(BaseModel):
    members: List[str] = Field(..., min_length=1)


class GroupRenameRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=GROUP_NAME_MAX_LENGTH)


class GroupResponse(BaseModel):
    id: str
    name: str
    members: List[str]
    created_by: str
    created_at: datetime | None = None

    @classmethod
    def from_group(cls, group: Group) -> GroupResponse:
        return cls(
            id=group.id,
            name=group.name,
            members=list(group.members),
            created_by=group.created_by,
            created_at=group.created_at,
        )


__all__ = ["Group", "GroupCreateRequest", "GroupInviteRequest", "GroupRenameRequest", "GroupResponse"]
