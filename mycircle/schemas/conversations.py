"""Schemas for channel summaries and the ranked conversation list."""
from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .base import DocumentModel


class ChannelKind(StrEnum):
    DIRECT = "direct"
    GROUP = "group"


class LastMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message_id: str
    text: str
    sender_id: str
    sender_name: str = ""
    created_at: datetime | None = None


class ChannelSummary(DocumentModel):
    """Per-channel cache of membership and the most recent message."""

    kind: ChannelKind
    members: list[str] = Field(default_factory=list)
    last_message: LastMessage | None = None


class ConversationEntry(BaseModel):
    channel_key: str
    kind: ChannelKind
    target_id: str
    title: str
    avatar_ref: str | None = None
    online: bool = False
    last_message: LastMessage | None = None
    unread: int = 0

    @property
    def last_message_at(self) -> datetime | None:
        return self.last_message.created_at if self.last_message else None


__all__ = ["ChannelKind", "LastMessage", "ChannelSummary", "ConversationEntry"]
