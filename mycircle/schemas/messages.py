"""Schemas used by the message stream, receipts and reactions."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..constants import EMOJI_MAX_LENGTH, MESSAGE_MAX_LENGTH
from .base import DocumentModel


class ReplyRef(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message_id: str
    text: str
    sender_name: str


class SeenEntry(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: str
    seen_at: datetime | None = None


class Message(DocumentModel):
    channel_key: str
    sender_id: str
    sender_name: str = ""
    text: str
    created_at: datetime | None = None
    reactions: dict[str, list[str]] = Field(default_factory=dict)
    reply_to: ReplyRef | None = None
    # Direct channels track viewers as a list, groups as one entry per viewer.
    seen_by: list[str] = Field(default_factory=list)
    seen: dict[str, SeenEntry] = Field(default_factory=dict)

    @field_validator("reactions")
    @classmethod
    def _drop_empty_reactions(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        # Withdrawn reactions leave an empty list behind in storage.
        return {emoji: users for emoji, users in value.items() if users}

    def sort_key(self) -> tuple:
        return (self.created_at is not None, self.created_at, self.id)


class MessageSendRequest(BaseModel):
    friend_id: str | None = Field(None, description="Peer identity for a direct channel")
    group_id: str | None = Field(None, description="Group whose channel receives the message")
    text: str = Field(..., max_length=MESSAGE_MAX_LENGTH)
    reply_to_id: str | None = Field(None, description="Optional message being replied to")


class ReactionRequest(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=EMOJI_MAX_LENGTH)


class MessageResponse(BaseModel):
    id: str
    channel_key: str
    sender_id: str
    sender_name: str
    text: str
    created_at: datetime | None
    reactions: Dict[str, List[str]] = Field(default_factory=dict)
    reply_to: ReplyRef | None = None
    status: str = ""

    @classmethod
    def from_message(cls, message: Message, *, status: str = "") -> MessageResponse:
        return cls(
            id=message.id,
            channel_key=message.channel_key,
            sender_id=message.sender_id,
            sender_name=message.sender_name,
            text=message.text,
            created_at=message.created_at,
            reactions=dict(message.reactions),
            reply_to=message.reply_to,
            status=status,
        )


class MessageThreadResponse(BaseModel):
    channel_key: str
    messages: List[MessageResponse]


__all__ = [
    "ReplyRef",
    "SeenEntry",
    "Message",
    "MessageSendRequest",
    "ReactionRequest",
    "MessageResponse",
    "MessageThreadResponse",
]
