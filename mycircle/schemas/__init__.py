"""Convenience exports for schema layer."""
from .base import DocumentModel
from .conversations import ChannelKind, ChannelSummary, ConversationEntry, LastMessage
from .groups import Group, GroupCreateRequest, GroupInviteRequest, GroupRenameRequest, GroupResponse
from .identity import (
    FriendAddRequest,
    FriendEdge,
    FriendSummary,
    Identity,
    IdentityRegisterRequest,
    IdentityResponse,
    NicknameRequest,
    PresenceResponse,
    ProfileUpdateRequest,
    UsernameChangeRequest,
    edges_to_document,
    normalize_edges,
)
from .messages import (
    Message,
    MessageResponse,
    MessageSendRequest,
    MessageThreadResponse,
    ReactionRequest,
    ReplyRef,
    SeenEntry,
)

__all__ = [
    "DocumentModel",
    "ChannelKind",
    "ChannelSummary",
    "ConversationEntry",
    "LastMessage",
    "Group",
    "GroupCreateRequest",
    "GroupInviteRequest",
    "GroupRenameRequest",
    "GroupResponse",
    "FriendAddRequest",
    "FriendEdge",
    "FriendSummary",
    "Identity",
    "IdentityRegisterRequest",
    "IdentityResponse",
    "NicknameRequest",
    "PresenceResponse",
    "ProfileUpdateRequest",
    "UsernameChangeRequest",
    "edges_to_document",
    "normalize_edges",
    "Message",
    "MessageResponse",
    "MessageSendRequest",
    "MessageThreadResponse",
    "ReactionRequest",
    "ReplyRef",
    "SeenEntry",
]
