"""Project-wide constant values."""
from __future__ import annotations

import string

TAG_ALPHABET = string.ascii_uppercase + string.digits
TAG_LENGTH = 4
HANDLE_SEPARATOR = "#"

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
BIO_MAX_LENGTH = 280
NICKNAME_MAX_LENGTH = 40

GROUP_NAME_MAX_LENGTH = 60
GROUP_MIN_MEMBERS = 2

MESSAGE_MAX_LENGTH = 2000
REPLY_PREVIEW_LENGTH = 120
EMOJI_MAX_LENGTH = 16

# Direct channel keys join the two sorted member ids with this separator.
CHANNEL_SEPARATOR = "_"
# Identity ids appear inside channel keys, unread ids (`viewer:channel`),
# collection paths and dotted field paths, so they may not contain these.
RESERVED_ID_CHARACTERS = CHANNEL_SEPARATOR + ":./"

DEFAULT_AVATAR_URL = (
    "https://api.dicebear.com/7.x/avataaars/svg?seed={seed}&backgroundColor=1e3a5f,1e40af,3730a3"
)

USERS = "users"
HANDLES = "handles"
GROUPS = "groups"
CHANNELS = "channels"
UNREAD = "unread"


def messages_collection(channel_key: str) -> str:
    """Return the collection path holding the messages of ``channel_key``."""

    return f"chats/{channel_key}/messages"


__all__ = [
    "TAG_ALPHABET",
    "TAG_LENGTH",
    "HANDLE_SEPARATOR",
    "USERNAME_MIN_LENGTH",
    "USERNAME_MAX_LENGTH",
    "BIO_MAX_LENGTH",
    "NICKNAME_MAX_LENGTH",
    "GROUP_NAME_MAX_LENGTH",
    "GROUP_MIN_MEMBERS",
    "MESSAGE_MAX_LENGTH",
    "REPLY_PREVIEW_LENGTH",
    "EMOJI_MAX_LENGTH",
    "CHANNEL_SEPARATOR",
    "RESERVED_ID_CHARACTERS",
    "DEFAULT_AVATAR_URL",
    "USERS",
    "HANDLES",
    "GROUPS",
    "CHANNELS",
    "UNREAD",
    "messages_collection",
]
