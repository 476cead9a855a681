"""Aggregate router exports."""
from .conversations import router as conversations_router
from .friends import router as friends_router
from .groups import router as groups_router
from .identities import router as identities_router
from .messages import router as messages_router
from .presence import router as presence_router

__all__ = [
    "conversations_router",
    "friends_router",
    "groups_router",
    "identities_router",
    "messages_router",
    "presence_router",
]
