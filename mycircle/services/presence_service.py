"""Online/offline presence driven by client session lifecycle signals.

A client that dies without closing its session sends no signal, so the identity
stays marked online until the next session of that user updates it. There is
no heartbeat.
"""
from __future__ import annotations

import logging
from datetime import datetime
from enum import StrEnum

from ..constants import USERS
from ..errors import ValidationError
from ..schemas import Identity
from ..store import SERVER_TIMESTAMP, BaseDocumentStore
from .identity_service import get_identity
from .live import LiveValue

logger = logging.getLogger(__name__)


def set_online(store: BaseDocumentStore, user_id: str) -> None:
    get_identity(store, user_id)
    store.write(USERS, user_id, {"online": True})


def set_offline(store: BaseDocumentStore, user_id: str, last_seen_at: datetime | None = None) -> None:
    get_identity(store, user_id)
    store.write(USERS, user_id, {"online": False, "lastSeenAt": last_seen_at or SERVER_TIMESTAMP})


class PresenceState(StrEnum):
    STARTING = "starting"
    ACTIVE = "active"
    BACKGROUNDED = "backgrounded"
    ENDED = "ended"


_TRANSITIONS: dict[PresenceState, set[PresenceState]] = {
    PresenceState.STARTING: {PresenceState.ACTIVE, PresenceState.ENDED},
    PresenceState.ACTIVE: {PresenceState.BACKGROUNDED, PresenceState.ENDED},
    PresenceState.BACKGROUNDED: {PresenceState.ACTIVE, PresenceState.ENDED},
    PresenceState.ENDED: set(),
}


class PresenceSession:
    """Presence of one client session.

    ``start`` marks the user online, ``hide`` (tab hidden) and ``end`` (logout,
    session close) mark them offline and stamp ``lastSeenAt``, ``show`` brings
    them back online.
    """

    def __init__(self, store: BaseDocumentStore, user_id: str) -> None:
        self._store = store
        self.user_id = user_id
        self.state: LiveValue[PresenceState] = LiveValue(PresenceState.STARTING)

    @property
    def current(self) -> PresenceState:
        return self.state.value

    def _move(self, target: PresenceState) -> None:
        current = self.state.value
        if target not in _TRANSITIONS[current]:
            raise ValidationError(f"Cannot move presence from {current} to {target}")
        self.state.set(target)

    def start(self) -> None:
        self._move(PresenceState.ACTIVE)
        set_online(self._store, self.user_id)

    def hide(self) -> None:
        self._move(PresenceState.BACKGROUNDED)
        set_offline(self._store, self.user_id)

    def show(self) -> None:
        self._move(PresenceState.ACTIVE)
        set_online(self._store, self.user_id)

    def end(self) -> None:
        was_online = self.state.value == PresenceState.ACTIVE
        self._move(PresenceState.ENDED)
        if was_online:
            set_offline(self._store, self.user_id)
        logger.info("Presence session ended for %s", self.user_id)


def format_last_seen(identity: Identity, now: datetime) -> str:
    if identity.online:
        return "Online"
    if identity.last_seen_at is None:
        return "Offline"
    seconds = int((now - identity.last_seen_at).total_seconds())
    if seconds < 60:
        return "Last seen just now"
    if seconds < 3600:
        return f"Last seen {seconds // 60}m ago"
    if seconds < 86400:
        return f"Last seen {seconds // 3600}h ago"
    return f"Last seen {seconds // 86400}d ago"


__all__ = [
    "set_online",
    "set_offline",
    "PresenceState",
    "PresenceSession",
    "format_last_seen",
]
