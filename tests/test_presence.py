"""Presence session transitions."""
from __future__ import annotations

from datetime import timedelta

import pytest

from mycircle.errors import ValidationError
from mycircle.services import PresenceSession, PresenceState, format_last_seen, get_identity, set_offline


def test_session_lifecycle_updates_identity(store, identity_factory):
    identity_factory("alice", user_id="a")
    session = PresenceSession(store, "a")
    states: list[PresenceState] = []
    session.state.subscribe(states.append)

    session.start()
    assert get_identity(store, "a").online is True

    session.hide()
    hidden = get_identity(store, "a")
    assert hidden.online is False
    assert hidden.last_seen_at is not None

    session.show()
    assert get_identity(store, "a").online is True

    session.end()
    ended = get_identity(store, "a")
    assert ended.online is False
    assert ended.last_seen_at > hidden.last_seen_at
    assert states == [
        PresenceState.STARTING,
        PresenceState.ACTIVE,
        PresenceState.BACKGROUNDED,
        PresenceState.ACTIVE,
        PresenceState.ENDED,
    ]


@pytest.mark.parametrize("steps", [["hide"], ["start", "start"], ["start", "end", "show"], ["end", "end"]])
def test_invalid_transitions_raise(store, identity_factory, steps):
    identity_factory("alice", user_id="a")
    session = PresenceSession(store, "a")

    with pytest.raises(ValidationError):
        for step in steps:
            getattr(session, step)()


def test_abandoned_session_stays_online(store, identity_factory):
    identity_factory("alice", user_id="a")
    PresenceSession(store, "a").start()

    # No signal arrives when the client dies; the identity keeps its last state.
    assert get_identity(store, "a").online is True


def test_format_last_seen(store, identity_factory):
    identity_factory("alice", user_id="a")
    now = store.now()
    assert format_last_seen(get_identity(store, "a"), now) == "Online"

    set_offline(store, "a", last_seen_at=now - timedelta(minutes=5))
    identity = get_identity(store, "a")
    assert format_last_seen(identity, now) == "Last seen 5m ago"
    assert format_last_seen(identity, now + timedelta(hours=3)) == "Last seen 3h ago"
    assert format_last_seen(identity, now + timedelta(days=2)) == "Last seen 2d ago"
    assert format_last_seen(identity, now - timedelta(minutes=4, seconds=30)) == "Last seen just now"
