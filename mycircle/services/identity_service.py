"""Identity registration, tag allocation and profile maintenance."""
from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Callable, Sequence

from ..config import get_settings
from ..constants import (
    BIO_MAX_LENGTH,
    DEFAULT_AVATAR_URL,
    HANDLES,
    HANDLE_SEPARATOR,
    TAG_ALPHABET,
    TAG_LENGTH,
    USERNAME_MAX_LENGTH,
    USERNAME_MIN_LENGTH,
    USERS,
)
from ..errors import (
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    TagExhausted,
    UsernameCooldownError,
    UsernameTakenError,
    UsernameTooLongError,
    UsernameTooShortError,
    ValidationError,
)
from ..schemas import Identity
from ..store import SERVER_TIMESTAMP, BaseDocumentStore, Query
from .channel_service import check_identity_id

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

Chooser = Callable[[Sequence[str]], str]


def normalize_username(raw: str) -> str:
    """Strip all whitespace and enforce the length bounds."""

    username = _WHITESPACE.sub("", raw or "")
    if len(username) < USERNAME_MIN_LENGTH:
        raise UsernameTooShortError(f"Username must be at least {USERNAME_MIN_LENGTH} characters")
    if len(username) > USERNAME_MAX_LENGTH:
        raise UsernameTooLongError(f"Username must be at most {USERNAME_MAX_LENGTH} characters")
    return username


def handle_key(username_lower: str, tag: str) -> str:
    return f"{username_lower}{HANDLE_SEPARATOR}{tag}"


def default_avatar(username: str) -> str:
    return DEFAULT_AVATAR_URL.format(seed=username)


def format_handle(identity: Identity) -> str:
    return identity.handle


def _tag_in_use(store: BaseDocumentStore, username_lower: str, tag: str) -> bool:
    query = Query(USERS).where("usernameLower", "==", username_lower).where("tag", "==", tag).limit(1)
    return bool(store.query(query))


def allocate_tag(
    store: BaseDocumentStore,
    username_lower: str,
    *,
    owner_id: str,
    choose: Chooser = secrets.choice,
    max_attempts: int | None = None,
) -> str:
    """Claim a free ``(username_lower, tag)`` pair for ``owner_id``.

    Each attempt draws a random tag, checks that no identity already uses it and
    then commits by creating the ``handles`` entry. The create is conditional,
    so two concurrent allocators that both saw the tag as free cannot both
    commit it: the loser counts the attempt as failed and draws again.

    Raises:
        TagExhausted: when every attempt collided.
    """

    attempts = max_attempts or get_settings().tag_max_attempts
    for attempt in range(1, attempts + 1):
        tag = "".join(choose(TAG_ALPHABET) for _ in range(TAG_LENGTH))
        if _tag_in_use(store, username_lower, tag):
            logger.warning("Tag collision for %s (attempt %d/%d)", username_lower, attempt, attempts)
            continue
        try:
            store.create(HANDLES, handle_key(username_lower, tag), {"ownerId": owner_id, "claimedAt": SERVER_TIMESTAMP})
        except AlreadyExistsError:
            logger.warning("Lost tag race for %s (attempt %d/%d)", username_lower, attempt, attempts)
            continue
        return tag
    raise TagExhausted(f"No free tag found for '{username_lower}' after {attempts} attempts")


def register_identity(
    store: BaseDocumentStore,
    *,
    user_id: str,
    username: str,
    email: str | None = None,
    bio: str | None = None,
    choose: Chooser = secrets.choice,
) -> Identity:
    """Create the identity document for an authenticated account."""

    check_identity_id(user_id)
    clean_username = normalize_username(username)
    if store.get(USERS, user_id) is not None:
        raise ConflictError("Identity already registered")

    username_lower = clean_username.lower()
    tag = allocate_tag(store, username_lower, owner_id=user_id, choose=choose)
    store.write(
        USERS,
        user_id,
        {
            "username": clean_username,
            "usernameLower": username_lower,
            "tag": tag,
            "email": email,
            "avatarRef": default_avatar(clean_username),
            "bio": (bio or "").strip()[:BIO_MAX_LENGTH],
            "createdAt": SERVER_TIMESTAMP,
            "lastUsernameChangeAt": None,
            "online": True,
            "lastSeenAt": None,
            "friends": [],
            "removedFriends": [],
        },
        merge=False,
    )
    logger.info("Registered identity %s as %s#%s", user_id, clean_username, tag)
    return get_identity(store, user_id)


def get_identity(store: BaseDocumentStore, user_id: str) -> Identity:
    snapshot = store.get(USERS, user_id)
    if snapshot is None:
        raise NotFoundError("Identity not found")
    return Identity.from_snapshot(snapshot)


def find_identity(store: BaseDocumentStore, handle: str) -> list[Identity]:
    """Look identities up by ``name#TAG`` or, without a tag, by username alone."""

    candidate = _WHITESPACE.sub("", handle or "")
    if not candidate:
        return []
    name, _, tag = candidate.partition(HANDLE_SEPARATOR)
    query = Query(USERS).where("usernameLower", "==", name.lower())
    if tag:
        query = query.where("tag", "==", tag.upper())
    return [Identity.from_snapshot(snapshot) for snapshot in store.query(query.order_by("tag"))]


def change_username(
    store: BaseDocumentStore,
    user_id: str,
    new_username: str,
    *,
    now: datetime | None = None,
) -> Identity:
    """Rename an identity, keeping its tag.

    Renames are limited to one per cooldown window (seven days by default).
    """

    identity = get_identity(store, user_id)
    clean_username = normalize_username(new_username)
    current = now or store.now()
    cooldown = timedelta(days=get_settings().username_change_cooldown_days)
    if identity.last_username_change_at is not None and current - identity.last_username_change_at < cooldown:
        available_at = identity.last_username_change_at + cooldown
        raise UsernameCooldownError(f"Username can be changed again after {available_at.isoformat()}")

    new_lower = clean_username.lower()
    if new_lower != identity.username_lower:
        if _tag_in_use(store, new_lower, identity.tag):
            raise UsernameTakenError("Username already taken")
        try:
            store.create(HANDLES, handle_key(new_lower, identity.tag), {"ownerId": user_id, "claimedAt": SERVER_TIMESTAMP})
        except AlreadyExistsError as exc:
            raise UsernameTakenError("Username already taken") from exc
        store.delete(HANDLES, handle_key(identity.username_lower, identity.tag))

    store.write(
        USERS,
        user_id,
        {"username": clean_username, "usernameLower": new_lower, "lastUsernameChangeAt": current},
    )
    logger.info("Identity %s renamed to %s#%s", user_id, clean_username, identity.tag)
    return get_identity(store, user_id)


def update_profile(
    store: BaseDocumentStore,
    user_id: str,
    *,
    bio: str | None = None,
    avatar_ref: str | None = None,
) -> Identity:
    """Apply profile updates; ``None`` leaves a field untouched."""

    get_identity(store, user_id)
    patch: dict[str, object] = {}
    if bio is not None:
        patch["bio"] = bio.strip()[:BIO_MAX_LENGTH]
    if avatar_ref is not None:
        # An empty avatar falls back to the generated one instead of clearing it.
        patch["avatarRef"] = avatar_ref.strip() or default_avatar(get_identity(store, user_id).username)
    if not patch:
        raise ValidationError("No changes provided")
    store.write(USERS, user_id, patch)
    return get_identity(store, user_id)


__all__ = [
    "normalize_username",
    "handle_key",
    "default_avatar",
    "format_handle",
    "allocate_tag",
    "register_identity",
    "get_identity",
    "find_identity",
    "change_username",
    "update_profile",
]
