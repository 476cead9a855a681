"""Verification of session tokens issued by the external identity provider."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..config import get_settings

logger = logging.getLogger(__name__)

_security = HTTPBearer(auto_error=False)

DEFAULT_TOKEN_MINUTES = 1440


def _get_token_secret() -> str:
    secret = get_settings().session_token_secret
    if not secret:
        raise RuntimeError("SESSION_TOKEN_SECRET is not configured")
    return secret


def create_session_token(user_id: str, *, expires_minutes: int | None = None) -> str:
    """Sign a token for ``user_id`` the way the identity provider does."""

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes or DEFAULT_TOKEN_MINUTES),
    }
    return jwt.encode(payload, _get_token_secret(), algorithm=get_settings().session_token_algorithm)


def decode_session_token(token: str) -> str:
    """Return the user id carried by a valid token."""

    try:
        payload = jwt.decode(token, _get_token_secret(), algorithms=[get_settings().session_token_algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject or not isinstance(subject, str):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return subject


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_security),
) -> str:
    """Resolve the caller's identity id from the bearer token."""

    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return decode_session_token(credentials.credentials)


__all__ = ["create_session_token", "decode_session_token", "get_current_user_id"]
