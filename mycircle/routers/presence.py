"""Presence routes driven by client lifecycle signals."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..schemas import PresenceResponse
from ..services import format_last_seen, get_current_user_id, get_identity, set_offline, set_online
from ..store import BaseDocumentStore, get_store

router = APIRouter(prefix="/presence", tags=["presence"])


@router.post("/online", status_code=status.HTTP_204_NO_CONTENT)
async def mark_online(
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> Response:
    set_online(store, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/offline", status_code=status.HTTP_204_NO_CONTENT)
async def mark_offline(
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> Response:
    set_offline(store, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{identity_id}", response_model=PresenceResponse)
async def get_presence(
    identity_id: str,
    _user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> PresenceResponse:
    identity = get_identity(store, identity_id)
    return PresenceResponse(
        id=identity.id,
        online=identity.online,
        last_seen_at=identity.last_seen_at,
        label=format_last_seen(identity, store.now()),
    )


__all__ = ["router"]
