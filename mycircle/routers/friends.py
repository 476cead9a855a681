"""Friend graph routes."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Response, status

from ..errors import NotFoundError, ValidationError
from ..schemas import FriendAddRequest, FriendEdge, FriendSummary, Identity, NicknameRequest
from ..services import (
    add_friend,
    direct_channel_key,
    display_name,
    find_identity,
    get_current_user_id,
    get_identity,
    list_friends,
    remove_friend,
    set_nickname,
)
from ..store import BaseDocumentStore, get_store

router = APIRouter(prefix="/friends", tags=["friends"])


def _friend_summary(viewer_id: str, edge: FriendEdge, friend: Identity) -> FriendSummary:
    return FriendSummary(
        id=friend.id,
        handle=friend.handle,
        nickname=edge.nickname,
        display_name=display_name(edge, friend),
        avatar_ref=friend.avatar_ref,
        online=friend.online,
        channel_key=direct_channel_key(viewer_id, friend.id),
    )


@router.get("/", response_model=List[FriendSummary])
async def list_friends_endpoint(
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> List[FriendSummary]:
    return [_friend_summary(user_id, edge, friend) for edge, friend in list_friends(store, user_id)]


@router.post("/", response_model=FriendSummary, status_code=status.HTTP_201_CREATED)
async def add_friend_endpoint(
    payload: FriendAddRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> FriendSummary:
    matches = find_identity(store, payload.handle)
    if not matches:
        raise NotFoundError("No identity with that handle")
    if len(matches) > 1:
        raise ValidationError("Several identities share that username; include the tag")
    peer = matches[0]
    edge = add_friend(store, user_id, peer.id)
    return _friend_summary(user_id, edge, get_identity(store, peer.id))


@router.delete("/{peer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_friend_endpoint(
    peer_id: str,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> Response:
    remove_friend(store, user_id, peer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{peer_id}/nickname", response_model=FriendSummary)
async def set_nickname_endpoint(
    peer_id: str,
    payload: NicknameRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> FriendSummary:
    edge = set_nickname(store, user_id, peer_id, payload.nickname)
    return _friend_summary(user_id, edge, get_identity(store, peer_id))


__all__ = ["router"]
