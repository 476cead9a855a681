"""Messaging API routes."""
from __future__ import annotations

import asyncio
import contextlib
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.websockets import WebSocket, WebSocketDisconnect

from ..errors import CircleError, PermissionDenied, ValidationError
from ..schemas import (
    ChannelKind,
    ChannelSummary,
    Message,
    MessageResponse,
    MessageSendRequest,
    MessageThreadResponse,
    ReactionRequest,
)
from ..services import (
    decode_session_token,
    direct_channel_key,
    get_current_user_id,
    group_channel_key,
    list_messages,
    load_channel,
    on_view,
    record_view,
    seen_status,
    send_message,
    subscribe_messages,
    toggle_reaction,
)
from ..store import BaseDocumentStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


def _member_channel(store: BaseDocumentStore, channel_key: str, user_id: str) -> ChannelSummary:
    channel = load_channel(store, channel_key)
    if user_id not in channel.members:
        raise PermissionDenied("You are not a member of this conversation")
    return channel


def _to_message_response(message: Message, channel: ChannelSummary, viewer_id: str) -> MessageResponse:
    peer_id = None
    if channel.kind == ChannelKind.DIRECT:
        peer_id = next((member for member in channel.members if member != viewer_id), None)
    return MessageResponse.from_message(message, status=seen_status(message, viewer_id, channel.kind, peer_id))


@router.post("/send", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message_endpoint(
    payload: MessageSendRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> MessageResponse:
    if bool(payload.friend_id) == bool(payload.group_id):
        raise ValidationError("Provide exactly one of friend_id or group_id")
    if payload.friend_id:
        channel_key = direct_channel_key(user_id, payload.friend_id)
    else:
        channel_key = group_channel_key(payload.group_id or "")
    message = send_message(store, channel_key, user_id, payload.text, reply_to=payload.reply_to_id)
    return _to_message_response(message, load_channel(store, channel_key), user_id)


@router.get("/{channel_key}", response_model=MessageThreadResponse)
async def get_thread(
    channel_key: str,
    mark_seen: bool = Query(True),
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> MessageThreadResponse:
    channel = _member_channel(store, channel_key, user_id)
    if mark_seen:
        on_view(store, user_id, channel_key)
        record_view(store, channel_key, user_id, channel.kind)
    messages = list_messages(store, channel_key)
    return MessageThreadResponse(
        channel_key=channel_key,
        messages=[_to_message_response(message, channel, user_id) for message in messages],
    )


@router.post("/{channel_key}/{message_id}/reactions", response_model=MessageResponse)
async def toggle_reaction_endpoint(
    channel_key: str,
    message_id: str,
    payload: ReactionRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> MessageResponse:
    channel = _member_channel(store, channel_key, user_id)
    message = toggle_reaction(store, channel_key, message_id, user_id, payload.emoji)
    return _to_message_response(message, channel, user_id)


@router.websocket("/ws/{channel_key}")
async def message_thread_socket(
    websocket: WebSocket,
    channel_key: str,
    token: str = Query(..., alias="token"),
    store: BaseDocumentStore = Depends(get_store),
) -> None:
    try:
        user_id = decode_session_token(token)
        channel = _member_channel(store, channel_key, user_id)
    except (HTTPException, CircleError):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    subscription = subscribe_messages(store, channel_key)
    await websocket.accept()
    await websocket.send_json({"type": "ready", "channel_key": channel_key})

    async def _forward() -> None:
        async for message in subscription:
            response = _to_message_response(message, channel, user_id)
            await websocket.send_json({"type": "message", "message": response.model_dump(mode="json")})

    forwarder = asyncio.create_task(_forward())
    try:
        while True:
            try:
                payload = await websocket.receive_text()
            except WebSocketDisconnect:
                break
            if payload.strip().lower() == "ping":
                await websocket.send_json({"type": "pong", "channel_key": channel_key})
    finally:
        subscription.close()
        forwarder.cancel()
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            await forwarder
        logger.debug("Message socket for %s closed", channel_key)


__all__ = ["router"]
