"""Sidebar conversation list routes."""
from __future__ import annotations

from typing import Dict, List

from fastapi import APIRouter, Depends

from ..schemas import ConversationEntry
from ..services import build_sidebar, get_current_user_id, get_identity, unread_counts
from ..store import BaseDocumentStore, get_store

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("/", response_model=List[ConversationEntry])
async def list_conversations(
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> List[ConversationEntry]:
    get_identity(store, user_id)
    return build_sidebar(store, user_id)


@router.get("/unread", response_model=Dict[str, int])
async def list_unread_counts(
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> Dict[str, int]:
    return unread_counts(store, user_id)


__all__ = ["router"]
