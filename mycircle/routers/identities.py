"""Identity registration and profile routes."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status

from ..schemas import IdentityRegisterRequest, IdentityResponse, ProfileUpdateRequest, UsernameChangeRequest
from ..services import (
    change_username,
    find_identity,
    get_current_user_id,
    get_identity,
    register_identity,
    update_profile,
)
from ..store import BaseDocumentStore, get_store

router = APIRouter(prefix="/identities", tags=["identities"])


@router.post("/", response_model=IdentityResponse, status_code=status.HTTP_201_CREATED)
async def register_identity_endpoint(
    payload: IdentityRegisterRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> IdentityResponse:
    identity = register_identity(
        store,
        user_id=user_id,
        username=payload.username,
        email=str(payload.email) if payload.email else None,
        bio=payload.bio,
    )
    return IdentityResponse.from_identity(identity)


@router.get("/me", response_model=IdentityResponse)
async def get_own_identity(
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> IdentityResponse:
    return IdentityResponse.from_identity(get_identity(store, user_id))


@router.patch("/me", response_model=IdentityResponse)
async def update_own_profile(
    payload: ProfileUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> IdentityResponse:
    identity = update_profile(store, user_id, bio=payload.bio, avatar_ref=payload.avatar_ref)
    return IdentityResponse.from_identity(identity)


@router.put("/me/username", response_model=IdentityResponse)
async def change_own_username(
    payload: UsernameChangeRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> IdentityResponse:
    return IdentityResponse.from_identity(change_username(store, user_id, payload.username))


@router.get("/search", response_model=List[IdentityResponse])
async def search_identities(
    handle: str = Query(..., min_length=1, max_length=40),
    _user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> List[IdentityResponse]:
    return [IdentityResponse.from_identity(identity) for identity in find_identity(store, handle)]


@router.get("/{identity_id}", response_model=IdentityResponse)
async def get_identity_endpoint(
    identity_id: str,
    _user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> IdentityResponse:
    return IdentityResponse.from_identity(get_identity(store, identity_id))


__all__ = ["router"]
