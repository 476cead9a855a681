"""Group conversation routes."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Response, status

from ..errors import NotFoundError
from ..schemas import GroupCreateRequest, GroupInviteRequest, GroupRenameRequest, GroupResponse
from ..services import (
    add_members,
    create_group,
    delete_group,
    get_current_user_id,
    get_group,
    is_visible_to,
    list_groups,
    remove_member,
    rename_group,
)
from ..store import BaseDocumentStore, get_store

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("/", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group_endpoint(
    payload: GroupCreateRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> GroupResponse:
    group = create_group(store, name=payload.name, founder_id=user_id, initial_members=payload.members)
    return GroupResponse.from_group(group)


@router.get("/", response_model=List[GroupResponse])
async def list_groups_endpoint(
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> List[GroupResponse]:
    return [GroupResponse.from_group(group) for group in list_groups(store, user_id)]


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group_endpoint(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> GroupResponse:
    group = get_group(store, group_id)
    if not is_visible_to(group, user_id):
        raise NotFoundError("Group not found")
    return GroupResponse.from_group(group)


@router.patch("/{group_id}", response_model=GroupResponse)
async def rename_group_endpoint(
    group_id: str,
    payload: GroupRenameRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> GroupResponse:
    return GroupResponse.from_group(rename_group(store, group_id, user_id, payload.name))


@router.post("/{group_id}/members", response_model=GroupResponse)
async def add_members_endpoint(
    group_id: str,
    payload: GroupInviteRequest,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> GroupResponse:
    return GroupResponse.from_group(add_members(store, group_id, user_id, payload.members))


@router.delete("/{group_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member_endpoint(
    group_id: str,
    member_id: str,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> Response:
    remove_member(store, group_id, user_id, member_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_group_endpoint(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    store: BaseDocumentStore = Depends(get_store),
) -> Response:
    delete_group(store, group_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
