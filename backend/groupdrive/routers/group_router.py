from typing import List

from fastapi import APIRouter, Depends, Response, status

from groupdrive.core.security import get_current_user
from groupdrive.models.base import User
from groupdrive.schemas.group_schemas import (
    GroupCreate,
    GroupDetailResponse,
    GroupResponse,
    GroupUpdate,
    MembershipAdd,
    MembershipResponse,
    MembershipUpdate,
    UserGroupResponse,
)
from groupdrive.services.group_service import (
    add_member_service,
    create_group_service,
    delete_group_service,
    get_group_details_service,
    get_user_groups_service,
    remove_member_service,
    update_group_service,
    update_member_service,
)

router = APIRouter(prefix="/groups", tags=["Groups"])


@router.get("/", response_model=List[UserGroupResponse])
def list_user_groups(current_user: User = Depends(get_current_user)):
    """Groups the caller is a member of, with the caller's permission in each."""
    return get_user_groups_service(current_user)


@router.post("/", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
def create_group(
    group_data: GroupCreate,
    current_user: User = Depends(get_current_user),
):
    return create_group_service(group_data, current_user)


@router.get("/{group_id}", response_model=GroupDetailResponse)
def get_group(
    group_id: int,
    current_user: User = Depends(get_current_user),
):
    return get_group_details_service(group_id, current_user)


@router.put("/{group_id}", response_model=GroupResponse)
def update_group(
    group_id: int,
    group_data: GroupUpdate,
    current_user: User = Depends(get_current_user),
):
    return update_group_service(group_id, group_data, current_user)


@router.delete("/{group_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_group(
    group_id: int,
    current_user: User = Depends(get_current_user),
):
    delete_group_service(group_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{group_id}/members", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
def add_member(
    group_id: int,
    member_data: MembershipAdd,
    current_user: User = Depends(get_current_user),
):
    return add_member_service(group_id, member_data, current_user)


@router.put("/{group_id}/members/{user_id}", response_model=MembershipResponse)
def update_member(
    group_id: int,
    user_id: int,
    member_data: MembershipUpdate,
    current_user: User = Depends(get_current_user),
):
    return update_member_service(group_id, user_id, member_data, current_user)


@router.delete("/{group_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    group_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
):
    remove_member_service(group_id, user_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
