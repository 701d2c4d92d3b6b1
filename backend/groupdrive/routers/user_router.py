from typing import List

from fastapi import APIRouter, Depends

from groupdrive.core.security import get_current_user
from groupdrive.models.base import User
from groupdrive.schemas.group_schemas import GroupResponse
from groupdrive.schemas.user_schemas import UserResponse, UserRoleUpdate
from groupdrive.services.user_service import (
    admin_list_groups_service,
    admin_list_users_service,
    list_users_service,
    update_user_role_service,
)

router = APIRouter(prefix="/users", tags=["Users"])
admin_router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/", response_model=List[UserResponse])
def list_users(current_user: User = Depends(get_current_user)):
    return [UserResponse.model_validate(user.to_response_dict()) for user in list_users_service(current_user)]


@admin_router.get("/users", response_model=List[UserResponse])
def admin_list_users(current_user: User = Depends(get_current_user)):
    return [UserResponse.model_validate(user.to_response_dict()) for user in admin_list_users_service(current_user)]


@admin_router.get("/groups", response_model=List[GroupResponse])
def admin_list_groups(current_user: User = Depends(get_current_user)):
    return admin_list_groups_service(current_user)


@admin_router.put("/users/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: int,
    role_data: UserRoleUpdate,
    current_user: User = Depends(get_current_user),
):
    """SuperAdmin only. Nobody can change their own role."""
    user = update_user_role_service(user_id, role_data.role, current_user)
    return UserResponse.model_validate(user.to_response_dict())
