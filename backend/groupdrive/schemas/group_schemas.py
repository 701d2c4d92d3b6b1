from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, StringConstraints

from groupdrive.models.base import Permission
from groupdrive.schemas.user_schemas import UserResponse

GroupName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


# --- Groups ---
class GroupCreate(BaseModel):
    name: GroupName


class GroupUpdate(GroupCreate):
    pass


class GroupResponse(BaseModel):
    id: int
    name: str
    created_by_id: Optional[int]
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Memberships ---
class MembershipAdd(BaseModel):
    user_id: int
    permission: Permission


class MembershipUpdate(BaseModel):
    permission: Permission


class MembershipResponse(BaseModel):
    id: int
    user_id: int
    group_id: int
    permission: Permission
    added_by_id: Optional[int]
    added_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GroupMemberResponse(MembershipResponse):
    user: UserResponse


class UserGroupResponse(MembershipResponse):
    group: GroupResponse


class GroupDetailResponse(BaseModel):
    group: GroupResponse
    members: List[GroupMemberResponse]
    user_permission: Permission
