from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from groupdrive.models.base import Permission
from groupdrive.schemas.file_schemas import FileResponse, FolderResponse
from groupdrive.schemas.user_schemas import UserResponse


class ShareCreate(BaseModel):
    user_id: int
    permission: Permission


class ShareUpdate(BaseModel):
    permission: Permission


class ShareResponse(BaseModel):
    id: int
    user_id: int
    permission: Permission
    shared_by_id: int
    shared_at: Optional[datetime] = None
    file_id: Optional[int] = None
    folder_id: Optional[int] = None
    user: Optional[UserResponse] = None

    class Config:
        from_attributes = True


class ShareListResponse(BaseModel):
    is_public: bool
    public_link: Optional[str] = None
    users: List[ShareResponse]


class PublicAccessUpdate(BaseModel):
    is_public: bool


class PublicAccessResponse(BaseModel):
    is_public: bool
    public_link: Optional[str] = None


class PublicFolderListing(BaseModel):
    folder: FolderResponse
    files: List[FileResponse]
    folders: List[FolderResponse]
