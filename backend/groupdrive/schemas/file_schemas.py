from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, StringConstraints

from groupdrive.models.base import Permission

ItemName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


class NameUpdate(BaseModel):
    name: ItemName


# --- Folders ---
class PersonalFolderCreate(BaseModel):
    name: ItemName
    parent_id: Optional[int] = None


class FolderCreate(PersonalFolderCreate):
    group_id: Optional[int]


class FolderResponse(BaseModel):
    id: int
    name: str
    parent_id: Optional[int]
    group_id: Optional[int]
    created_by_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Files ---
class FileCreate(BaseModel):
    name: str
    type: str
    size: int
    path: str
    parent_id: Optional[int] = None
    group_id: Optional[int] = None
    uploaded_by_id: int

    class Config:
        from_attributes = True


class FileResponse(BaseModel):
    id: int
    name: str
    type: str
    size: int
    parent_id: Optional[int] = None
    group_id: Optional[int] = None
    uploaded_by_id: int
    is_public: bool = False
    uploaded_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DirectoryListing(BaseModel):
    files: List[FileResponse]
    folders: List[FolderResponse]
    permission: Permission


# --- Uploads ---
class FileUploadRequest(BaseModel):
    """JSON upload body; ``data`` is base64 encoded."""

    name: ItemName
    type: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
    data: str = Field(min_length=1)
    parent_id: Optional[int] = None
    group_id: Optional[int] = None
    chunk_index: Optional[int] = Field(default=None, ge=0)
    total_chunks: Optional[int] = Field(default=None, ge=1)


class ChunkAckResponse(BaseModel):
    message: str = "Chunk received"
    chunk_index: int
    received_chunks: List[int]
    total_chunks: int
    initialized: bool = True
