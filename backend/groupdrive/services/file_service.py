import base64
import binascii
import logging
from typing import Iterator, Optional, Tuple

from groupdrive.core.exceptions import NotFound, StorageIOError, ValidationError
from groupdrive.models.base import File, Folder, Permission, ResourceType, User
from groupdrive.repositories.blob_repository import get_blob_storage
from groupdrive.repositories.file_repository import (
    create_folder,
    delete_file_from_db,
    delete_folder,
    get_file_by_id,
    get_files_by_parent,
    get_folder_by_id,
    get_folders_by_parent,
    get_personal_files_by_parent,
    get_personal_folders_by_parent,
    rename_file,
    rename_folder,
)
from groupdrive.repositories.group_repository import get_group_by_id_db
from groupdrive.schemas.file_schemas import FolderCreate, PersonalFolderCreate
from groupdrive.services.permission_service import require_access, require_group_access
from groupdrive.services.public_link_service import PublicLinkIssuer
from groupdrive.services.upload_service import ChunkResult, ChunkUploadCoordinator, UploadComplete

logger = logging.getLogger(__name__)


def get_folder_or_404(folder_id: int) -> Folder:
    folder = get_folder_by_id(folder_id)
    if not folder:
        raise NotFound("Folder not found")
    return folder


def get_file_or_404(file_id: int) -> File:
    db_file = get_file_by_id(file_id)
    if not db_file:
        raise NotFound("File not found")
    return db_file


def _require_group(group_id: int) -> None:
    if get_group_by_id_db(group_id) is None:
        raise NotFound("Group not found")


def _check_parent(user: User, parent_id: Optional[int], group_id: Optional[int], required: Permission) -> None:
    """The parent folder must exist, sit in the same namespace and be reachable by the user."""
    if parent_id is None:
        return
    parent = get_folder_or_404(parent_id)
    if parent.group_id != group_id:
        if group_id is None:
            raise ValidationError("Parent folder is not a personal folder")
        raise ValidationError("Parent folder does not belong to the specified group")
    require_access(user, parent, required, "folder")


# --- Listings ---
def list_personal_contents_service(parent_id: Optional[int], current_user: User) -> dict:
    _check_parent(current_user, parent_id, None, Permission.VIEW)
    return {
        "files": get_personal_files_by_parent(parent_id, current_user.id),
        "folders": get_personal_folders_by_parent(parent_id, current_user.id),
        "permission": Permission.EDIT,
    }


def list_group_contents_service(group_id: int, parent_id: Optional[int], current_user: User) -> dict:
    _require_group(group_id)
    level = require_group_access(current_user, group_id, Permission.VIEW, "view this group")
    _check_parent(current_user, parent_id, group_id, Permission.VIEW)
    return {
        "files": get_files_by_parent(parent_id, group_id),
        "folders": get_folders_by_parent(parent_id, group_id),
        "permission": Permission(level.value),
    }


# --- Folders ---
def create_personal_folder_service(folder_data: PersonalFolderCreate, current_user: User) -> Folder:
    _check_parent(current_user, folder_data.parent_id, None, Permission.EDIT)
    folder = create_folder(folder_data.name, folder_data.parent_id, None, current_user.id)
    logger.info("User %s created personal folder %s", current_user.id, folder.id)
    return folder


def create_group_folder_service(folder_data: FolderCreate, current_user: User) -> Folder:
    if folder_data.group_id is None:
        raise ValidationError(
            "Group is required", errors=[{"field": "group_id", "message": "required for group folders"}]
        )
    _require_group(folder_data.group_id)
    require_group_access(current_user, folder_data.group_id, Permission.EDIT, "create folders")
    _check_parent(current_user, folder_data.parent_id, folder_data.group_id, Permission.EDIT)
    folder = create_folder(folder_data.name, folder_data.parent_id, folder_data.group_id, current_user.id)
    logger.info("User %s created folder %s in group %s", current_user.id, folder.id, folder.group_id)
    return folder


def rename_folder_service(folder_id: int, name: str, current_user: User) -> Folder:
    folder = get_folder_or_404(folder_id)
    require_access(current_user, folder, Permission.EDIT, "folder", "rename folders")
    return rename_folder(folder_id, name)


def delete_folder_service(folder_id: int, current_user: User, link_issuer: PublicLinkIssuer) -> None:
    folder = get_folder_or_404(folder_id)
    require_access(current_user, folder, Permission.EDIT, "folder", "delete folders")
    delete_folder(folder_id)
    link_issuer.disable(folder_id, ResourceType.FOLDER)
    logger.info("User %s deleted folder %s", current_user.id, folder_id)


# --- Uploads ---
def decode_upload_data(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Invalid base64 data", errors=[{"field": "data", "message": "not valid base64"}])


def check_upload_target(current_user: User, group_id: Optional[int], parent_id: Optional[int]) -> None:
    if group_id is not None:
        _require_group(group_id)
        require_group_access(current_user, group_id, Permission.EDIT, "upload files")
    _check_parent(current_user, parent_id, group_id, Permission.EDIT)


def upload_file_service(
    coordinator: ChunkUploadCoordinator,
    current_user: User,
    *,
    name: str,
    mime_type: str,
    data: bytes,
    group_id: Optional[int] = None,
    parent_id: Optional[int] = None,
    chunk_index: Optional[int] = None,
    total_chunks: Optional[int] = None,
) -> ChunkResult:
    """Stores a whole file, or one chunk of it when ``total_chunks`` is given."""
    check_upload_target(current_user, group_id, parent_id)

    if total_chunks is None:
        if chunk_index not in (None, 0):
            raise ValidationError(
                "Total chunk count is required", errors=[{"field": "total_chunks", "message": "required"}]
            )
        db_file = coordinator.store_single(
            uploader_id=current_user.id,
            group_id=group_id,
            parent_id=parent_id,
            file_name=name,
            mime_type=mime_type,
            data=data,
        )
        logger.info("User %s uploaded file %s (%d bytes)", current_user.id, db_file.id, db_file.size)
        return UploadComplete(file=db_file)

    return coordinator.receive_chunk(
        uploader_id=current_user.id,
        group_id=group_id,
        parent_id=parent_id,
        file_name=name,
        mime_type=mime_type,
        chunk_index=chunk_index if chunk_index is not None else 0,
        total_chunks=total_chunks,
        data=data,
    )


# --- Files ---
def rename_file_service(file_id: int, name: str, current_user: User) -> File:
    db_file = get_file_or_404(file_id)
    require_access(current_user, db_file, Permission.EDIT, "file", "rename files")
    return rename_file(file_id, name)


def delete_file_service(file_id: int, current_user: User, link_issuer: PublicLinkIssuer) -> None:
    db_file = get_file_or_404(file_id)
    require_access(current_user, db_file, Permission.EDIT, "file", "delete files")
    delete_file_from_db(file_id)
    link_issuer.disable(file_id, ResourceType.FILE)
    try:
        get_blob_storage().delete(db_file.path)
    except StorageIOError as e:
        logger.warning("Deleted file %s but its bytes at %s remain: %s", file_id, db_file.path, e)
    logger.info("User %s deleted file %s", current_user.id, file_id)


def download_file_service(file_id: int, current_user: User) -> Tuple[File, Iterator[bytes]]:
    db_file = get_file_or_404(file_id)
    require_access(current_user, db_file, Permission.VIEW, "file")
    return db_file, get_blob_storage().open_stream(db_file.path)
