from typing import List, Optional

from sqlalchemy import and_

from groupdrive.core.database import get_db_session
from groupdrive.core.exceptions import Conflict, NotFound, ValidationError
from groupdrive.models.base import File, FileShare, Folder, FolderShare, PublicLink, ResourceType
from groupdrive.schemas.file_schemas import FileCreate


def _check_parent_group(db, parent_id: Optional[int], group_id: Optional[int]) -> None:
    """A child must live in the same group as its parent (both None for personal items)."""
    if parent_id is None:
        return
    parent = db.query(Folder).filter(Folder.id == parent_id).first()
    if not parent:
        raise NotFound("Parent folder not found")
    if parent.group_id != group_id:
        raise ValidationError("Parent folder does not belong to the specified group")


# --- Folders ---
def get_folder_by_id(folder_id: int) -> Optional[Folder]:
    with get_db_session() as db:
        return db.query(Folder).filter(Folder.id == folder_id).first()


def create_folder(name: str, parent_id: Optional[int], group_id: Optional[int], created_by_id: int) -> Folder:
    with get_db_session() as db:
        _check_parent_group(db, parent_id, group_id)
        folder = Folder(name=name, parent_id=parent_id, group_id=group_id, created_by_id=created_by_id)
        db.add(folder)
        db.flush()
        db.refresh(folder)
        return folder


def rename_folder(folder_id: int, name: str) -> Optional[Folder]:
    with get_db_session() as db:
        folder = db.query(Folder).filter(Folder.id == folder_id).first()
        if folder:
            folder.name = name
            db.flush()
            db.refresh(folder)
        return folder


def delete_folder(folder_id: int) -> None:
    """Deletes an empty folder. Contents are never removed implicitly."""
    with get_db_session() as db:
        has_folders = db.query(Folder.id).filter(Folder.parent_id == folder_id).first() is not None
        has_files = db.query(File.id).filter(File.parent_id == folder_id).first() is not None
        if has_folders or has_files:
            raise Conflict("Folder is not empty")
        db.query(FolderShare).filter(FolderShare.folder_id == folder_id).delete(synchronize_session=False)
        db.query(PublicLink).filter(
            and_(PublicLink.resource_type == ResourceType.FOLDER.value, PublicLink.resource_id == folder_id)
        ).delete(synchronize_session=False)
        db.query(Folder).filter(Folder.id == folder_id).delete(synchronize_session=False)


def get_folders_by_parent(parent_id: Optional[int], group_id: int) -> List[Folder]:
    with get_db_session() as db:
        if parent_id is None:
            query = db.query(Folder).filter(and_(Folder.parent_id.is_(None), Folder.group_id == group_id))
        else:
            query = db.query(Folder).filter(and_(Folder.parent_id == parent_id, Folder.group_id == group_id))
        return query.order_by(Folder.name).all()


def get_personal_folders_by_parent(parent_id: Optional[int], owner_id: int) -> List[Folder]:
    with get_db_session() as db:
        if parent_id is None:
            query = db.query(Folder).filter(
                and_(Folder.parent_id.is_(None), Folder.group_id.is_(None), Folder.created_by_id == owner_id)
            )
        else:
            query = db.query(Folder).filter(
                and_(Folder.parent_id == parent_id, Folder.group_id.is_(None), Folder.created_by_id == owner_id)
            )
        return query.order_by(Folder.name).all()


# --- Files ---
def get_file_by_id(file_id: int) -> Optional[File]:
    with get_db_session() as db:
        return db.query(File).filter(File.id == file_id).first()


def create_file(file_data: FileCreate) -> File:
    with get_db_session() as db:
        _check_parent_group(db, file_data.parent_id, file_data.group_id)
        db_file = File(**file_data.model_dump())
        db.add(db_file)
        db.flush()
        db.refresh(db_file)
        return db_file


def rename_file(file_id: int, name: str) -> Optional[File]:
    with get_db_session() as db:
        db_file = db.query(File).filter(File.id == file_id).first()
        if db_file:
            db_file.name = name
            db.flush()
            db.refresh(db_file)
        return db_file


def delete_file_from_db(file_id: int) -> None:
    """Deletes the file record together with its shares and public link."""
    with get_db_session() as db:
        db.query(FileShare).filter(FileShare.file_id == file_id).delete(synchronize_session=False)
        db.query(PublicLink).filter(
            and_(PublicLink.resource_type == ResourceType.FILE.value, PublicLink.resource_id == file_id)
        ).delete(synchronize_session=False)
        db.query(File).filter(File.id == file_id).delete(synchronize_session=False)


def set_file_public_access(file_id: int, is_public: bool, token: Optional[str] = None) -> Optional[File]:
    with get_db_session() as db:
        db_file = db.query(File).filter(File.id == file_id).first()
        if db_file:
            db_file.is_public = is_public
            db_file.public_token = token if is_public else None
            db.flush()
            db.refresh(db_file)
        return db_file


def get_files_by_parent(parent_id: Optional[int], group_id: int) -> List[File]:
    with get_db_session() as db:
        if parent_id is None:
            query = db.query(File).filter(and_(File.parent_id.is_(None), File.group_id == group_id))
        else:
            query = db.query(File).filter(and_(File.parent_id == parent_id, File.group_id == group_id))
        return query.order_by(File.name).all()


def get_personal_files_by_parent(parent_id: Optional[int], owner_id: int) -> List[File]:
    with get_db_session() as db:
        if parent_id is None:
            query = db.query(File).filter(
                and_(File.parent_id.is_(None), File.group_id.is_(None), File.uploaded_by_id == owner_id)
            )
        else:
            query = db.query(File).filter(
                and_(File.parent_id == parent_id, File.group_id.is_(None), File.uploaded_by_id == owner_id)
            )
        return query.order_by(File.name).all()


def get_files_in_folder(folder_id: int) -> List[File]:
    with get_db_session() as db:
        return db.query(File).filter(File.parent_id == folder_id).order_by(File.name).all()


def get_subfolders(folder_id: int) -> List[Folder]:
    with get_db_session() as db:
        return db.query(Folder).filter(Folder.parent_id == folder_id).order_by(Folder.name).all()
