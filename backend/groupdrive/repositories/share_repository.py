from typing import List, Optional

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from groupdrive.core.database import get_db_session
from groupdrive.core.exceptions import Conflict
from groupdrive.models.base import FileShare, FolderShare, ResourceType

# Share table and the column holding the shared item's id, per resource type
SHARE_TABLES = {
    ResourceType.FILE: (FileShare, FileShare.file_id),
    ResourceType.FOLDER: (FolderShare, FolderShare.folder_id),
}


def get_shares_db(resource_type: ResourceType, resource_id: int) -> List:
    model, id_column = SHARE_TABLES[resource_type]
    with get_db_session() as db:
        return (
            db.query(model)
            .options(joinedload(model.user))
            .filter(id_column == resource_id)
            .order_by(model.id)
            .all()
        )


def get_share_db(resource_type: ResourceType, resource_id: int, user_id: int):
    model, id_column = SHARE_TABLES[resource_type]
    with get_db_session() as db:
        return db.query(model).filter(and_(id_column == resource_id, model.user_id == user_id)).first()


def add_share_db(resource_type: ResourceType, resource_id: int, user_id: int, permission: str, shared_by_id: int):
    model, id_column = SHARE_TABLES[resource_type]
    try:
        with get_db_session() as db:
            existing = db.query(model.id).filter(and_(id_column == resource_id, model.user_id == user_id)).first()
            if existing:
                raise Conflict(f"This {resource_type.value} is already shared with the user")
            share = model(user_id=user_id, permission=permission, shared_by_id=shared_by_id)
            setattr(share, id_column.key, resource_id)
            db.add(share)
            db.flush()
            db.refresh(share)
            share.user  # load while attached; responses include the user
            return share
    except IntegrityError:
        raise Conflict(f"This {resource_type.value} is already shared with the user")


def update_share_db(resource_type: ResourceType, resource_id: int, user_id: int, permission: str) -> Optional[object]:
    model, id_column = SHARE_TABLES[resource_type]
    with get_db_session() as db:
        share = db.query(model).filter(and_(id_column == resource_id, model.user_id == user_id)).first()
        if share:
            share.permission = permission
            db.flush()
            db.refresh(share)
            share.user
        return share


def remove_share_db(resource_type: ResourceType, resource_id: int, user_id: int) -> bool:
    model, id_column = SHARE_TABLES[resource_type]
    with get_db_session() as db:
        deleted = (
            db.query(model)
            .filter(and_(id_column == resource_id, model.user_id == user_id))
            .delete(synchronize_session=False)
        )
        return deleted > 0
