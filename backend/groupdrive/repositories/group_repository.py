from typing import List, Optional

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from groupdrive.core.database import get_db_session
from groupdrive.core.exceptions import Conflict
from groupdrive.models.base import (
    File,
    FileShare,
    Folder,
    FolderShare,
    Group,
    GroupMembership,
    Permission,
    PublicLink,
    ResourceType,
)


def create_group_with_creator_db(name: str, creator_id: int) -> Group:
    """Creates the group and the creator's Edit membership in one transaction."""
    with get_db_session() as db:
        group = Group(name=name, created_by_id=creator_id)
        db.add(group)
        db.flush()
        db.add(
            GroupMembership(
                user_id=creator_id,
                group_id=group.id,
                permission=Permission.EDIT.value,
                added_by_id=creator_id,
            )
        )
        db.flush()
        db.refresh(group)
        return group


def get_group_by_id_db(group_id: int) -> Optional[Group]:
    with get_db_session() as db:
        return db.query(Group).filter(Group.id == group_id).first()


def get_all_groups_db() -> List[Group]:
    with get_db_session() as db:
        return db.query(Group).order_by(Group.id).all()


def update_group_db(group_id: int, name: str) -> Optional[Group]:
    with get_db_session() as db:
        group = db.query(Group).filter(Group.id == group_id).first()
        if group:
            group.name = name
            db.flush()
            db.refresh(group)
        return group


def delete_group_db(group_id: int) -> List[str]:
    """Deletes the group with its memberships, items, shares and public links.

    Returns the storage paths of the deleted files so the caller can drop the bytes.
    """
    with get_db_session() as db:
        file_ids = [row.id for row in db.query(File.id).filter(File.group_id == group_id)]
        folder_ids = [row.id for row in db.query(Folder.id).filter(Folder.group_id == group_id)]
        paths = [row.path for row in db.query(File.path).filter(File.group_id == group_id)]

        if file_ids:
            db.query(FileShare).filter(FileShare.file_id.in_(file_ids)).delete(synchronize_session=False)
            db.query(PublicLink).filter(
                and_(PublicLink.resource_type == ResourceType.FILE.value, PublicLink.resource_id.in_(file_ids))
            ).delete(synchronize_session=False)
            db.query(File).filter(File.id.in_(file_ids)).delete(synchronize_session=False)
        if folder_ids:
            db.query(FolderShare).filter(FolderShare.folder_id.in_(folder_ids)).delete(synchronize_session=False)
            db.query(PublicLink).filter(
                and_(PublicLink.resource_type == ResourceType.FOLDER.value, PublicLink.resource_id.in_(folder_ids))
            ).delete(synchronize_session=False)
            # Children point at their parents, so unlink before deleting
            db.query(Folder).filter(Folder.id.in_(folder_ids)).update({Folder.parent_id: None}, synchronize_session=False)
            db.query(Folder).filter(Folder.id.in_(folder_ids)).delete(synchronize_session=False)

        db.query(GroupMembership).filter(GroupMembership.group_id == group_id).delete(synchronize_session=False)
        db.query(Group).filter(Group.id == group_id).delete(synchronize_session=False)
        return paths


def get_membership_db(user_id: int, group_id: int) -> Optional[GroupMembership]:
    with get_db_session() as db:
        return (
            db.query(GroupMembership)
            .filter(and_(GroupMembership.user_id == user_id, GroupMembership.group_id == group_id))
            .first()
        )


def add_membership_db(user_id: int, group_id: int, permission: str, added_by_id: int) -> GroupMembership:
    try:
        with get_db_session() as db:
            existing = (
                db.query(GroupMembership.id)
                .filter(and_(GroupMembership.user_id == user_id, GroupMembership.group_id == group_id))
                .first()
            )
            if existing:
                raise Conflict("User is already a member of this group")
            membership = GroupMembership(
                user_id=user_id, group_id=group_id, permission=permission, added_by_id=added_by_id
            )
            db.add(membership)
            db.flush()
            db.refresh(membership)
            return membership
    except IntegrityError:
        # Lost a race against a concurrent insert of the same pair
        raise Conflict("User is already a member of this group")


def update_membership_permission_db(user_id: int, group_id: int, permission: str) -> Optional[GroupMembership]:
    with get_db_session() as db:
        membership = (
            db.query(GroupMembership)
            .filter(and_(GroupMembership.user_id == user_id, GroupMembership.group_id == group_id))
            .first()
        )
        if membership:
            membership.permission = permission
            db.flush()
            db.refresh(membership)
        return membership


def remove_membership_db(user_id: int, group_id: int) -> bool:
    with get_db_session() as db:
        deleted = (
            db.query(GroupMembership)
            .filter(and_(GroupMembership.user_id == user_id, GroupMembership.group_id == group_id))
            .delete(synchronize_session=False)
        )
        return deleted > 0


def get_group_members_db(group_id: int) -> List[GroupMembership]:
    with get_db_session() as db:
        return (
            db.query(GroupMembership)
            .options(joinedload(GroupMembership.user))
            .filter(GroupMembership.group_id == group_id)
            .order_by(GroupMembership.id)
            .all()
        )


def get_user_groups_db(user_id: int) -> List[GroupMembership]:
    with get_db_session() as db:
        return (
            db.query(GroupMembership)
            .options(joinedload(GroupMembership.group))
            .filter(GroupMembership.user_id == user_id)
            .order_by(GroupMembership.group_id)
            .all()
        )
