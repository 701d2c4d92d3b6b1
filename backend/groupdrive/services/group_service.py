import logging
from typing import List

from groupdrive.core.exceptions import NotFound, StorageIOError
from groupdrive.models.base import Group, GroupMembership, Permission, User
from groupdrive.repositories.auth_repository import get_user_by_id
from groupdrive.repositories.blob_repository import get_blob_storage
from groupdrive.repositories.group_repository import (
    add_membership_db,
    create_group_with_creator_db,
    delete_group_db,
    get_group_by_id_db,
    get_group_members_db,
    get_user_groups_db,
    remove_membership_db,
    update_group_db,
    update_membership_permission_db,
)
from groupdrive.schemas.group_schemas import GroupCreate, GroupUpdate, MembershipAdd, MembershipUpdate
from groupdrive.services.permission_service import require_admin, require_group_access

logger = logging.getLogger(__name__)


def _get_group_or_404(group_id: int) -> Group:
    group = get_group_by_id_db(group_id)
    if not group:
        raise NotFound("Group not found")
    return group


def get_user_groups_service(current_user: User) -> List[GroupMembership]:
    return get_user_groups_db(current_user.id)


def create_group_service(group_data: GroupCreate, current_user: User) -> Group:
    """Only administrators create groups. The creator joins with Edit."""
    require_admin(current_user)
    group = create_group_with_creator_db(group_data.name, current_user.id)
    logger.info("User %s created group %s", current_user.id, group.id)
    return group


def get_group_details_service(group_id: int, current_user: User) -> dict:
    group = _get_group_or_404(group_id)
    level = require_group_access(current_user, group_id, Permission.VIEW, "view this group")
    return {
        "group": group,
        "members": get_group_members_db(group_id),
        "user_permission": Permission(level.value),
    }


def update_group_service(group_id: int, group_data: GroupUpdate, current_user: User) -> Group:
    require_admin(current_user)
    _get_group_or_404(group_id)
    return update_group_db(group_id, group_data.name)


def delete_group_service(group_id: int, current_user: User) -> None:
    require_admin(current_user)
    _get_group_or_404(group_id)
    paths = delete_group_db(group_id)
    logger.info("User %s deleted group %s with %d files", current_user.id, group_id, len(paths))

    storage = get_blob_storage()
    for path in paths:
        try:
            storage.delete(path)
        except StorageIOError as e:
            # The records are gone already; the bytes are only orphaned
            logger.warning("Failed to delete %s of group %s: %s", path, group_id, e)


def add_member_service(group_id: int, member_data: MembershipAdd, current_user: User) -> GroupMembership:
    require_admin(current_user)
    _get_group_or_404(group_id)
    if get_user_by_id(member_data.user_id) is None:
        raise NotFound("User not found")
    membership = add_membership_db(
        member_data.user_id, group_id, member_data.permission.value, current_user.id
    )
    logger.info(
        "User %s added user %s to group %s with %s",
        current_user.id,
        member_data.user_id,
        group_id,
        member_data.permission.value,
    )
    return membership


def update_member_service(
    group_id: int, user_id: int, member_data: MembershipUpdate, current_user: User
) -> GroupMembership:
    require_admin(current_user)
    _get_group_or_404(group_id)
    membership = update_membership_permission_db(user_id, group_id, member_data.permission.value)
    if membership is None:
        raise NotFound("Membership not found")
    return membership


def remove_member_service(group_id: int, user_id: int, current_user: User) -> None:
    require_admin(current_user)
    _get_group_or_404(group_id)
    if not remove_membership_db(user_id, group_id):
        raise NotFound("Membership not found")
    logger.info("User %s removed user %s from group %s", current_user.id, user_id, group_id)
