import logging
from typing import List

from groupdrive.core.exceptions import NotFound, ValidationError
from groupdrive.models.base import Group, User, UserRole
from groupdrive.repositories.auth_repository import get_all_users, get_user_by_id, update_user_role
from groupdrive.repositories.group_repository import get_all_groups_db
from groupdrive.services.permission_service import require_admin, require_super_admin

logger = logging.getLogger(__name__)


def list_users_service(current_user: User) -> List[User]:
    """Any signed-in user may look up others, e.g. to add them to a group."""
    return get_all_users()


def admin_list_users_service(current_user: User) -> List[User]:
    require_admin(current_user)
    return get_all_users()


def admin_list_groups_service(current_user: User) -> List[Group]:
    require_admin(current_user)
    return get_all_groups_db()


def update_user_role_service(user_id: int, role: UserRole, current_user: User) -> User:
    require_super_admin(current_user)
    if user_id == current_user.id:
        raise ValidationError("You cannot change your own role")
    if get_user_by_id(user_id) is None:
        raise NotFound("User not found")
    user = update_user_role(user_id, role.value)
    logger.info("User %s changed role of user %s to %s", current_user.id, user_id, role.value)
    return user
