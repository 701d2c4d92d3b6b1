"""Effective access of a user to a file, a folder or a group's namespace.

Three tiers decide access:

* personal items (``group_id is None``) belong to their owner alone;
* group items inherit the caller's membership permission;
* Admin and SuperAdmin users get Edit on every group item, member or not.

Explicit file/folder shares are managed by the share service and are not
merged in here.
"""
import enum
import logging
from typing import Optional

from groupdrive.core.exceptions import Forbidden
from groupdrive.models.base import GroupMembership, Permission, User
from groupdrive.repositories.group_repository import get_membership_db

logger = logging.getLogger(__name__)


class AccessLevel(str, enum.Enum):
    DENY = "Deny"
    VIEW = "View"
    EDIT = "Edit"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def allows(self, required: Permission) -> bool:
        return self.rank >= AccessLevel(required.value).rank


_RANK = {AccessLevel.DENY: 0, AccessLevel.VIEW: 1, AccessLevel.EDIT: 2}


def resolve_group_access(user: User, membership: Optional[GroupMembership]) -> AccessLevel:
    if membership is not None:
        return AccessLevel(membership.permission)
    if user.is_admin:
        return AccessLevel.EDIT
    return AccessLevel.DENY


def resolve_access(user: User, resource, membership: Optional[GroupMembership] = None) -> AccessLevel:
    """Pure resolution over already loaded state.

    ``resource`` is anything with ``group_id`` and ``owner_id``; ``membership``
    is the caller's membership in ``resource.group_id`` (ignored for personal items).
    """
    if resource.group_id is None:
        return AccessLevel.EDIT if resource.owner_id == user.id else AccessLevel.DENY
    return resolve_group_access(user, membership)


def get_group_access_level(user: User, group_id: int) -> AccessLevel:
    return resolve_group_access(user, get_membership_db(user.id, group_id))


def get_access_level(user: User, resource) -> AccessLevel:
    if resource.group_id is None:
        return resolve_access(user, resource)
    return resolve_access(user, resource, get_membership_db(user.id, resource.group_id))


def _enforce(level: AccessLevel, required: Permission, target: str, action: str, user: User) -> AccessLevel:
    if level == AccessLevel.DENY:
        logger.debug("User %s denied access to %s", user.id, target)
        raise Forbidden(f"You don't have access to this {target}")
    if not level.allows(required):
        logger.debug("User %s has view-only access to %s, needs edit to %s", user.id, target, action)
        raise Forbidden(f"You need edit permission to {action}")
    return level


def require_access(user: User, resource, required: Permission, target: str, action: str = "perform this action") -> AccessLevel:
    return _enforce(get_access_level(user, resource), required, target, action, user)


def require_group_access(user: User, group_id: int, required: Permission, action: str = "perform this action") -> AccessLevel:
    return _enforce(get_group_access_level(user, group_id), required, "group", action, user)


def require_admin(user: User) -> None:
    if not user.is_admin:
        raise Forbidden("Admin access required")


def require_super_admin(user: User) -> None:
    if not user.is_super_admin:
        raise Forbidden("SuperAdmin access required")
