from types import SimpleNamespace

import pytest

from groupdrive.core.exceptions import Forbidden
from groupdrive.models.base import Permission, UserRole
from groupdrive.repositories.file_repository import create_folder
from groupdrive.services.permission_service import (
    AccessLevel,
    get_access_level,
    require_access,
    require_admin,
    require_super_admin,
    resolve_access,
)


def _user(user_id=1, role=UserRole.USER):
    return SimpleNamespace(
        id=user_id,
        is_admin=role in (UserRole.ADMIN, UserRole.SUPER_ADMIN),
        is_super_admin=role == UserRole.SUPER_ADMIN,
    )


def _item(owner_id=1, group_id=None):
    return SimpleNamespace(owner_id=owner_id, group_id=group_id)


def _membership(permission):
    return SimpleNamespace(permission=permission.value)


@pytest.mark.parametrize(
    "role,membership,expected",
    [
        (UserRole.USER, None, AccessLevel.DENY),
        (UserRole.USER, Permission.VIEW, AccessLevel.VIEW),
        (UserRole.USER, Permission.EDIT, AccessLevel.EDIT),
        (UserRole.ADMIN, None, AccessLevel.EDIT),
        (UserRole.SUPER_ADMIN, None, AccessLevel.EDIT),
        # Membership wins over the admin override
        (UserRole.ADMIN, Permission.VIEW, AccessLevel.VIEW),
    ],
)
def test_group_item_resolution(role, membership, expected):
    member = _membership(membership) if membership else None
    assert resolve_access(_user(role=role), _item(owner_id=99, group_id=7), member) == expected


@pytest.mark.parametrize("role", list(UserRole))
def test_personal_item_is_owner_only(role):
    assert resolve_access(_user(1, role), _item(owner_id=1)) == AccessLevel.EDIT
    assert resolve_access(_user(2, role), _item(owner_id=1)) == AccessLevel.DENY


def test_personal_item_ignores_membership():
    assert resolve_access(_user(2), _item(owner_id=1), _membership(Permission.EDIT)) == AccessLevel.DENY


def test_access_level_ordering():
    assert AccessLevel.EDIT.allows(Permission.VIEW)
    assert AccessLevel.EDIT.allows(Permission.EDIT)
    assert AccessLevel.VIEW.allows(Permission.VIEW)
    assert not AccessLevel.VIEW.allows(Permission.EDIT)
    assert not AccessLevel.DENY.allows(Permission.VIEW)


def test_require_access_messages(group, viewer, make_user, admin):
    folder = create_folder("Docs", None, group.id, admin.id)
    outsider = make_user()

    with pytest.raises(Forbidden) as no_access:
        require_access(outsider, folder, Permission.VIEW, "folder")
    assert no_access.value.message == "You don't have access to this folder"

    assert require_access(viewer, folder, Permission.VIEW, "folder") == AccessLevel.VIEW
    with pytest.raises(Forbidden) as view_only:
        require_access(viewer, folder, Permission.EDIT, "folder", "rename folders")
    assert view_only.value.message == "You need edit permission to rename folders"


def test_admin_override_without_membership(make_user, admin, group):
    other_admin = make_user(UserRole.ADMIN)
    group_folder = create_folder("Shared", None, group.id, admin.id)
    assert get_access_level(other_admin, group_folder) == AccessLevel.EDIT

    personal = create_folder("Docs", None, None, admin.id)
    assert get_access_level(admin, personal) == AccessLevel.EDIT
    # Personal items stay private even for admins
    assert get_access_level(other_admin, personal) == AccessLevel.DENY


def test_role_guards(make_user):
    user = make_user()
    admin = make_user(UserRole.ADMIN)
    super_admin = make_user(UserRole.SUPER_ADMIN)

    with pytest.raises(Forbidden):
        require_admin(user)
    require_admin(admin)
    require_admin(super_admin)

    with pytest.raises(Forbidden):
        require_super_admin(admin)
    require_super_admin(super_admin)
