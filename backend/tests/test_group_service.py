import pytest

from groupdrive.core.exceptions import Conflict, Forbidden, NotFound
from groupdrive.models.base import Permission, UserRole
from groupdrive.repositories.file_repository import create_file, create_folder, get_file_by_id, get_folder_by_id
from groupdrive.repositories.group_repository import get_group_by_id_db, get_membership_db
from groupdrive.schemas.file_schemas import FileCreate
from groupdrive.schemas.group_schemas import GroupCreate, GroupUpdate, MembershipAdd, MembershipUpdate
from groupdrive.services.group_service import (
    add_member_service,
    create_group_service,
    delete_group_service,
    get_group_details_service,
    get_user_groups_service,
    remove_member_service,
    update_group_service,
    update_member_service,
)


def test_creator_joins_with_edit(admin):
    group = create_group_service(GroupCreate(name="  Design  "), admin)
    assert group.name == "Design"
    membership = get_membership_db(admin.id, group.id)
    assert membership.permission == Permission.EDIT.value


def test_only_admins_create_groups(make_user):
    with pytest.raises(Forbidden):
        create_group_service(GroupCreate(name="Nope"), make_user())


def test_group_details(group, viewer, admin):
    details = get_group_details_service(group.id, viewer)
    assert details["group"].id == group.id
    assert details["user_permission"] == Permission.VIEW
    assert {m.user_id for m in details["members"]} == {admin.id, viewer.id}
    assert all(m.user is not None for m in details["members"])


def test_group_details_require_membership(group, make_user):
    with pytest.raises(Forbidden):
        get_group_details_service(group.id, make_user())
    with pytest.raises(NotFound):
        get_group_details_service(999, make_user())


def test_list_my_groups(group, viewer):
    memberships = get_user_groups_service(viewer)
    assert [m.group.name for m in memberships] == ["Team"]
    assert memberships[0].permission == Permission.VIEW.value


def test_rename_group(group, admin, editor):
    assert update_group_service(group.id, GroupUpdate(name="Renamed"), admin).name == "Renamed"
    # Group Edit permission is not enough to manage the group itself
    with pytest.raises(Forbidden):
        update_group_service(group.id, GroupUpdate(name="Mine"), editor)


def test_membership_management(group, admin, make_user):
    user = make_user()
    membership = add_member_service(group.id, MembershipAdd(user_id=user.id, permission=Permission.VIEW), admin)
    assert membership.permission == Permission.VIEW.value

    with pytest.raises(Conflict):
        add_member_service(group.id, MembershipAdd(user_id=user.id, permission=Permission.EDIT), admin)

    updated = update_member_service(group.id, user.id, MembershipUpdate(permission=Permission.EDIT), admin)
    assert updated.permission == Permission.EDIT.value

    remove_member_service(group.id, user.id, admin)
    assert get_membership_db(user.id, group.id) is None
    with pytest.raises(NotFound):
        remove_member_service(group.id, user.id, admin)
    with pytest.raises(NotFound):
        update_member_service(group.id, user.id, MembershipUpdate(permission=Permission.VIEW), admin)


def test_add_unknown_user(group, admin):
    with pytest.raises(NotFound):
        add_member_service(group.id, MembershipAdd(user_id=4242, permission=Permission.VIEW), admin)


def test_delete_group_removes_contents(group, admin, make_user, blob_storage):
    super_admin = make_user(UserRole.SUPER_ADMIN)
    parent = create_folder("Parent", None, group.id, admin.id)
    child = create_folder("Child", parent.id, group.id, admin.id)
    blob_storage.save_bytes("files/group-file.txt", b"bytes", "text/plain")
    db_file = create_file(
        FileCreate(
            name="group-file.txt",
            type="text/plain",
            size=5,
            path="files/group-file.txt",
            parent_id=child.id,
            group_id=group.id,
            uploaded_by_id=admin.id,
        )
    )

    delete_group_service(group.id, super_admin)

    assert get_group_by_id_db(group.id) is None
    assert get_membership_db(admin.id, group.id) is None
    assert get_folder_by_id(parent.id) is None
    assert get_folder_by_id(child.id) is None
    assert get_file_by_id(db_file.id) is None
    with pytest.raises(NotFound):
        b"".join(blob_storage.open_stream("files/group-file.txt"))
