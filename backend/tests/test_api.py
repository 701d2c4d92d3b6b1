import base64

import pytest
from fastapi.testclient import TestClient

from groupdrive.main import api_app, app
from groupdrive.models.base import UserRole
from groupdrive.repositories.auth_repository import get_user_by_email, update_user_role


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def register(client, name, role=None):
    response = client.post(
        "/api/auth/register",
        json={"name": name, "email": f"{name}@example.com", "password": "password123"},
    )
    assert response.status_code == 201, response.text
    if role is not None:
        update_user_role(response.json()["id"], role.value)
    login = client.post("/api/auth/login", json={"email": f"{name}@example.com", "password": "password123"})
    assert login.status_code == 200
    return {"Authorization": f"Bearer {login.json()['access_token']}"}


def test_register_login_profile(client):
    headers = register(client, "alice")
    profile = client.get("/api/auth/profile", headers=headers)
    assert profile.status_code == 200
    assert profile.json()["email"] == "alice@example.com"
    assert profile.json()["role"] == "User"
    assert "password_hash" not in profile.json()


def test_duplicate_registration_conflicts(client):
    register(client, "alice")
    response = client.post(
        "/api/auth/register",
        json={"name": "Alice", "email": "ALICE@example.com", "password": "password123"},
    )
    assert response.status_code == 409


def test_bad_credentials_and_missing_token(client):
    register(client, "alice")
    wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "nope"})
    assert wrong.status_code == 401

    client.cookies.clear()
    assert client.get("/api/auth/profile").status_code == 401
    assert client.get("/api/auth/profile", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_validation_errors_are_400_with_fields(client):
    response = client.post("/api/auth/register", json={"name": "x", "email": "not-an-email", "password": "1"})
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid input"
    fields = {error["field"] for error in body["errors"]}
    assert "body.email" in fields
    assert "body.password" in fields


def test_group_folder_permissions_over_http(client):
    admin = register(client, "admin", UserRole.ADMIN)
    viewer = register(client, "viewer")
    editor = register(client, "editor")
    viewer_id = get_user_by_email("viewer@example.com").id
    editor_id = get_user_by_email("editor@example.com").id

    group = client.post("/api/groups/", json={"name": "Team"}, headers=admin)
    assert group.status_code == 201
    group_id = group.json()["id"]
    client.post(f"/api/groups/{group_id}/members", json={"user_id": viewer_id, "permission": "View"}, headers=admin)
    client.post(f"/api/groups/{group_id}/members", json={"user_id": editor_id, "permission": "Edit"}, headers=admin)

    denied = client.post("/api/folders", json={"name": "X", "parent_id": 0, "group_id": group_id}, headers=viewer)
    assert denied.status_code == 403
    assert denied.json()["message"] == "You need edit permission to create folders"

    created = client.post("/api/folders", json={"name": "X", "parent_id": 0, "group_id": group_id}, headers=editor)
    assert created.status_code == 201
    assert created.json()["parent_id"] is None
    assert created.json()["group_id"] == group_id

    listing = client.get("/api/files", params={"groupId": group_id, "parentId": 0}, headers=viewer)
    assert listing.status_code == 200
    assert listing.json()["permission"] == "View"
    assert [f["name"] for f in listing.json()["folders"]] == ["X"]

    details = client.get(f"/api/groups/{group_id}", headers=viewer)
    assert details.status_code == 200
    assert len(details.json()["members"]) == 3

    duplicate = client.post(
        f"/api/groups/{group_id}/members", json={"user_id": viewer_id, "permission": "Edit"}, headers=admin
    )
    assert duplicate.status_code == 409


def test_binary_chunked_upload_and_download(client):
    headers = register(client, "alice")
    chunks = [b"first-", b"second-", b"third"]

    def send(index):
        return client.post(
            "/api/personal-files/binary",
            content=chunks[index],
            headers={
                **headers,
                "Content-Type": "application/octet-stream",
                "X-File-Name": "my%20notes.txt",
                "X-File-Type": "text/plain",
                "X-Parent-Id": "null",
                "X-Chunk-Index": str(index),
                "X-Total-Chunks": "3",
            },
        )

    first = send(1)
    assert first.status_code == 200
    assert first.json()["initialized"] is False
    assert send(0).json()["received_chunks"] == [0, 1]
    done = send(2)
    assert done.status_code == 201
    body = done.json()
    assert body["name"] == "my notes.txt"
    assert body["size"] == len(b"".join(chunks))
    assert "path" not in body

    download = client.get(f"/api/files/{body['id']}/download", headers=headers)
    assert download.status_code == 200
    assert download.content == b"first-second-third"
    assert "attachment" in download.headers["content-disposition"]

    # Redelivered last chunk does not create a second file
    again = send(2)
    assert again.status_code == 200
    assert again.json()["id"] == body["id"]
    listing = client.get("/api/personal-files", headers=headers).json()
    assert len(listing["files"]) == 1
    assert "path" not in listing["files"][0]


def test_json_upload_and_public_link(client):
    headers = register(client, "alice")
    payload = {"name": "hello.txt", "type": "text/plain", "data": base64.b64encode(b"hello").decode(), "parent_id": 0}
    created = client.post("/api/personal-files/upload", json=payload, headers=headers)
    assert created.status_code == 201
    file_id = created.json()["id"]

    enabled = client.put(f"/api/files/{file_id}/public", json={"is_public": True}, headers=headers)
    assert enabled.status_code == 200
    link = enabled.json()["public_link"]
    assert link.startswith("http://testserver/api/public/file/")

    client.cookies.clear()
    public = client.get(link.replace("http://testserver", ""))
    assert public.status_code == 200
    assert public.content == b"hello"

    client.put(f"/api/files/{file_id}/public", json={"is_public": False}, headers=headers)
    assert client.get(link.replace("http://testserver", "")).status_code == 404


def test_sharing_over_http(client):
    alice = register(client, "alice")
    register(client, "bob")
    bob_id = get_user_by_email("bob@example.com").id
    folder = client.post("/api/personal-folders", json={"name": "Shared"}, headers=alice).json()

    url = f"/api/folders/{folder['id']}/shares"
    assert client.post(url, json={"user_id": bob_id, "permission": "View"}, headers=alice).status_code == 201
    assert client.post(url, json={"user_id": bob_id, "permission": "View"}, headers=alice).status_code == 409

    listing = client.get(url, headers=alice).json()
    assert listing["is_public"] is False
    assert listing["users"][0]["user"]["name"] == "bob"

    assert client.delete(f"{url}/{bob_id}", headers=alice).status_code == 204
    assert client.delete(f"{url}/{bob_id}", headers=alice).status_code == 404


def test_admin_routes(client):
    super_admin = register(client, "root", UserRole.SUPER_ADMIN)
    user = register(client, "alice")
    alice_id = get_user_by_email("alice@example.com").id
    root_id = get_user_by_email("root@example.com").id

    assert client.get("/api/admin/users", headers=user).status_code == 403
    assert len(client.get("/api/admin/users", headers=super_admin).json()) == 2

    promoted = client.put(f"/api/admin/users/{alice_id}/role", json={"role": "Admin"}, headers=super_admin)
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "Admin"

    own = client.put(f"/api/admin/users/{root_id}/role", json={"role": "User"}, headers=super_admin)
    assert own.status_code == 400
    assert client.put("/api/admin/users/999/role", json={"role": "User"}, headers=super_admin).status_code == 404


def test_oversized_binary_chunk_is_rejected_before_reading(client):
    headers = register(client, "alice")
    api_app.state.upload_coordinator.max_chunk_size = 4

    response = client.post(
        "/api/personal-files/binary",
        content=b"0123456789",
        headers={**headers, "X-File-Name": "big.bin", "X-Chunk-Index": "0", "X-Total-Chunks": "2"},
    )
    assert response.status_code == 400
    assert response.json()["errors"] == [{"field": "data", "message": "chunk exceeds 4 bytes"}]
    assert client.get("/api/personal-files", headers=headers).json()["files"] == []
