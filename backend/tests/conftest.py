import os
import tempfile

# Settings are read at import time, so point them at a scratch area first
_TMP = tempfile.mkdtemp(prefix="groupdrive-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["UPLOAD_TEMP_DIR"] = os.path.join(_TMP, "uploads", "temp")
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["PUBLIC_LINK_STORE"] = "database"
os.environ["PUBLIC_BASE_URL"] = ""

import pytest  # noqa: E402

from groupdrive.core.database import Base, engine  # noqa: E402
from groupdrive.models import base as models  # noqa: E402, F401
from groupdrive.models.base import Permission, UserRole  # noqa: E402
from groupdrive.repositories.auth_repository import create_user  # noqa: E402
from groupdrive.repositories.blob_repository import LocalBlobStorage, get_blob_storage  # noqa: E402
from groupdrive.repositories.group_repository import add_membership_db, create_group_with_creator_db  # noqa: E402
from groupdrive.services.public_link_service import InMemoryPublicLinkStore, PublicLinkIssuer  # noqa: E402
from groupdrive.services.upload_service import ChunkUploadCoordinator, InMemoryUploadSessionStore  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def make_user():
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.USER, name: str = None):
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        return create_user(name=name, email=f"{name}@example.com", password_hash="x", role=role.value)

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, name="admin")


@pytest.fixture
def group(admin):
    return create_group_with_creator_db("Team", admin.id)


@pytest.fixture
def viewer(make_user, group, admin):
    user = make_user(name="viewer")
    add_membership_db(user.id, group.id, Permission.VIEW.value, admin.id)
    return user


@pytest.fixture
def editor(make_user, group, admin):
    user = make_user(name="editor")
    add_membership_db(user.id, group.id, Permission.EDIT.value, admin.id)
    return user


@pytest.fixture
def blob_storage():
    # Same storage the services fall back to, so downloads and deletes see the bytes
    return get_blob_storage()


@pytest.fixture
def local_storage(tmp_path):
    return LocalBlobStorage(str(tmp_path / "blobs"))


@pytest.fixture
def session_store():
    return InMemoryUploadSessionStore(ttl_seconds=3600, completed_retention_seconds=600)


@pytest.fixture
def coordinator(tmp_path, session_store, blob_storage):
    return ChunkUploadCoordinator(
        session_store=session_store,
        blob_storage=blob_storage,
        temp_dir=str(tmp_path / "chunks"),
    )


@pytest.fixture
def link_issuer():
    return PublicLinkIssuer(InMemoryPublicLinkStore(), base_url="http://drive.test")
