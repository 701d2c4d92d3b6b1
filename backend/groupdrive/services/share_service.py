import logging
from typing import Iterator, Optional, Tuple

from groupdrive.core.exceptions import NotFound
from groupdrive.models.base import File, Permission, ResourceType, User
from groupdrive.repositories.auth_repository import get_user_by_id
from groupdrive.repositories.blob_repository import get_blob_storage
from groupdrive.repositories.file_repository import (
    get_file_by_id,
    get_files_in_folder,
    get_folder_by_id,
    get_subfolders,
    set_file_public_access,
)
from groupdrive.repositories.share_repository import add_share_db, get_shares_db, remove_share_db, update_share_db
from groupdrive.schemas.share_schemas import ShareCreate, ShareUpdate
from groupdrive.services.permission_service import require_access
from groupdrive.services.public_link_service import PublicLinkIssuer

logger = logging.getLogger(__name__)


def _get_item_or_404(resource_type: ResourceType, resource_id: int):
    if resource_type == ResourceType.FILE:
        item = get_file_by_id(resource_id)
    else:
        item = get_folder_by_id(resource_id)
    if not item:
        raise NotFound(f"{resource_type.value.capitalize()} not found")
    return item


def _require_share_manager(resource_type: ResourceType, resource_id: int, current_user: User):
    item = _get_item_or_404(resource_type, resource_id)
    require_access(current_user, item, Permission.EDIT, resource_type.value, "manage sharing")
    return item


def get_shares_service(
    resource_type: ResourceType, resource_id: int, current_user: User, link_issuer: PublicLinkIssuer
) -> dict:
    _require_share_manager(resource_type, resource_id, current_user)
    record = link_issuer.get(resource_id, resource_type)
    return {
        "is_public": record is not None,
        "public_link": record.link if record else None,
        "users": get_shares_db(resource_type, resource_id),
    }


def add_share_service(resource_type: ResourceType, resource_id: int, share_data: ShareCreate, current_user: User):
    _require_share_manager(resource_type, resource_id, current_user)
    if get_user_by_id(share_data.user_id) is None:
        raise NotFound("User not found")
    share = add_share_db(
        resource_type, resource_id, share_data.user_id, share_data.permission.value, current_user.id
    )
    logger.info(
        "User %s shared %s %s with user %s (%s)",
        current_user.id,
        resource_type.value,
        resource_id,
        share_data.user_id,
        share_data.permission.value,
    )
    return share


def update_share_service(
    resource_type: ResourceType, resource_id: int, user_id: int, share_data: ShareUpdate, current_user: User
):
    _require_share_manager(resource_type, resource_id, current_user)
    share = update_share_db(resource_type, resource_id, user_id, share_data.permission.value)
    if share is None:
        raise NotFound("Share not found")
    return share


def remove_share_service(resource_type: ResourceType, resource_id: int, user_id: int, current_user: User) -> None:
    _require_share_manager(resource_type, resource_id, current_user)
    if not remove_share_db(resource_type, resource_id, user_id):
        raise NotFound("Share not found")


def set_public_access_service(
    resource_type: ResourceType,
    resource_id: int,
    is_public: bool,
    current_user: User,
    link_issuer: PublicLinkIssuer,
    base_url: Optional[str] = None,
) -> dict:
    _require_share_manager(resource_type, resource_id, current_user)
    if is_public:
        record = link_issuer.enable(resource_id, resource_type, base_url)
        if resource_type == ResourceType.FILE:
            set_file_public_access(resource_id, True, record.token)
        return {"is_public": True, "public_link": record.link}

    link_issuer.disable(resource_id, resource_type)
    if resource_type == ResourceType.FILE:
        set_file_public_access(resource_id, False)
    return {"is_public": False, "public_link": None}


# --- Anonymous access ---
def _require_valid_token(resource_type: ResourceType, resource_id: int, token: str, link_issuer: PublicLinkIssuer):
    if not link_issuer.resolve(resource_id, resource_type, token):
        # Same answer for unknown items and wrong tokens
        raise NotFound("Public link not found")
    return _get_item_or_404(resource_type, resource_id)


def public_download_service(file_id: int, token: str, link_issuer: PublicLinkIssuer) -> Tuple[File, Iterator[bytes]]:
    db_file = _require_valid_token(ResourceType.FILE, file_id, token, link_issuer)
    return db_file, get_blob_storage().open_stream(db_file.path)


def public_folder_listing_service(folder_id: int, token: str, link_issuer: PublicLinkIssuer) -> dict:
    folder = _require_valid_token(ResourceType.FOLDER, folder_id, token, link_issuer)
    return {
        "folder": folder,
        "files": get_files_in_folder(folder_id),
        "folders": get_subfolders(folder_id),
    }
