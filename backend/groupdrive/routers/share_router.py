import enum

from fastapi import APIRouter, Depends, Response, status

from groupdrive.core.dependencies import get_base_url, get_link_issuer
from groupdrive.core.security import get_current_user
from groupdrive.models.base import ResourceType, User
from groupdrive.schemas.share_schemas import (
    PublicAccessResponse,
    PublicAccessUpdate,
    ShareCreate,
    ShareListResponse,
    ShareResponse,
    ShareUpdate,
)
from groupdrive.services.public_link_service import PublicLinkIssuer
from groupdrive.services.share_service import (
    add_share_service,
    get_shares_service,
    remove_share_service,
    set_public_access_service,
    update_share_service,
)

router = APIRouter(tags=["Sharing"])


class ShareTarget(str, enum.Enum):
    FILES = "files"
    FOLDERS = "folders"

    @property
    def resource_type(self) -> ResourceType:
        return ResourceType.FILE if self == ShareTarget.FILES else ResourceType.FOLDER


@router.get("/{target}/{resource_id}/shares", response_model=ShareListResponse)
def list_shares(
    target: ShareTarget,
    resource_id: int,
    current_user: User = Depends(get_current_user),
    link_issuer: PublicLinkIssuer = Depends(get_link_issuer),
):
    return get_shares_service(target.resource_type, resource_id, current_user, link_issuer)


@router.post("/{target}/{resource_id}/shares", response_model=ShareResponse, status_code=status.HTTP_201_CREATED)
def add_share(
    target: ShareTarget,
    resource_id: int,
    share_data: ShareCreate,
    current_user: User = Depends(get_current_user),
):
    return add_share_service(target.resource_type, resource_id, share_data, current_user)


@router.put("/{target}/{resource_id}/shares/{user_id}", response_model=ShareResponse)
def update_share(
    target: ShareTarget,
    resource_id: int,
    user_id: int,
    share_data: ShareUpdate,
    current_user: User = Depends(get_current_user),
):
    return update_share_service(target.resource_type, resource_id, user_id, share_data, current_user)


@router.delete("/{target}/{resource_id}/shares/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_share(
    target: ShareTarget,
    resource_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
):
    remove_share_service(target.resource_type, resource_id, user_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{target}/{resource_id}/public", response_model=PublicAccessResponse)
def set_public_access(
    target: ShareTarget,
    resource_id: int,
    data: PublicAccessUpdate,
    current_user: User = Depends(get_current_user),
    link_issuer: PublicLinkIssuer = Depends(get_link_issuer),
    base_url: str = Depends(get_base_url),
):
    """Turning access on twice returns the same link."""
    return set_public_access_service(
        target.resource_type, resource_id, data.is_public, current_user, link_issuer, base_url
    )
