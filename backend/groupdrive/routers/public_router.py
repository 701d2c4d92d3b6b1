from fastapi import APIRouter, Depends

from groupdrive.core.dependencies import get_link_issuer
from groupdrive.routers.file_router import download_response
from groupdrive.schemas.share_schemas import PublicFolderListing
from groupdrive.services.public_link_service import PublicLinkIssuer
from groupdrive.services.share_service import public_download_service, public_folder_listing_service

router = APIRouter(prefix="/public", tags=["Public"])


@router.get("/file/{file_id}/{token}")
def public_download(
    file_id: int,
    token: str,
    link_issuer: PublicLinkIssuer = Depends(get_link_issuer),
):
    """No authentication; the token is the credential."""
    db_file, stream = public_download_service(file_id, token, link_issuer)
    return download_response(db_file, stream)


@router.get("/folder/{folder_id}/{token}", response_model=PublicFolderListing)
def public_folder(
    folder_id: int,
    token: str,
    link_issuer: PublicLinkIssuer = Depends(get_link_issuer),
):
    return public_folder_listing_service(folder_id, token, link_issuer)
