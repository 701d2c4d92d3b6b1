from typing import Optional
from urllib.parse import quote, unquote

from fastapi import APIRouter, Depends, Header, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from groupdrive.core.dependencies import (
    get_link_issuer,
    get_upload_coordinator,
    optional_id,
    parse_id_header,
    parse_int_header,
)
from groupdrive.core.exceptions import ValidationError
from groupdrive.core.security import get_current_user
from groupdrive.models.base import User
from groupdrive.schemas.file_schemas import (
    ChunkAckResponse,
    DirectoryListing,
    FileResponse,
    FileUploadRequest,
    FolderCreate,
    FolderResponse,
    NameUpdate,
    PersonalFolderCreate,
)
from groupdrive.services.file_service import (
    create_group_folder_service,
    create_personal_folder_service,
    decode_upload_data,
    delete_file_service,
    delete_folder_service,
    download_file_service,
    list_group_contents_service,
    list_personal_contents_service,
    rename_file_service,
    rename_folder_service,
    upload_file_service,
)
from groupdrive.services.public_link_service import PublicLinkIssuer
from groupdrive.services.upload_service import ChunkAck, ChunkUploadCoordinator

router = APIRouter(tags=["Files"])


def upload_response(result) -> JSONResponse:
    """201 with the file when an upload completes, 200 with an ack for an intermediate chunk."""
    if isinstance(result, ChunkAck):
        ack = ChunkAckResponse(
            chunk_index=result.chunk_index,
            received_chunks=result.received_chunks,
            total_chunks=result.total_chunks,
            initialized=result.initialized,
        )
        return JSONResponse(status_code=status.HTTP_200_OK, content=jsonable_encoder(ack))
    code = status.HTTP_200_OK if result.duplicate else status.HTTP_201_CREATED
    return JSONResponse(status_code=code, content=jsonable_encoder(FileResponse.model_validate(result.file)))


def download_response(db_file, stream) -> StreamingResponse:
    safe_filename = quote(db_file.name.encode("utf-8"))
    return StreamingResponse(
        stream,
        media_type=db_file.type or "application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{safe_filename}",
            "Content-Length": str(db_file.size),
        },
    )


# --- Listings ---
@router.get("/files", response_model=DirectoryListing)
def list_group_files(
    group_id: int = Query(..., alias="groupId"),
    parent_id: Optional[int] = Query(None, alias="parentId"),
    current_user: User = Depends(get_current_user),
):
    return list_group_contents_service(group_id, optional_id(parent_id), current_user)


@router.get("/personal-files", response_model=DirectoryListing)
def list_personal_files(
    parent_id: Optional[int] = Query(None, alias="parentId"),
    current_user: User = Depends(get_current_user),
):
    return list_personal_contents_service(optional_id(parent_id), current_user)


# --- Folders ---
@router.post("/folders", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
def create_group_folder(
    folder_data: FolderCreate,
    current_user: User = Depends(get_current_user),
):
    folder_data.parent_id = optional_id(folder_data.parent_id)
    folder_data.group_id = optional_id(folder_data.group_id)
    return create_group_folder_service(folder_data, current_user)


@router.post("/personal-folders", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
def create_personal_folder(
    folder_data: PersonalFolderCreate,
    current_user: User = Depends(get_current_user),
):
    folder_data.parent_id = optional_id(folder_data.parent_id)
    return create_personal_folder_service(folder_data, current_user)


@router.put("/folders/{folder_id}", response_model=FolderResponse)
def rename_folder(
    folder_id: int,
    data: NameUpdate,
    current_user: User = Depends(get_current_user),
):
    return rename_folder_service(folder_id, data.name, current_user)


@router.delete("/folders/{folder_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_folder(
    folder_id: int,
    current_user: User = Depends(get_current_user),
    link_issuer: PublicLinkIssuer = Depends(get_link_issuer),
):
    delete_folder_service(folder_id, current_user, link_issuer)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Uploads ---
def _json_upload(
    upload: FileUploadRequest,
    group_id: Optional[int],
    current_user: User,
    coordinator: ChunkUploadCoordinator,
) -> JSONResponse:
    result = upload_file_service(
        coordinator,
        current_user,
        name=upload.name,
        mime_type=upload.type,
        data=decode_upload_data(upload.data),
        group_id=group_id,
        parent_id=optional_id(upload.parent_id),
        chunk_index=upload.chunk_index,
        total_chunks=upload.total_chunks,
    )
    return upload_response(result)


@router.post("/files/upload")
def upload_group_file(
    upload: FileUploadRequest,
    current_user: User = Depends(get_current_user),
    coordinator: ChunkUploadCoordinator = Depends(get_upload_coordinator),
):
    """Base64 upload into a group. Send ``chunk_index``/``total_chunks`` for chunked uploads."""
    group_id = optional_id(upload.group_id)
    if group_id is None:
        raise ValidationError("Group is required", errors=[{"field": "group_id", "message": "required"}])
    return _json_upload(upload, group_id, current_user, coordinator)


@router.post("/personal-files/upload")
def upload_personal_file(
    upload: FileUploadRequest,
    current_user: User = Depends(get_current_user),
    coordinator: ChunkUploadCoordinator = Depends(get_upload_coordinator),
):
    return _json_upload(upload, None, current_user, coordinator)


async def _binary_upload(
    request: Request,
    group_id: Optional[int],
    current_user: User,
    coordinator: ChunkUploadCoordinator,
) -> JSONResponse:
    headers = request.headers
    file_name = unquote(headers.get("X-File-Name", "")).strip()
    if not file_name:
        raise ValidationError("Missing file name", errors=[{"field": "X-File-Name", "message": "required"}])
    mime_type = headers.get("X-File-Type") or "application/octet-stream"
    content_length = parse_int_header(headers.get("Content-Length"), "Content-Length")
    if content_length is not None and content_length > coordinator.max_chunk_size:
        raise ValidationError(
            "Invalid chunk",
            errors=[{"field": "data", "message": f"chunk exceeds {coordinator.max_chunk_size} bytes"}],
        )
    data = await request.body()

    result = await run_in_threadpool(
        upload_file_service,
        coordinator,
        current_user,
        name=file_name,
        mime_type=mime_type,
        data=data,
        group_id=group_id,
        parent_id=parse_id_header(headers.get("X-Parent-Id"), "X-Parent-Id"),
        chunk_index=parse_int_header(headers.get("X-Chunk-Index"), "X-Chunk-Index"),
        total_chunks=parse_int_header(headers.get("X-Total-Chunks"), "X-Total-Chunks"),
    )
    return upload_response(result)


@router.post("/files/binary")
async def upload_group_file_binary(
    request: Request,
    x_group_id: Optional[str] = Header(None),
    current_user: User = Depends(get_current_user),
    coordinator: ChunkUploadCoordinator = Depends(get_upload_coordinator),
):
    """Raw body upload into a group, described by ``X-*`` headers."""
    group_id = parse_id_header(x_group_id, "X-Group-Id")
    if group_id is None:
        raise ValidationError("Group is required", errors=[{"field": "X-Group-Id", "message": "required"}])
    return await _binary_upload(request, group_id, current_user, coordinator)


@router.post("/personal-files/binary")
async def upload_personal_file_binary(
    request: Request,
    current_user: User = Depends(get_current_user),
    coordinator: ChunkUploadCoordinator = Depends(get_upload_coordinator),
):
    return await _binary_upload(request, None, current_user, coordinator)


# --- Files ---
@router.put("/files/{file_id}", response_model=FileResponse)
def rename_file(
    file_id: int,
    data: NameUpdate,
    current_user: User = Depends(get_current_user),
):
    return rename_file_service(file_id, data.name, current_user)


@router.delete("/files/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    file_id: int,
    current_user: User = Depends(get_current_user),
    link_issuer: PublicLinkIssuer = Depends(get_link_issuer),
):
    delete_file_service(file_id, current_user, link_issuer)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/files/{file_id}/download")
def download_file(
    file_id: int,
    current_user: User = Depends(get_current_user),
):
    db_file, stream = download_file_service(file_id, current_user)
    return download_response(db_file, stream)
