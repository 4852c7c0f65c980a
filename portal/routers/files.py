"""File API endpoints: admin uploads, downloads for any signed-in account."""

from fastapi import APIRouter, Depends, UploadFile
from fastapi.responses import FileResponse as FileDownload

from portal.dependencies import CurrentAccount, get_current_account, get_file_service, require_admin
from portal.schemas.auth import OkResponse
from portal.schemas.files import FileListResponse, FileResponse
from portal.services.files import FileService, safe_filename

router = APIRouter(prefix="/api/v1/files", tags=["Files"])


@router.post("/", response_model=FileResponse)
async def upload_file(
    file: UploadFile,
    admin: CurrentAccount = Depends(require_admin),
    service: FileService = Depends(get_file_service),
) -> FileResponse:
    """Upload a file (admin only)."""
    stored_filename, actual_size = await service.store_file(file)
    record = service.create_file_record(
        uploaded_by=admin.account_id,
        original_filename=file.filename or "file",
        stored_filename=stored_filename,
        file_size_bytes=actual_size,
        mime_type=file.content_type,
    )
    return FileResponse.model_validate(record)


@router.get("/", response_model=FileListResponse)
def list_files(
    account: CurrentAccount = Depends(get_current_account),
    service: FileService = Depends(get_file_service),
) -> FileListResponse:
    """List all files, newest first."""
    records = service.list_files()
    return FileListResponse(
        items=[FileResponse.model_validate(r) for r in records],
        total=len(records),
    )


@router.get("/{file_id}/download")
def download_file(
    file_id: int,
    account: CurrentAccount = Depends(get_current_account),
    service: FileService = Depends(get_file_service),
) -> FileDownload:
    """Download a file as an attachment."""
    record = service.get_file(file_id)
    return FileDownload(
        path=service.path_for(record),
        media_type=record.mime_type or "application/octet-stream",
        filename=safe_filename(record.original_filename),
    )


@router.delete("/{file_id}", response_model=OkResponse)
def delete_file(
    file_id: int,
    admin: CurrentAccount = Depends(require_admin),
    service: FileService = Depends(get_file_service),
) -> OkResponse:
    """Delete a file (admin only)."""
    service.delete_file(file_id, deleted_by=admin.account_id)
    return OkResponse()
