from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Path,
    UploadFile,
    status
)
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from files_gateway.dependencies import get_file_store
from files_gateway.errors import PayloadTooLargeError, ValidationError
from files_gateway.file_store import FileStore
from files_gateway.schemas import (
    DeleteFileResponse,
    ErrorResponse,
    StoredFile,
    UploadFileResponse,
)

router = APIRouter()

BACKEND_ERROR_RESPONSES = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
}
UPLOAD_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    **BACKEND_ERROR_RESPONSES,
}
NOT_FOUND_RESPONSES = {
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    **BACKEND_ERROR_RESPONSES,
}


@router.post(
    "/upload",
    name="upload_file_legacy",
    status_code=status.HTTP_201_CREATED,
    response_model=UploadFileResponse,
    responses=UPLOAD_RESPONSES,
    include_in_schema=False,
)
@router.post(
    "/files",
    status_code=status.HTTP_201_CREATED,
    response_model=UploadFileResponse,
    responses=UPLOAD_RESPONSES,
)
async def upload_file(
    file: Optional[UploadFile] = File(None, description="The file to upload"),
    file_store: FileStore = Depends(get_file_store),
) -> UploadFileResponse:
    """
    Upload a file.

    The stored name is derived from the uploaded filename according to the
    configured naming policy; the original filename is kept as metadata.

    Args:
        file: The multipart ``file`` field
        file_store: The file store façade

    Returns:
        UploadFileResponse: The stored file's name, size and content type
    """
    if file is None:
        raise ValidationError("No file provided", field="file")

    # reject oversized uploads before the body is read into memory
    if file.size is not None and file.size > file_store.max_upload_bytes:
        raise PayloadTooLargeError(file.size, file_store.max_upload_bytes)

    try:
        content = await file.read()
    finally:
        await file.close()

    saved = await file_store.store(
        original_name=file.filename or "",
        content=content,
        content_type=file.content_type,
        declared_size=file.size,
    )
    return UploadFileResponse(message="File uploaded", file=saved)


@router.get(
    "/files",
    response_model=List[StoredFile],
    responses=BACKEND_ERROR_RESPONSES,
)
async def list_files(file_store: FileStore = Depends(get_file_store)) -> List[StoredFile]:
    """
    List every file in the bucket.

    Size and creation time come from the bucket listing; content type and
    original name are not part of it and are returned as null.
    """
    return await file_store.list_files()


@router.get(
    "/files/{name:path}",
    response_class=StreamingResponse,
    responses={
        status.HTTP_200_OK: {"content": {"application/octet-stream": {}}, "description": "File stream"},
        **NOT_FOUND_RESPONSES,
    },
)
async def download_file(
    name: str = Path(..., description="The stored name of the file"),
    file_store: FileStore = Depends(get_file_store),
) -> StreamingResponse:
    """
    Download a file.

    The body is streamed from the bucket without buffering the whole object.
    """
    download = await file_store.fetch(name)

    headers = {
        # set explicitly so starlette does not append a charset to text types
        "Content-Type": download.content_type,
        "Content-Disposition": download.content_disposition,
    }
    if download.content_length is not None:
        headers["Content-Length"] = str(download.content_length)

    return StreamingResponse(
        download.iter_bytes(),
        headers=headers,
        background=BackgroundTask(download.close),
    )


@router.delete(
    "/files/{name:path}",
    response_model=DeleteFileResponse,
    responses=NOT_FOUND_RESPONSES,
)
async def delete_file(
    name: str = Path(..., description="The stored name of the file"),
    file_store: FileStore = Depends(get_file_store),
) -> DeleteFileResponse:
    """Delete a file."""
    await file_store.remove(name)
    return DeleteFileResponse(message="File deleted")
